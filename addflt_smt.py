# addflt_smt.py  --------------------------------------------------------
from __future__ import annotations

import typing

from z3 import *

import addflt as ref

# ---------- 1. Declare variables ----------
WIDTH = ref.WORD_BITS
a, b = BitVec('a', WIDTH), BitVec('b', WIDTH)


class CheckResult(typing.NamedTuple):
    name: str
    status: str                      # "proven" or "counterexample"
    model: dict[str, int] | None


# ---------- 2. Translate the routine ----------
def exponent_bv(w):
    return LShR(w, ref.EXPONENT_SHIFT) - ref.EXPONENT_BIAS


def delta_bv(x, y):
    # unsigned in C: a negative difference wraps to a huge count
    return exponent_bv(x) - exponent_bv(y)


def sum_bv(x, y):
    mb = LShR(y, delta_bv(x, y) & ref.SHIFT_MASK)
    return x + mb


def addflt_bv(x, y):
    ea = exponent_bv(x)
    return If(sum_bv(x, y) != 0, ea + 1, ea)


# ---------- 3. Solver plumbing ----------
def _search(name: str, goal, *assumptions) -> CheckResult:
    """Look for an (a, b) that satisfies *goal*; none found means proven."""
    s = Solver()
    s.add(*assumptions)
    s.add(goal)
    if s.check() == sat:
        m = s.model()
        model = {str(v): m.eval(v, model_completion=True).as_long() for v in (a, b)}
        model['result'] = m.eval(addflt_bv(a, b), model_completion=True).as_long()
        return CheckResult(name, 'counterexample', model)
    return CheckResult(name, 'proven', None)


# ---------- 4. Properties ----------
def check_closed_form() -> CheckResult:
    """With 0 <= delta <= 31 the result is ea + (a + (b >> delta) != 0)."""
    delta = delta_bv(a, b)
    law = exponent_bv(a) + If(a + LShR(b, delta) != 0, BitVecVal(1, WIDTH), BitVecVal(0, WIDTH))
    return _search('closed form', addflt_bv(a, b) != law, delta >= 0, delta <= 31)


def check_shift_in_range() -> CheckResult:
    return _search('shift count in [0, 31]', Not(ULE(delta_bv(a, b), 31)))


def check_sum_nonzero() -> CheckResult:
    return _search('nonzero operand gives nonzero sum', sum_bv(a, b) == 0, Or(a != 0, b != 0))


def check_result_is_exponent() -> CheckResult:
    r = addflt_bv(a, b)
    return _search('result in [-128, 128]', Or(r < -128, r > 128))


def check_against_reference(samples) -> list[tuple[int, int]]:
    """Concrete pairs on which the bit-vector model and addflt.addflt differ."""
    bad = []
    for x, y in samples:
        got = simplify(addflt_bv(BitVecVal(x, WIDTH), BitVecVal(y, WIDTH))).as_long()
        if got != ref.addflt(x, y):
            bad.append((x, y))
    return bad


CHECKS = (
    check_closed_form,
    check_shift_in_range,
    check_sum_nonzero,
    check_result_is_exponent,
)


# ---------- 5. Run ----------
def main():
    for check in CHECKS:
        res = check()
        print(f"Checking {res.name} ...")
        if res.status == 'counterexample':
            print("> Counterexample found!")
            for k, v in res.model.items():
                print(f"  {k} = {v:#010x}")
        else:
            print("> Proven (UNSAT)")


if __name__ == "__main__":
    main()
