#!/usr/bin/env python3
"""
c_eval.py – a concrete interpreter for 32‑bit integer C code
-------------------------------------------------------------
Given

   ①  a C source file,
   ②  a function name inside that file,
   ③  a YAML file that lists the concrete inputs to try,

the script runs the function's AST once per input combination, printing the
result of each run, and then prints, for every source line that shifts or
does signed arithmetic, whether some run hit undefined behaviour there.

Undefined behaviour is given one fixed meaning so that every run finishes:
shift counts keep only their low bits (the x86 ``SHR``/``SHL`` rule), signed
overflow wraps in two's complement, and division by zero yields 0.
"""

from __future__ import annotations

import itertools
import os
import re
import sys

import yaml
import pycparser
from pycparser import c_ast, c_parser, parse_file

# ---------------------------------------------------------------------------
# Toolbox constants
# ---------------------------------------------------------------------------

# pycparser ships with a fake set of <stdio.h> etc.  We need that directory
# when we run the pre‑processor.
FAKE_LIBC_INCLUDE = os.path.join(
    os.path.dirname(pycparser.__file__), "utils", "fake_libc_include"
)

INT = (32, False)

# Fixed‑width names the fake libc headers would otherwise typedef to int.
TYPEDEFS: dict[str, tuple[int, bool]] = {
    "int8_t": (8, False),
    "uint8_t": (8, True),
    "int16_t": (16, False),
    "uint16_t": (16, True),
    "int32_t": (32, False),
    "uint32_t": (32, True),
    "int64_t": (64, False),
    "uint64_t": (64, True),
    "size_t": (64, True),
}

# Inputs tried for a parameter the YAML file leaves unconstrained.
BOUNDARY_SAMPLES = [
    0x00000000,
    0x00000001,
    0x7FFFFFFF,
    0x80000000,
    0x81000001,
    0xFFFFFFFF,
]

HAZARD_KINDS = ("shift", "overflow", "div0")


class UnsupportedConstruct(ValueError):
    """The interpreter has no concrete meaning for this piece of C."""

    def __init__(self, node: c_ast.Node, what: str | None = None):
        line = getattr(getattr(node, "coord", None), "line", -1)
        super().__init__(f"line {line}: unsupported {what or type(node).__name__}")


# ---------------------------------------------------------------------------
# Structures that feed the final report
# ---------------------------------------------------------------------------

# (17, 'shift') -> True   ==  "line 17 shifted by an out‑of‑range count"
hazards: dict[tuple[int, str], bool] = {}


def _record(node: c_ast.Node, kind: str, hit: bool) -> None:
    line = getattr(getattr(node, "coord", None), "line", -1)
    key = (line, kind)
    hazards[key] = hazards.get(key, False) or hit


def reset_report() -> None:
    hazards.clear()


def collate_report() -> list[tuple[int, str, bool]]:
    """Rows of (line, kind, hit) ordered by line, then kind."""
    return [
        (line, kind, hazards[(line, kind)])
        for line, kind in sorted(
            hazards, key=lambda t: (t[0], HAZARD_KINDS.index(t[1]))
        )
    ]


# ---------------------------------------------------------------------------
# The concrete value: an integer plus its C type
# ---------------------------------------------------------------------------


def _wrap(value: int, bits: int, unsigned: bool) -> int:
    value &= (1 << bits) - 1
    if not unsigned and value >= 1 << (bits - 1):
        value -= 1 << bits
    return value


def _fits(value: int, bits: int, unsigned: bool) -> bool:
    if unsigned:
        return 0 <= value < 1 << bits
    return -(1 << (bits - 1)) <= value < 1 << (bits - 1)


class CValue:
    """An integer already reduced to the range of its (bits, unsigned) type."""

    __slots__ = ("value", "bits", "unsigned")

    def __init__(self, value: int, bits: int = 32, unsigned: bool = False):
        self.bits = bits
        self.unsigned = unsigned
        self.value = _wrap(value, bits, unsigned)

    def __repr__(self):
        kind = "u" if self.unsigned else "i"
        return f"CValue({self.value}, {kind}{self.bits})"

    @property
    def ctype(self) -> tuple[int, bool]:
        return self.bits, self.unsigned

    def cast(self, ctype: tuple[int, bool]) -> "CValue":
        return CValue(self.value, *ctype)

    def promote(self) -> "CValue":
        """Integer promotion: anything narrower than int becomes int."""
        return self.cast(INT) if self.bits < 32 else self


def common_type(l: CValue, r: CValue) -> tuple[int, bool]:
    """The usual arithmetic conversions, for already promoted operands."""
    if l.unsigned == r.unsigned:
        return max(l.bits, r.bits), l.unsigned
    u, s = (l, r) if l.unsigned else (r, l)
    if u.bits >= s.bits:
        return u.bits, True
    return s.bits, False


# ---------------------------------------------------------------------------
# C types
# ---------------------------------------------------------------------------


def ctype_of(type_node) -> tuple[int, bool]:
    """TypeDecl / Typename → (bits, unsigned)."""
    if isinstance(type_node, (c_ast.Typename, c_ast.TypeDecl)):
        return ctype_of(type_node.type)
    if not isinstance(type_node, c_ast.IdentifierType):
        raise UnsupportedConstruct(type_node)

    names = [n for n in type_node.names if n not in {"const", "volatile"}]
    if len(names) == 1 and names[0] in TYPEDEFS:
        return TYPEDEFS[names[0]]

    unsigned = "unsigned" in names
    base = [n for n in names if n not in {"signed", "unsigned"}]
    if base in ([], ["int"]):
        return 32, unsigned
    if base == ["char"]:
        return 8, unsigned
    if base in (["short"], ["short", "int"]):
        return 16, unsigned
    if base.count("long") in {1, 2} and set(base) <= {"long", "int"}:
        return 64, unsigned
    raise UnsupportedConstruct(type_node, " ".join(type_node.names))


_INT_LITERAL = re.compile(r"(0[xX][0-9a-fA-F]+|[0-9]+)([uUlL]*)")


def parse_constant(node: c_ast.Constant) -> CValue:
    """Integer literal with optional hex prefix and u/l suffixes."""
    # pycparser types suffixed literals as "unsigned int", "long int", ...
    m = _INT_LITERAL.fullmatch(node.value) if node.type.endswith("int") else None
    if m is None:
        raise UnsupportedConstruct(node, f"constant {node.value!r}")

    digits, suffix = m.groups()
    if digits[:2].lower() == "0x":
        value = int(digits, 16)
    elif len(digits) > 1 and digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits)

    suffix = suffix.lower()
    # hex and octal literals may become unsigned, decimal ones only widen
    if "u" in suffix:
        signs = [True]
    elif digits.startswith("0") and len(digits) > 1:
        signs = [False, True]
    else:
        signs = [False]
    widths = [64] if "l" in suffix else [32, 64]
    for bits in widths:
        for unsigned in signs:
            if _fits(value, bits, unsigned):
                return CValue(value, bits, unsigned)
    return CValue(value, 64, True)


# ---------------------------------------------------------------------------
# Concrete arithmetic over CValue
# ---------------------------------------------------------------------------


def shift_op(op: str, l: CValue, r: CValue, node) -> CValue:
    l, r = l.promote(), r.promote()
    raw = r.value
    _record(node, "shift", not 0 <= raw < l.bits)
    # only the low bits of the count are used
    count = raw & (l.bits - 1)
    if op == ">>":
        return CValue(l.value >> count, *l.ctype)

    exact = l.value << count
    if not l.unsigned:
        # shifting a negative value left is undefined as well
        _record(node, "overflow", l.value < 0 or not _fits(exact, *l.ctype))
    return CValue(exact, *l.ctype)


def _truncdiv(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def arithmetic_op(op: str, l: CValue, r: CValue, node) -> CValue:
    """Concrete transfer for one binary operator (no && / ||)."""
    if op in {"<<", ">>"}:
        return shift_op(op, l, r, node)

    ctype = common_type(l.promote(), r.promote())
    a, b = l.cast(ctype).value, r.cast(ctype).value

    if op in {"==", "!=", "<", ">", "<=", ">="}:
        truth = {
            "==": a == b,
            "!=": a != b,
            "<": a < b,
            ">": a > b,
            "<=": a <= b,
            ">=": a >= b,
        }[op]
        return CValue(int(truth), *INT)

    if op in {"&", "|", "^"}:
        exact = {"&": a & b, "|": a | b, "^": a ^ b}[op]
        return CValue(exact, *ctype)

    if op in {"/", "%"}:
        _record(node, "div0", b == 0)
        if b == 0:
            return CValue(0, *ctype)
        q = _truncdiv(a, b)
        exact = q if op == "/" else a - q * b
    elif op == "+":
        exact = a + b
    elif op == "-":
        exact = a - b
    elif op == "*":
        exact = a * b
    else:
        raise UnsupportedConstruct(node, f"operator {op}")

    if not ctype[1]:
        _record(node, "overflow", not _fits(exact, *ctype))
    return CValue(exact, *ctype)


# ---------------------------------------------------------------------------
# Expression evaluator
# ---------------------------------------------------------------------------


def _truthy(v: CValue) -> bool:
    return v.value != 0


def _store(node, val: CValue, env) -> CValue:
    if not isinstance(node, c_ast.ID):
        raise UnsupportedConstruct(node, "assignment target")
    if node.name not in env:
        raise UnsupportedConstruct(node, f"undeclared {node.name}")
    env[node.name] = val.cast(env[node.name].ctype)
    return env[node.name]


def evaluate_expression(node, env) -> CValue:
    # constants -------------------------------------------------------------
    if isinstance(node, c_ast.Constant):
        return parse_constant(node)

    # identifiers -----------------------------------------------------------
    if isinstance(node, c_ast.ID):
        if node.name not in env:
            raise UnsupportedConstruct(node, f"undeclared {node.name}")
        return env[node.name]

    # casts -----------------------------------------------------------------
    if isinstance(node, c_ast.Cast):
        return evaluate_expression(node.expr, env).cast(ctype_of(node.to_type))

    # unary ops -------------------------------------------------------------
    if isinstance(node, c_ast.UnaryOp):
        if node.op in {"++", "--", "p++", "p--"}:
            old = evaluate_expression(node.expr, env)
            one = CValue(1, *INT)
            new = _store(node.expr, arithmetic_op(node.op[-1], old, one, node), env)
            return old if node.op.startswith("p") else new

        v = evaluate_expression(node.expr, env).promote()
        if node.op == "+":
            return v
        if node.op == "-":
            return arithmetic_op("-", CValue(0, *v.ctype), v, node)
        if node.op == "~":
            return CValue(~v.value, *v.ctype)
        if node.op == "!":
            return CValue(int(not _truthy(v)), *INT)
        raise UnsupportedConstruct(node, f"operator {node.op}")

    # binary ops ------------------------------------------------------------
    if isinstance(node, c_ast.BinaryOp):
        if node.op in {"&&", "||"}:
            left = _truthy(evaluate_expression(node.left, env))
            if (node.op == "&&") != left:
                return CValue(int(left), *INT)
            return CValue(int(_truthy(evaluate_expression(node.right, env))), *INT)
        l = evaluate_expression(node.left, env)
        r = evaluate_expression(node.right, env)
        return arithmetic_op(node.op, l, r, node)

    # assignment used as an expression -------------------------------------
    if isinstance(node, c_ast.Assignment):
        val = evaluate_expression(node.rvalue, env)
        if node.op != "=":
            cur = evaluate_expression(node.lvalue, env)
            val = arithmetic_op(node.op[:-1], cur, val, node)
        return _store(node.lvalue, val, env)

    raise UnsupportedConstruct(node)


# ---------------------------------------------------------------------------
# Statement executor
# ---------------------------------------------------------------------------


def execute_statement(stmt, env):
    """Execute one C statement; a CValue comes back once something returns."""
    if stmt is None or isinstance(stmt, c_ast.EmptyStatement):
        return None

    if isinstance(stmt, c_ast.Decl):
        ctype = ctype_of(stmt.type)
        init = evaluate_expression(stmt.init, env) if stmt.init else CValue(0)
        env[stmt.name] = init.cast(ctype)
        return None

    if isinstance(stmt, c_ast.Return):
        return evaluate_expression(stmt.expr, env) if stmt.expr else CValue(0)

    if isinstance(stmt, c_ast.If):
        branch = stmt.iftrue if _truthy(evaluate_expression(stmt.cond, env)) else stmt.iffalse
        return execute_statement(branch, env)

    if isinstance(stmt, c_ast.Compound):
        for s in stmt.block_items or []:
            r = execute_statement(s, env)
            if r is not None:
                return r
        return None

    # expression statements: assignment, x++, ...
    evaluate_expression(stmt, env)
    return None


def _params(func_node: c_ast.FuncDef) -> list[c_ast.Decl]:
    args = func_node.decl.type.args
    params = args.params if args else []
    # f(void)
    if len(params) == 1 and isinstance(params[0], c_ast.Typename):
        return []
    return params


def param_names(func_node: c_ast.FuncDef) -> list[str]:
    return [p.name for p in _params(func_node)]


def interpret_function(func_node: c_ast.FuncDef, args: dict[str, int]) -> int:
    """Entry point: run the function body once, return its integer result."""
    env: dict[str, CValue] = {}
    for p in _params(func_node):
        env[p.name] = CValue(args.get(p.name, 0), *ctype_of(p.type))

    ret_type = ctype_of(func_node.decl.type.type)
    result = execute_statement(func_node.body, env)
    return (result or CValue(0)).cast(ret_type).value


def run_cases(func_node: c_ast.FuncDef, inputs: dict[str, list[int]]):
    """Run every combination of *inputs*; returns [(args, result), ...]."""
    reset_report()
    names = param_names(func_node)
    pools = [inputs.get(n, BOUNDARY_SAMPLES) for n in names]
    rows = []
    for combo in itertools.product(*pools):
        args = dict(zip(names, combo))
        rows.append((args, interpret_function(func_node, args)))
    return rows


# ---------------------------------------------------------------------------
# YAML → input pools
# ---------------------------------------------------------------------------


def _parse_word(x) -> int:
    """Integer or hex / decimal string → int."""
    if isinstance(x, str):
        base = 16 if x.lower().startswith("0x") else 10
        x = int(x, base)
    return int(x)


def load_inputs(yaml_path: str) -> dict[str, list[int]]:
    """Read the input specification YAML file."""
    with open(yaml_path, "r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}

    pools: dict[str, list[int]] = {}
    for name, raw in data.items():
        if isinstance(raw, str) and raw.strip() == ">":  # fully unconstrained
            pools[name] = list(BOUNDARY_SAMPLES)
            continue

        vals = raw if isinstance(raw, list) else [raw]
        pools[name] = [_parse_word(v) for v in vals]

    return pools


# ---------------------------------------------------------------------------
# A robust “parse C” that tries three different pre‑processors
# ---------------------------------------------------------------------------


def _blank(m: re.Match) -> str:
    # keep line numbers stable; a comment still separates tokens
    return "\n" * m.group().count("\n") or " "


def parse_c_source(text: str, filename: str = "<source>"):
    """Parse C text without a pre‑processor: drop directives and comments."""
    # one left-to-right pass, so "// ... /*" stays a line comment
    text = re.sub(r"//[^\n]*|/\*.*?\*/", _blank, text, flags=re.S)
    text = re.sub(r"^[ \t]*#[^\n]*", "", text, flags=re.M)
    return c_parser.CParser().parse(text, filename)


def parse_c_file(c_file: str):
    cpp_args = [
        "-E",
        "-I",
        FAKE_LIBC_INCLUDE,
        "-D__attribute__(x)=",
        "-D__extension__=",
        "-D__asm__(x)=",
    ]

    try:
        return parse_file(c_file, use_cpp=True, cpp_args=cpp_args)
    except Exception:
        pass

    try:
        return parse_file(
            c_file, use_cpp=True, cpp_path="clang", cpp_args=cpp_args
        )
    except Exception:
        pass

    # last resort: no pre‑processor at all
    with open(c_file, encoding="utf-8") as fin:
        return parse_c_source(fin.read(), c_file)


def find_function(ast, func_name: str) -> c_ast.FuncDef | None:
    return next(
        (
            n
            for n in ast.ext
            if isinstance(n, c_ast.FuncDef) and n.decl.name == func_name
        ),
        None,
    )


# ---------------------------------------------------------------------------
# Main driver
# ---------------------------------------------------------------------------


def _fmt(v: int) -> str:
    return f"{v:#010x}" if v >= 0 else str(v)


def main():
    if len(sys.argv) not in {4, 5}:
        print(
            "Usage: python3 c_eval.py <c_file> <function> <input.yaml> "
            "[output.yaml]"
        )
        sys.exit(1)

    c_file, func_name, inputs_yaml = sys.argv[1:4]
    output_yaml = sys.argv[4] if len(sys.argv) == 5 else None

    ast = parse_c_file(c_file)
    func_def = find_function(ast, func_name)
    if func_def is None:
        sys.stderr.write(f"Function '{func_name}' not found in {c_file}\n")
        sys.exit(1)

    try:
        rows = run_cases(func_def, load_inputs(inputs_yaml))
    except UnsupportedConstruct as exc:
        sys.stderr.write(f"{c_file}: {exc}\n")
        sys.exit(1)
    report = collate_report()

    # -------- output ------------------------------------------------------
    if output_yaml:
        records = {
            "cases": [{"inputs": args, "result": res} for args, res in rows],
            "hazards": [
                {"line": int(line), "kind": kind, "maybe": hit}
                for line, kind, hit in report
            ],
        }
        with open(output_yaml, "w", encoding="utf-8") as f:
            yaml.safe_dump(records, f, sort_keys=False)
    else:
        for args, res in rows:
            ins = " ".join(f"{k}={_fmt(v)}" for k, v in args.items())
            print(f"{ins} -> {_fmt(res)}")
        for line, kind, hit in report:
            print(f"{line} {kind} {hit}")


if __name__ == "__main__":
    main()
