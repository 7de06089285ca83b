#!/usr/bin/env python3
"""
addflt.py – packed "float" addition using integer arithmetic only
-----------------------------------------------------------------
Reference model of the ``addflt`` fixture in ``fixtures/addflt.c``.

A packed word is a 32‑bit unsigned integer whose top byte is a biased
exponent.  The whole word, exponent bits included, is also used as the
"mantissa" operand.  The routine is a verification target, not a float
adder: the result is the (possibly incremented) exponent, laundered through
an unsigned 32‑bit return.

Shift counts outside [0, 31] are undefined in C.  We follow x86 ``SHR`` and
use only the low five bits of the count.
"""

from __future__ import annotations

import sys

# ---------------------------------------------------------------------------
# Word layout
# ---------------------------------------------------------------------------

WORD_BITS = 32
WORD_MASK = (1 << WORD_BITS) - 1
EXPONENT_SHIFT = 24
EXPONENT_BIAS = 128
SHIFT_MASK = WORD_BITS - 1


def to_u32(value: int) -> int:
    """Two's‑complement reinterpretation of *value* as an unsigned word."""
    return value & WORD_MASK


def exponent(word: int) -> int:
    """Top byte of *word* minus the bias, in [-128, 127]."""
    return (to_u32(word) >> EXPONENT_SHIFT) - EXPONENT_BIAS


def shift_amount(delta: int) -> int:
    # delta = -1 -> 31, delta = 32 -> 0
    return delta & SHIFT_MASK


# ---------------------------------------------------------------------------
# The routine
# ---------------------------------------------------------------------------


def addflt(a: int, b: int) -> int:
    ma = to_u32(a)
    mb = to_u32(b)
    ea = exponent(ma)
    eb = exponent(mb)
    delta = ea - eb

    mb = mb >> shift_amount(delta)
    ma = to_u32(ma + mb)

    # any set bit of the raw sum bumps the exponent
    if ma:
        ea = ea + 1

    return to_u32(ea)


def main() -> int:
    return 0


if __name__ == "__main__":
    sys.exit(main())
