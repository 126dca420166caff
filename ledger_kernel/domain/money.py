"""
Monetary primitives -- integer minor units and safe narrowing.

Responsibility:
    Amounts are whole minor-currency units (cents) held in Python ``int``.
    Database aggregates come back at arbitrary precision (``int`` from
    SQLite, ``Decimal`` from PostgreSQL's SUM over BIGINT).  Every such
    aggregate is narrowed exactly once, here, into the range that every
    downstream consumer (JSON clients included) can represent exactly.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - A narrowed value is an exact integer in [-SAFE_INTEGER_MAX, SAFE_INTEGER_MAX].
    - Narrowing never truncates or rounds: out-of-range or fractional input
      raises AmountOverflowError.
    - Amounts accepted from callers are ``int`` (never ``bool``, ``float``
      or ``str``).
"""

from __future__ import annotations

from decimal import Decimal

from ledger_kernel.exceptions import AmountOverflowError, InvalidAmountError

# 2**53 - 1: the largest integer a double-precision consumer holds exactly
SAFE_INTEGER_MAX = 9_007_199_254_740_991


def narrow_to_safe_int(value: int | Decimal | None, *, field: str = "amount") -> int:
    """
    Narrow a wide aggregate to a safe ``int``.

    ``None`` (SUM over zero rows) narrows to 0.

    Raises:
        AmountOverflowError: value is fractional or outside the safe range.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        raise AmountOverflowError(field, value)
    if isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            raise AmountOverflowError(field, value)
        value = int(value)
    elif not isinstance(value, int):
        raise AmountOverflowError(field, value)
    if -SAFE_INTEGER_MAX <= value <= SAFE_INTEGER_MAX:
        return value
    raise AmountOverflowError(field, value)


def is_minor_units(value: object) -> bool:
    """True for a plain ``int`` (bool excluded)."""
    return isinstance(value, int) and not isinstance(value, bool)


def require_positive_amount(value: object, *, field: str = "amount") -> int:
    """Return ``value`` if it is a positive int, else raise InvalidAmountError."""
    if not is_minor_units(value) or value <= 0:
        raise InvalidAmountError(field, value)
    return value


def percentage_of(part: int, whole: int) -> int:
    """Integer percentage rounded half up; 0 when ``whole`` is not positive."""
    if whole <= 0:
        return 0
    return (part * 200 + whole) // (2 * whole)
