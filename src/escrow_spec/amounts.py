"""Checked arithmetic for ledger amounts (256-bit unsigned model)."""

from __future__ import annotations

from typing import Iterable

from .config import MAX_AMOUNT
from .errors import ErrorCode, EscrowError


def is_amount(value: object) -> bool:
    # bool is an int subclass but never a valid amount
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= MAX_AMOUNT


def require_amount(value: object, what: str = "amount") -> int:
    if not is_amount(value):
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, f"{what} must be an integer in [0, 2^256)")
    return value  # type: ignore[return-value]


def checked_add(a: int, b: int) -> int:
    """Add two amounts, rejecting results above MAX_AMOUNT."""
    total = a + b
    if total > MAX_AMOUNT:
        raise EscrowError(ErrorCode.OVERFLOW, "amount overflow")
    return total


def checked_sum(values: Iterable[int]) -> int:
    total = 0
    for v in values:
        total = checked_add(total, v)
    return total
