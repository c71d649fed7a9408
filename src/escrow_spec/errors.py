"""Escrow ledger error codes and exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ErrorCategory(IntEnum):
    VALIDATION = 0x01
    AUTHORIZATION = 0x02
    RESOURCE = 0x03
    STATE = 0x04
    TRANSFER = 0x05


class ErrorCode(IntEnum):
    # Validation
    INVALID_ARGUMENT = 0x0100
    AMOUNT_MISMATCH = 0x0101

    # Authorization
    UNAUTHORIZED = 0x0200

    # Resource
    OVERFLOW = 0x0300

    # State
    INVALID_REFERENCE = 0x0400
    INVALID_STATE = 0x0401

    # Transfer
    TRANSFER_FAILED = 0x0500

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(self.value >> 8)


@dataclass(frozen=True)
class EscrowError(Exception):
    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.name}({self.code:#06x}): {self.message}"


# Allow Python's Exception machinery to set __traceback__/__context__/__cause__
# while keeping dataclass fields frozen.
_EXCEPTION_ATTRS = frozenset((
    "__traceback__", "__context__", "__cause__", "__suppress_context__", "__notes__",
))
_frozen_setattr = EscrowError.__setattr__


def _escrow_error_setattr(self: EscrowError, name: str, value: object) -> None:
    if name in _EXCEPTION_ATTRS:
        object.__setattr__(self, name, value)
    else:
        _frozen_setattr(self, name, value)


EscrowError.__setattr__ = _escrow_error_setattr  # type: ignore[method-assign]
