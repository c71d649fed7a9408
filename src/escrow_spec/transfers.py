"""Value-transfer collaborators.

The ledger only needs a success/failure signal from a transfer. Anything
callable as ``transfer(recipient, amount) -> bool`` qualifies; `BalanceSheet`
is the in-memory implementation used by default and in tests.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, Protocol

from .amounts import checked_add


class ValueTransfer(Protocol):
    def __call__(self, recipient: bytes, amount: int) -> bool: ...


class BalanceSheet:
    """Credits released value to recipients.

    `on_credit`, when set, runs after the credit is booked and may re-enter
    the ledger; its return value becomes the transfer result. A failed or
    raising hook discards every credit booked since this transfer began,
    including credits from nested transfers.
    """

    def __init__(self, on_credit: Optional[Callable[[bytes, int], bool]] = None):
        self.balances: Dict[bytes, int] = {}
        self.on_credit = on_credit

    def balance_of(self, identity: bytes) -> int:
        return self.balances.get(identity, 0)

    def total(self) -> int:
        return sum(self.balances.values())

    def __call__(self, recipient: bytes, amount: int) -> bool:
        saved = dict(self.balances)
        self.balances[recipient] = checked_add(self.balance_of(recipient), amount)
        if self.on_credit is None:
            return True
        try:
            ok = bool(self.on_credit(recipient, amount))
        except Exception:
            self.balances = saved
            raise
        if not ok:
            self.balances = saved
        return ok
