"""Escrow ledger entrypoints.

`EscrowLedger` owns the registry and serializes every operation:

1. verify the call against the committed state;
2. build the post-state and commit it;
3. hand any released value to the transfer collaborator;
4. on transfer failure, restore the pre-call state and raise
   ``TRANSFER_FAILED``.

State is committed before the transfer runs, so a transfer that re-enters the
ledger sees the milestone already paid. Events are delivered to subscribers
only once the outermost call has completed.
"""

from __future__ import annotations

import logging
import time
from copy import deepcopy
from typing import Any, Callable, List, Optional, Sequence

from . import escrow as escrow_rules
from .errors import ErrorCode, EscrowError
from .transfers import BalanceSheet, ValueTransfer
from .types import (
    Call,
    Escrow,
    Event,
    LedgerState,
    Milestone,
    Operation,
    Payout,
)

logger = logging.getLogger(__name__)

Listener = Callable[[Event], None]


def _short(identity: bytes) -> str:
    return identity.hex()[:8] if isinstance(identity, bytes) else repr(identity)


class TransitionResult:
    """Thin wrapper for call results."""

    def __init__(self, ok: bool, error: Optional[EscrowError] = None, value: Any = None):
        self.ok = ok
        self.error = error
        self.value = value

    @classmethod
    def success(cls, value: Any = None) -> "TransitionResult":
        return cls(True, None, value)

    @classmethod
    def failure(cls, error: EscrowError) -> "TransitionResult":
        return cls(False, error)


class EscrowLedger:
    """Registry of milestone escrows and the only writer of their state."""

    def __init__(
        self,
        transfer: Optional[ValueTransfer] = None,
        clock: Optional[Callable[[], int]] = None,
        state: Optional[LedgerState] = None,
    ):
        self.transfer: ValueTransfer = transfer if transfer is not None else BalanceSheet()
        self.clock = clock if clock is not None else (lambda: int(time.time()))
        self._state = deepcopy(state) if state is not None else LedgerState()
        self._listeners: List[Listener] = []
        self._depth = 0
        self._delivered = len(self._state.events)

    # --- operations ---

    def create_escrow(
        self,
        caller: bytes,
        contractor: bytes,
        arbitrator: bytes,
        descriptions: Sequence[str],
        amounts: Sequence[int],
        funded_amount: int,
    ) -> int:
        payload = {
            "contractor": contractor,
            "arbitrator": arbitrator,
            "descriptions": descriptions,
            "amounts": amounts,
        }
        return self._run(Call(caller, Operation.CREATE_ESCROW, payload, value=funded_amount))

    def submit_milestone(self, caller: bytes, escrow_id: int, index: int) -> None:
        self._run(Call(caller, Operation.SUBMIT_MILESTONE, {"escrow_id": escrow_id, "index": index}))

    def approve_milestone(self, caller: bytes, escrow_id: int, index: int) -> None:
        self._run(Call(caller, Operation.APPROVE_MILESTONE, {"escrow_id": escrow_id, "index": index}))

    def raise_dispute(self, caller: bytes, escrow_id: int, index: int) -> None:
        self._run(Call(caller, Operation.RAISE_DISPUTE, {"escrow_id": escrow_id, "index": index}))

    def resolve_dispute(
        self, caller: bytes, escrow_id: int, index: int, approve_payment: bool
    ) -> None:
        payload = {"escrow_id": escrow_id, "index": index, "approve_payment": approve_payment}
        self._run(Call(caller, Operation.RESOLVE_DISPUTE, payload))

    def execute(self, call: Call) -> TransitionResult:
        """Run a call envelope, reporting failure instead of raising."""
        try:
            value = self._run(call)
        except EscrowError as exc:
            return TransitionResult.failure(exc)
        return TransitionResult.success(value)

    # --- queries ---

    @property
    def state(self) -> LedgerState:
        return deepcopy(self._state)

    def escrow_count(self) -> int:
        return self._state.escrow_count

    def get_escrow(self, escrow_id: int) -> Escrow:
        return deepcopy(escrow_rules.lookup_escrow(self._state, escrow_id))

    def get_milestone(self, escrow_id: int, index: int) -> Milestone:
        escrow = escrow_rules.lookup_escrow(self._state, escrow_id)
        return deepcopy(escrow_rules.lookup_milestone(escrow, index))

    def get_milestone_count(self, escrow_id: int) -> int:
        escrow = escrow_rules.find_escrow(self._state, escrow_id)
        return len(escrow.milestones) if escrow is not None else 0

    def held_amount(self, escrow_id: int) -> int:
        escrow = escrow_rules.find_escrow(self._state, escrow_id)
        return escrow.held_amount if escrow is not None else 0

    def total_held(self) -> int:
        return sum(e.held_amount for e in self._state.escrows.values())

    def events(self, escrow_id: Optional[int] = None) -> List[Event]:
        return [
            ev for ev in self._state.events
            if escrow_id is None or ev.escrow_id == escrow_id
        ]

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    # --- internals ---

    def _run(self, call: Call) -> Any:
        snapshot = self._state
        self._depth += 1
        try:
            try:
                escrow_rules.verify(snapshot, call)
            except EscrowError as exc:
                logger.debug(f"{call.operation!r} from {_short(call.caller)} rejected: {exc}")
                raise
            op = call.operation.value
            outcome = escrow_rules.apply(snapshot, call, now=self.clock())
            # Commit before any value leaves custody.
            self._state = outcome.state
            if outcome.payout is not None:
                self._pay(outcome.payout, snapshot)
        finally:
            self._depth -= 1

        escrow_id = call.payload.get("escrow_id", outcome.value)
        logger.info(f"{op} on escrow {escrow_id} by {_short(call.caller)} committed")
        if self._depth == 0:
            self._deliver()
        return outcome.value

    def _pay(self, payout: Payout, snapshot: LedgerState) -> None:
        try:
            ok = self.transfer(payout.recipient, payout.amount)
        except Exception as exc:
            self._rollback(snapshot)
            logger.warning(f"transfer of {payout.amount} to {_short(payout.recipient)} raised: {exc}")
            raise EscrowError(ErrorCode.TRANSFER_FAILED, f"transfer raised: {exc}") from exc
        if not ok:
            self._rollback(snapshot)
            logger.warning(f"transfer of {payout.amount} to {_short(payout.recipient)} failed")
            raise EscrowError(ErrorCode.TRANSFER_FAILED, "transfer reported failure")

    def _rollback(self, snapshot: LedgerState) -> None:
        logger.debug(f"rolling back to {len(snapshot.events)} events")
        self._state = snapshot

    def _deliver(self) -> None:
        while self._delivered < len(self._state.events):
            event = self._state.events[self._delivered]
            self._delivered += 1
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    logger.exception(f"listener failed on {event.name} for escrow {event.escrow_id}")
