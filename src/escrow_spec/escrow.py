"""Escrow operation rules.

Each operation is split into a `_verify_*` function, which performs every
check against the current state without mutating it, and an `_apply_*`
function, which returns a new state with the transition applied. Any value
movement is not performed here: `apply` returns it as a `Payout` so the
ledger can commit state before handing control to the transfer mechanism.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Optional

from .amounts import checked_add, checked_sum, require_amount
from .config import IDENTITY_LEN, ZERO_IDENTITY
from .errors import ErrorCode, EscrowError
from .roles import require_authorized
from .types import (
    Call,
    DisputeRaised,
    DisputeResolved,
    Escrow,
    EscrowCreated,
    EscrowStatus,
    FundsReleased,
    LedgerState,
    Milestone,
    MilestoneApproved,
    MilestoneStatus,
    MilestoneSubmitted,
    Operation,
    Payout,
)

_OPEN_MILESTONE_STATES = frozenset({MilestoneStatus.SUBMITTED, MilestoneStatus.DISPUTED})


@dataclass
class Outcome:
    state: LedgerState
    payout: Optional[Payout] = None
    value: Any = None


def _is_identity(v: object) -> bool:
    return isinstance(v, bytes) and len(v) == IDENTITY_LEN and v != ZERO_IDENTITY


def _is_index(v: object) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v >= 0


def find_escrow(state: LedgerState, escrow_id: object) -> Optional[Escrow]:
    if not _is_index(escrow_id):
        return None
    return state.escrows.get(escrow_id)  # type: ignore[arg-type]


def lookup_escrow(state: LedgerState, escrow_id: object) -> Escrow:
    escrow = find_escrow(state, escrow_id)
    if escrow is None:
        raise EscrowError(ErrorCode.INVALID_REFERENCE, f"unknown escrow {escrow_id!r}")
    return escrow


def lookup_milestone(escrow: Escrow, index: object) -> Milestone:
    if not _is_index(index) or index >= len(escrow.milestones):  # type: ignore[operator]
        raise EscrowError(ErrorCode.INVALID_REFERENCE, f"milestone index {index!r} out of range")
    return escrow.milestones[index]  # type: ignore[index]


def is_settled(escrow: Escrow) -> bool:
    """True when every unit is released and no milestone is mid-flight."""
    if escrow.released_amount != escrow.total_amount:
        return False
    return not any(m.status in _OPEN_MILESTONE_STATES for m in escrow.milestones)


def verify(state: LedgerState, call: Call) -> None:
    if not isinstance(call.operation, Operation):
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, f"unknown operation {call.operation!r}")
    p = call.payload
    if not isinstance(p, dict):
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, "call payload must be dict")

    op = call.operation
    if op == Operation.CREATE_ESCROW:
        _verify_create(state, call, p)
        return
    if call.value != 0:
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, f"{op.value} does not accept value")
    if op == Operation.SUBMIT_MILESTONE:
        _verify_submit(state, call, p)
    elif op == Operation.APPROVE_MILESTONE:
        _verify_approve(state, call, p)
    elif op == Operation.RAISE_DISPUTE:
        _verify_raise_dispute(state, call, p)
    elif op == Operation.RESOLVE_DISPUTE:
        _verify_resolve_dispute(state, call, p)
    else:
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, f"unsupported operation: {op}")


def apply(state: LedgerState, call: Call, now: int = 0) -> Outcome:
    p = call.payload
    op = call.operation
    if op == Operation.CREATE_ESCROW:
        return _apply_create(state, call, p, now)
    elif op == Operation.SUBMIT_MILESTONE:
        return _apply_submit(state, call, p)
    elif op == Operation.APPROVE_MILESTONE:
        return _apply_approve(state, call, p)
    elif op == Operation.RAISE_DISPUTE:
        return _apply_raise_dispute(state, call, p)
    elif op == Operation.RESOLVE_DISPUTE:
        return _apply_resolve_dispute(state, call, p)
    raise EscrowError(ErrorCode.INVALID_ARGUMENT, f"unsupported operation: {op}")


def _require_escrow_status(escrow: Escrow, status: EscrowStatus) -> None:
    if escrow.status != status:
        raise EscrowError(
            ErrorCode.INVALID_STATE,
            f"escrow is {escrow.status.name}, expected {status.name}",
        )


def _require_milestone_status(milestone: Milestone, status: MilestoneStatus) -> None:
    if milestone.status != status:
        raise EscrowError(
            ErrorCode.INVALID_STATE,
            f"milestone is {milestone.status.name}, expected {status.name}",
        )


def _guard(
    state: LedgerState,
    call: Call,
    p: dict,
    escrow_status: EscrowStatus,
    milestone_status: MilestoneStatus,
) -> None:
    escrow = lookup_escrow(state, p.get("escrow_id"))
    require_authorized(call.operation, escrow, call.caller)
    _require_escrow_status(escrow, escrow_status)
    milestone = lookup_milestone(escrow, p.get("index"))
    _require_milestone_status(milestone, milestone_status)


def _release(ns: LedgerState, escrow_id: int, escrow: Escrow, milestone: Milestone) -> Payout:
    """Mark a milestone paid and book the release against the escrow."""
    milestone.status = MilestoneStatus.APPROVED
    milestone.client_approved = True
    released = checked_add(escrow.released_amount, milestone.amount)
    if released > escrow.total_amount:
        raise EscrowError(ErrorCode.OVERFLOW, "release exceeds escrow total")
    escrow.released_amount = released
    ns.events.append(FundsReleased(escrow_id, escrow.contractor, milestone.amount))
    return Payout(recipient=escrow.contractor, amount=milestone.amount)


def _settle(escrow: Escrow) -> None:
    if escrow.status == EscrowStatus.ACTIVE and is_settled(escrow):
        escrow.status = EscrowStatus.COMPLETED


# --- CREATE_ESCROW ---

def _verify_create(state: LedgerState, call: Call, p: dict) -> None:
    contractor = p.get("contractor")
    arbitrator = p.get("arbitrator")
    if not _is_identity(call.caller):
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, "invalid client identity")
    if not _is_identity(contractor):
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, "invalid contractor identity")
    if not _is_identity(arbitrator):
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, "invalid arbitrator identity")
    if len({call.caller, contractor, arbitrator}) != 3:
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, "client, contractor and arbitrator must differ")

    descriptions = p.get("descriptions")
    amounts = p.get("amounts")
    if not isinstance(descriptions, (list, tuple)) or not isinstance(amounts, (list, tuple)):
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, "descriptions and amounts must be sequences")
    if len(descriptions) == 0:
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, "at least one milestone required")
    if len(descriptions) != len(amounts):
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, "descriptions and amounts length mismatch")
    if not all(isinstance(d, str) for d in descriptions):
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, "descriptions must be text")

    for i, amount in enumerate(amounts):
        require_amount(amount, f"amounts[{i}]")
    total = checked_sum(amounts)
    if total == 0:
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, "escrow total must be > 0")

    funded = require_amount(call.value, "funded amount")
    if funded != total:
        raise EscrowError(
            ErrorCode.AMOUNT_MISMATCH,
            f"funded amount {funded} does not match milestone total {total}",
        )


def _apply_create(state: LedgerState, call: Call, p: dict, now: int) -> Outcome:
    ns = deepcopy(state)
    eid = ns.escrow_count
    amounts = list(p["amounts"])
    total = checked_sum(amounts)

    ns.escrows[eid] = Escrow(
        client=call.caller,
        contractor=p["contractor"],
        arbitrator=p["arbitrator"],
        total_amount=total,
        milestones=[
            Milestone(description=d, amount=a)
            for d, a in zip(p["descriptions"], amounts)
        ],
        created_at=now,
    )
    ns.escrow_count = eid + 1
    ns.events.append(EscrowCreated(eid, call.caller, p["contractor"], total))
    return Outcome(ns, value=eid)


# --- SUBMIT_MILESTONE ---

def _verify_submit(state: LedgerState, call: Call, p: dict) -> None:
    _guard(state, call, p, EscrowStatus.ACTIVE, MilestoneStatus.PENDING)


def _apply_submit(state: LedgerState, call: Call, p: dict) -> Outcome:
    ns = deepcopy(state)
    eid, index = p["escrow_id"], p["index"]
    milestone = ns.escrows[eid].milestones[index]
    milestone.contractor_submitted = True
    milestone.status = MilestoneStatus.SUBMITTED
    ns.events.append(MilestoneSubmitted(eid, index))
    return Outcome(ns)


# --- APPROVE_MILESTONE ---

def _verify_approve(state: LedgerState, call: Call, p: dict) -> None:
    _guard(state, call, p, EscrowStatus.ACTIVE, MilestoneStatus.SUBMITTED)


def _apply_approve(state: LedgerState, call: Call, p: dict) -> Outcome:
    ns = deepcopy(state)
    eid, index = p["escrow_id"], p["index"]
    escrow = ns.escrows[eid]
    milestone = escrow.milestones[index]
    ns.events.append(MilestoneApproved(eid, index, milestone.amount))
    payout = _release(ns, eid, escrow, milestone)
    _settle(escrow)
    return Outcome(ns, payout=payout)


# --- RAISE_DISPUTE ---

def _verify_raise_dispute(state: LedgerState, call: Call, p: dict) -> None:
    _guard(state, call, p, EscrowStatus.ACTIVE, MilestoneStatus.SUBMITTED)


def _apply_raise_dispute(state: LedgerState, call: Call, p: dict) -> Outcome:
    ns = deepcopy(state)
    eid, index = p["escrow_id"], p["index"]
    escrow = ns.escrows[eid]
    escrow.milestones[index].status = MilestoneStatus.DISPUTED
    escrow.status = EscrowStatus.DISPUTED
    ns.events.append(DisputeRaised(eid, index))
    return Outcome(ns)


# --- RESOLVE_DISPUTE ---

def _verify_resolve_dispute(state: LedgerState, call: Call, p: dict) -> None:
    _guard(state, call, p, EscrowStatus.DISPUTED, MilestoneStatus.DISPUTED)
    if not isinstance(p.get("approve_payment"), bool):
        raise EscrowError(ErrorCode.INVALID_ARGUMENT, "approve_payment must be a bool")


def _apply_resolve_dispute(state: LedgerState, call: Call, p: dict) -> Outcome:
    ns = deepcopy(state)
    eid, index = p["escrow_id"], p["index"]
    approve = p["approve_payment"]
    escrow = ns.escrows[eid]
    milestone = escrow.milestones[index]

    payout = None
    if approve:
        payout = _release(ns, eid, escrow, milestone)
    else:
        milestone.status = MilestoneStatus.PENDING
        milestone.contractor_submitted = False

    escrow.status = EscrowStatus.ACTIVE
    ns.events.append(DisputeResolved(eid, index, approve))
    _settle(escrow)
    return Outcome(ns, payout=payout)
