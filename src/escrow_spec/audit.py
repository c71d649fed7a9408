"""Ledger invariant checks."""

from __future__ import annotations

from typing import Dict, List

from .escrow import is_settled
from .types import EscrowStatus, FundsReleased, LedgerState, MilestoneStatus

_SUBMITTED_STATES = frozenset({
    MilestoneStatus.SUBMITTED,
    MilestoneStatus.DISPUTED,
    MilestoneStatus.APPROVED,
})


def audit_state(state: LedgerState) -> List[str]:
    """Return a description of every invariant the state violates."""
    problems: List[str] = []

    released_by_events: Dict[int, int] = {}
    for ev in state.events:
        if isinstance(ev, FundsReleased):
            released_by_events[ev.escrow_id] = released_by_events.get(ev.escrow_id, 0) + ev.amount

    if state.escrow_count != len(state.escrows):
        problems.append(f"escrow_count {state.escrow_count} != {len(state.escrows)} records")

    for eid, escrow in sorted(state.escrows.items()):
        tag = f"escrow {eid}"
        if escrow.total_amount != sum(m.amount for m in escrow.milestones):
            problems.append(f"{tag}: total_amount differs from milestone sum")
        if escrow.released_amount > escrow.total_amount:
            problems.append(f"{tag}: released_amount exceeds total_amount")
        paid = sum(m.amount for m in escrow.milestones if m.status == MilestoneStatus.APPROVED)
        if paid != escrow.released_amount:
            problems.append(f"{tag}: released_amount {escrow.released_amount} != approved sum {paid}")
        if released_by_events.get(eid, 0) != escrow.released_amount:
            problems.append(f"{tag}: FundsReleased events do not sum to released_amount")
        if (escrow.status == EscrowStatus.COMPLETED) != is_settled(escrow):
            problems.append(f"{tag}: status {escrow.status.name} inconsistent with settlement")
        if escrow.status == EscrowStatus.CANCELLED:
            problems.append(f"{tag}: unreachable CANCELLED status")

        disputed = [m for m in escrow.milestones if m.status == MilestoneStatus.DISPUTED]
        if escrow.status == EscrowStatus.DISPUTED and len(disputed) != 1:
            problems.append(f"{tag}: disputed escrow must have exactly one disputed milestone")
        if escrow.status != EscrowStatus.DISPUTED and disputed:
            problems.append(f"{tag}: disputed milestone in {escrow.status.name} escrow")

        for i, m in enumerate(escrow.milestones):
            if m.client_approved and m.status != MilestoneStatus.APPROVED:
                problems.append(f"{tag}[{i}]: client_approved without APPROVED status")
            if m.contractor_submitted and m.status not in _SUBMITTED_STATES:
                problems.append(f"{tag}[{i}]: contractor_submitted in {m.status.name}")

    return problems
