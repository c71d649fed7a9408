"""Read-only query specs."""

from __future__ import annotations

import pytest

from escrow_spec.errors import ErrorCode, EscrowError
from escrow_spec.test_accounts import ARBITRATOR, CLIENT, CONTRACTOR
from escrow_spec.types import MilestoneStatus


def _funded(ledger, amounts=(30, 70)) -> int:
    descriptions = [f"m{i}" for i in range(len(amounts))]
    return ledger.create_escrow(CLIENT, CONTRACTOR, ARBITRATOR, descriptions, list(amounts), sum(amounts))


def test_get_milestone_count(ledger) -> None:
    eid = _funded(ledger, amounts=(1, 2, 3))
    assert ledger.get_milestone_count(eid) == 3


def test_get_milestone_count_unknown_escrow(ledger) -> None:
    assert ledger.get_milestone_count(99) == 0


def test_get_milestone_out_of_range(ledger) -> None:
    eid = _funded(ledger)
    with pytest.raises(EscrowError) as excinfo:
        ledger.get_milestone(eid, 2)
    assert excinfo.value.code == ErrorCode.INVALID_REFERENCE


def test_get_milestone_unknown_escrow(ledger) -> None:
    with pytest.raises(EscrowError) as excinfo:
        ledger.get_milestone(5, 0)
    assert excinfo.value.code == ErrorCode.INVALID_REFERENCE


def test_get_escrow_unknown(ledger) -> None:
    with pytest.raises(EscrowError) as excinfo:
        ledger.get_escrow(0)
    assert excinfo.value.code == ErrorCode.INVALID_REFERENCE


def test_queries_return_copies(ledger) -> None:
    eid = _funded(ledger)
    m = ledger.get_milestone(eid, 0)
    m.status = MilestoneStatus.APPROVED
    m.amount = 10**6
    escrow = ledger.get_escrow(eid)
    escrow.released_amount = 100
    escrow.milestones.clear()
    state = ledger.state
    state.escrows.clear()

    assert ledger.get_milestone(eid, 0).status == MilestoneStatus.PENDING
    assert ledger.get_milestone(eid, 0).amount == 30
    assert ledger.get_escrow(eid).released_amount == 0
    assert ledger.get_milestone_count(eid) == 2


def test_held_amount(ledger) -> None:
    eid = _funded(ledger)
    assert ledger.held_amount(eid) == 100
    ledger.submit_milestone(CONTRACTOR, eid, 1)
    ledger.approve_milestone(CLIENT, eid, 1)
    assert ledger.held_amount(eid) == 30
    assert ledger.held_amount(42) == 0
    assert ledger.total_held() == 30


def test_counts_ignore_non_index_ids(ledger) -> None:
    _funded(ledger, amounts=(5,))
    _funded(ledger, amounts=(1, 2, 3))
    assert ledger.get_milestone_count(True) == 0
    assert ledger.get_milestone_count([1]) == 0
    assert ledger.get_milestone_count(-1) == 0
    assert ledger.held_amount(True) == 0
    assert ledger.held_amount("1") == 0
