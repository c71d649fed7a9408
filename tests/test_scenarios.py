"""End-to-end escrow scenarios (also emitted as fixtures)."""

from __future__ import annotations

import random

import pytest

from escrow_spec.audit import audit_state
from escrow_spec.errors import ErrorCode, EscrowError
from escrow_spec.ledger import EscrowLedger
from escrow_spec.test_accounts import ARBITRATOR, CLIENT, CONTRACTOR, MALLORY
from escrow_spec.transfers import BalanceSheet
from escrow_spec.types import (
    Call,
    EscrowStatus,
    FundsReleased,
    MilestoneStatus,
    Operation,
)
from tools.consume import replay_case


def _create_call(amounts, funded=None) -> Call:
    return Call(
        CLIENT,
        Operation.CREATE_ESCROW,
        {
            "contractor": CONTRACTOR,
            "arbitrator": ARBITRATOR,
            "descriptions": [f"milestone {i}" for i in range(len(amounts))],
            "amounts": list(amounts),
        },
        value=sum(amounts) if funded is None else funded,
    )


def _call(caller: bytes, op: Operation, escrow_id: int, index: int, **extra) -> Call:
    payload = {"escrow_id": escrow_id, "index": index}
    payload.update(extra)
    return Call(caller, op, payload)


def test_two_milestones_with_arbitrated_payout(scenario_test) -> None:
    calls = [
        _create_call([30, 70]),
        _call(CONTRACTOR, Operation.SUBMIT_MILESTONE, 0, 0),
        _call(CLIENT, Operation.APPROVE_MILESTONE, 0, 0),
        _call(CONTRACTOR, Operation.SUBMIT_MILESTONE, 0, 1),
        _call(CONTRACTOR, Operation.RAISE_DISPUTE, 0, 1),
        _call(ARBITRATOR, Operation.RESOLVE_DISPUTE, 0, 1, approve_payment=True),
    ]
    ledger, sheet, results = scenario_test(
        "scenarios/end_to_end.json",
        "two_milestones_with_arbitrated_payout",
        calls,
        description="milestone 0 approved directly, milestone 1 paid by ruling",
    )
    assert all(r.ok for r in results)
    assert results[0].value == 0

    escrow = ledger.get_escrow(0)
    assert escrow.released_amount == 100
    assert escrow.status == EscrowStatus.COMPLETED
    assert sheet.balance_of(CONTRACTOR) == 100
    released = [ev.amount for ev in ledger.events(0) if isinstance(ev, FundsReleased)]
    assert released == [30, 70]
    assert audit_state(ledger.state) == []


def test_status_after_first_release(scenario_test) -> None:
    calls = [
        _create_call([30, 70]),
        _call(CONTRACTOR, Operation.SUBMIT_MILESTONE, 0, 0),
        _call(CLIENT, Operation.APPROVE_MILESTONE, 0, 0),
    ]
    ledger, _, _ = scenario_test("scenarios/end_to_end.json", "status_after_first_release", calls)
    escrow = ledger.get_escrow(0)
    assert escrow.released_amount == 30
    assert escrow.status == EscrowStatus.ACTIVE


def test_rejected_dispute_then_resubmission(scenario_test) -> None:
    calls = [
        _create_call([25]),
        _call(CONTRACTOR, Operation.SUBMIT_MILESTONE, 0, 0),
        _call(CLIENT, Operation.RAISE_DISPUTE, 0, 0),
        _call(ARBITRATOR, Operation.RESOLVE_DISPUTE, 0, 0, approve_payment=False),
        _call(CONTRACTOR, Operation.SUBMIT_MILESTONE, 0, 0),
        _call(CLIENT, Operation.APPROVE_MILESTONE, 0, 0),
    ]
    ledger, sheet, results = scenario_test(
        "scenarios/disputes.json", "rejected_dispute_then_resubmission", calls
    )
    assert all(r.ok for r in results)
    assert ledger.get_escrow(0).status == EscrowStatus.COMPLETED
    assert sheet.balance_of(CONTRACTOR) == 25


def test_failures_leave_no_trace(scenario_test) -> None:
    calls = [
        _create_call([10, 20], funded=29),
        _create_call([10, 20]),
        _call(MALLORY, Operation.SUBMIT_MILESTONE, 0, 0),
        _call(CLIENT, Operation.RAISE_DISPUTE, 0, 0),
        _call(CONTRACTOR, Operation.SUBMIT_MILESTONE, 0, 0),
        _call(CONTRACTOR, Operation.SUBMIT_MILESTONE, 0, 1),
        _call(CLIENT, Operation.RAISE_DISPUTE, 0, 1),
        _call(CLIENT, Operation.APPROVE_MILESTONE, 0, 0),
        _call(ARBITRATOR, Operation.RESOLVE_DISPUTE, 0, 0, approve_payment=True),
    ]
    ledger, _, results = scenario_test("scenarios/errors.json", "failures_leave_no_trace", calls)
    codes = [r.error.code if r.error else None for r in results]
    assert codes == [
        ErrorCode.AMOUNT_MISMATCH,
        None,
        ErrorCode.UNAUTHORIZED,
        ErrorCode.INVALID_STATE,
        None,
        None,
        None,
        ErrorCode.INVALID_STATE,
        ErrorCode.INVALID_STATE,
    ]
    assert results[1].value == 0
    assert ledger.get_milestone(0, 0).status == MilestoneStatus.SUBMITTED
    assert audit_state(ledger.state) == []


def test_replay_matches_recorded_case(scenario_test, scenario_cases) -> None:
    calls = [
        _create_call([5, 6, 7]),
        _call(CONTRACTOR, Operation.SUBMIT_MILESTONE, 0, 2),
        _call(CLIENT, Operation.APPROVE_MILESTONE, 0, 2),
    ]
    scenario_test("scenarios/replay.json", "replay_matches_recorded_case", calls)

    # The case just collected is the last one under this path.
    case = scenario_cases["scenarios/replay.json"][-1]
    assert replay_case(case) == []

    tampered = dict(case, expected=dict(case["expected"], state_digest="00" * 32))
    assert replay_case(tampered) == ["replay_matches_recorded_case: state_digest_mismatch"]


_OPS = (
    Operation.SUBMIT_MILESTONE,
    Operation.APPROVE_MILESTONE,
    Operation.RAISE_DISPUTE,
    Operation.RESOLVE_DISPUTE,
)


@pytest.mark.parametrize("seed", range(8))
def test_random_walk_preserves_invariants(seed) -> None:
    rng = random.Random(seed)
    sheet = BalanceSheet()
    ledger = EscrowLedger(transfer=sheet, clock=lambda: 0)
    amounts = [rng.randint(0, 50) for _ in range(rng.randint(1, 5))]
    amounts[0] += 1
    eid = ledger.create_escrow(
        CLIENT, CONTRACTOR, ARBITRATOR, [str(a) for a in amounts], amounts, sum(amounts)
    )

    for _ in range(200):
        op = rng.choice(_OPS)
        caller = rng.choice((CLIENT, CONTRACTOR, ARBITRATOR, MALLORY))
        extra = {"approve_payment": rng.random() < 0.5} if op == Operation.RESOLVE_DISPUTE else {}
        ledger.execute(_call(caller, op, eid, rng.randrange(len(amounts)), **extra))

        escrow = ledger.get_escrow(eid)
        assert escrow.released_amount <= escrow.total_amount
        assert sheet.balance_of(CONTRACTOR) == escrow.released_amount
        assert ledger.held_amount(eid) == escrow.total_amount - escrow.released_amount
        assert audit_state(ledger.state) == []


def test_completed_escrow_rejects_everything(ledger) -> None:
    eid = ledger.create_escrow(CLIENT, CONTRACTOR, ARBITRATOR, ["only"], [8], 8)
    ledger.submit_milestone(CONTRACTOR, eid, 0)
    ledger.approve_milestone(CLIENT, eid, 0)
    before = ledger.state
    for caller, fn, args in (
        (CONTRACTOR, ledger.submit_milestone, (eid, 0)),
        (CLIENT, ledger.approve_milestone, (eid, 0)),
        (CLIENT, ledger.raise_dispute, (eid, 0)),
        (ARBITRATOR, ledger.resolve_dispute, (eid, 0, True)),
    ):
        with pytest.raises(EscrowError) as excinfo:
            fn(caller, *args)
        assert excinfo.value.code == ErrorCode.INVALID_STATE
    assert ledger.state == before
