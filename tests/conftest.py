"""Pytest hooks to generate ledger fixtures (EEST-style)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional, Sequence

import pytest

from escrow_spec.ledger import EscrowLedger, TransitionResult
from escrow_spec.state_digest import compute_state_digest
from escrow_spec.transfers import BalanceSheet
from escrow_spec.types import Call, LedgerState
from tools.fixtures_io import call_to_json, state_to_json

FIXED_TIMESTAMP = 1_700_000_000

_SCENARIO_CASES: dict[str, list[dict[str, Any]]] = {}


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--output",
        action="store",
        default=None,
        help="Output directory for generated fixtures",
    )


@pytest.fixture
def sheet() -> BalanceSheet:
    return BalanceSheet()


@pytest.fixture
def ledger(sheet: BalanceSheet) -> EscrowLedger:
    return EscrowLedger(transfer=sheet, clock=lambda: FIXED_TIMESTAMP)


ScenarioRun = tuple[EscrowLedger, BalanceSheet, list[TransitionResult]]


@pytest.fixture
def scenario_test() -> Callable[..., ScenarioRun]:
    """Run calls against a fresh ledger and collect the case as a fixture."""

    def _scenario_test(
        rel_path: str,
        name: str,
        calls: Sequence[Call],
        pre_state: Optional[LedgerState] = None,
        description: str = "",
    ) -> ScenarioRun:
        pre_state = pre_state if pre_state is not None else LedgerState()
        pre_json = state_to_json(pre_state)
        sheet = BalanceSheet()
        ledger = EscrowLedger(transfer=sheet, clock=lambda: FIXED_TIMESTAMP, state=pre_state)

        steps = []
        results = []
        for call in calls:
            result = ledger.execute(call)
            results.append(result)
            steps.append(
                {
                    "call": call_to_json(call),
                    "expected": {
                        "ok": result.ok,
                        "error": result.error.code.name if result.error else None,
                        "value": result.value,
                    },
                }
            )

        post_json = state_to_json(ledger.state)
        _SCENARIO_CASES.setdefault(rel_path, []).append(
            {
                "name": name,
                "description": description,
                "timestamp": FIXED_TIMESTAMP,
                "pre_state": pre_json,
                "steps": steps,
                "expected": {
                    "post_state": post_json,
                    "state_digest": compute_state_digest(post_json),
                    "balances": {k.hex(): v for k, v in sheet.balances.items()},
                },
            }
        )
        return ledger, sheet, results

    return _scenario_test


@pytest.fixture
def scenario_cases() -> dict[str, list[dict[str, Any]]]:
    """Cases collected so far in this session, keyed by fixture path."""
    return _SCENARIO_CASES


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    output_dir = session.config.getoption("--output")
    if not output_dir:
        return

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    for rel_path, cases in _SCENARIO_CASES.items():
        if not cases:
            continue
        target = out / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"cases": cases}, indent=2))
