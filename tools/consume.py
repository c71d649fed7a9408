"""Consume fixtures and validate them against the escrow ledger."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT))

from escrow_spec.config import ToolConfig  # noqa: E402
from escrow_spec.ledger import EscrowLedger  # noqa: E402
from escrow_spec.state_digest import compute_state_digest  # noqa: E402
from escrow_spec.transfers import BalanceSheet  # noqa: E402
from tools.fixtures_io import call_from_json, state_from_json, state_to_json  # noqa: E402

logger = logging.getLogger(__name__)


def replay_case(case: dict[str, Any]) -> list[str]:
    """Replay one scenario case and describe every divergence."""
    name = case["name"]
    failures: list[str] = []
    timestamp = int(case.get("timestamp", 0))
    sheet = BalanceSheet()
    ledger = EscrowLedger(
        transfer=sheet,
        clock=lambda: timestamp,
        state=state_from_json(case["pre_state"]),
    )

    for i, step in enumerate(case.get("steps", [])):
        result = ledger.execute(call_from_json(step["call"]))
        expected = step["expected"]
        if result.ok != expected["ok"]:
            failures.append(f"{name}[{i}]: ok_mismatch")
            continue
        actual_err = result.error.code.name if result.error else None
        if actual_err != expected["error"]:
            failures.append(f"{name}[{i}]: error_mismatch ({actual_err} != {expected['error']})")
            continue
        if result.value != expected.get("value"):
            failures.append(f"{name}[{i}]: value_mismatch")

    expected = case["expected"]
    digest = compute_state_digest(state_to_json(ledger.state))
    if digest != expected["state_digest"]:
        failures.append(f"{name}: state_digest_mismatch")

    balances = {k.hex(): v for k, v in sheet.balances.items()}
    if balances != expected.get("balances", {}):
        failures.append(f"{name}: balances_mismatch")
    return failures


def consume_file(path: Path) -> tuple[int, list[str]]:
    data = json.loads(path.read_text())
    cases = data.get("cases", [])
    failures: list[str] = []
    for case in cases:
        failures.extend(replay_case(case))
    return len(cases), failures


@click.command()
@click.option(
    "--fixtures",
    default=None,
    help="Fixtures directory or a single fixture JSON file",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
def main(fixtures: Optional[str], verbose: bool) -> None:
    """Replay generated fixtures against the escrow ledger."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    config = ToolConfig.from_env()
    if verbose or config.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    target = Path(fixtures or config.fixtures_dir)
    paths = [target] if target.is_file() else sorted(target.rglob("*.json"))
    if not paths:
        logger.error(f"No fixture files found in {target}")
        sys.exit(1)

    total = 0
    failures: list[str] = []
    for path in paths:
        count, file_failures = consume_file(path)
        total += count
        failures.extend(file_failures)
        logger.info(f"{path}: {count} cases, {len(file_failures)} failures")

    if failures:
        for f in failures:
            click.echo(f"FAIL {f}")
        sys.exit(1)

    click.echo(f"All {total} fixture cases passed")


if __name__ == "__main__":
    main()
