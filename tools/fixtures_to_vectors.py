#!/usr/bin/env python3
"""Convert ledger fixtures into client-consumable YAML vectors.

Each fixture case becomes one vector carrying its pre-state, the ordered
calls with their expected outcomes, and the expected post-state digest.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT))

from escrow_spec.config import ToolConfig  # noqa: E402
from escrow_spec.state_digest import compute_state_digest  # noqa: E402
from tools.yaml_dump import write_yaml  # noqa: E402


def case_to_vector(case: dict[str, Any]) -> dict[str, Any]:
    expected = case["expected"]
    return {
        "name": case["name"],
        "description": case.get("description", ""),
        "timestamp": case.get("timestamp", 0),
        "pre_state": case["pre_state"],
        "pre_state_digest": compute_state_digest(case["pre_state"]),
        "steps": case.get("steps", []),
        "expected": {
            "state_digest": expected["state_digest"],
            "balances": expected.get("balances", {}),
        },
    }


def convert_file(src: Path, dst: Path) -> int:
    data = json.loads(src.read_text())
    vectors = [case_to_vector(c) for c in data.get("cases", [])]
    dst.parent.mkdir(parents=True, exist_ok=True)
    write_yaml(dst, {"test_vectors": vectors})
    return len(vectors)


def main() -> int:
    config = ToolConfig.from_env()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--fixtures", default=config.fixtures_dir)
    parser.add_argument("--out", default=config.vector_dir)
    args = parser.parse_args()

    src_root = Path(args.fixtures)
    out_root = Path(args.out)
    total = 0
    for src in sorted(src_root.rglob("*.json")):
        dst = out_root / src.relative_to(src_root).with_suffix(".yaml")
        total += convert_file(src, dst)
        print(f"{src} -> {dst}")
    print(f"Wrote {total} vectors")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
