#!/usr/bin/env python3
"""Regenerate ledger fixtures by running the scenario suite with ``--output``.

The output directory comes from ``FIXTURES_DIR`` (see ``ToolConfig``); a
relative path is taken from the repository root.
"""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import List

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))

from escrow_spec.config import ToolConfig  # noqa: E402


def fixtures_out(config: ToolConfig) -> Path:
    out = Path(config.fixtures_dir)
    return out if out.is_absolute() else ROOT / out


def build_command(out: Path, verbose: bool = False) -> List[str]:
    return [
        sys.executable,
        "-m",
        "pytest",
        str(ROOT / "tests"),
        "-v" if verbose else "-q",
        "--output",
        str(out),
    ]


def main() -> int:
    config = ToolConfig.from_env()
    cmd = build_command(fixtures_out(config), verbose=config.verbose)
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join([str(ROOT / "src"), str(ROOT)])
    print("Running:", " ".join(cmd))
    return subprocess.call(cmd, env=env, cwd=str(ROOT))


if __name__ == "__main__":
    raise SystemExit(main())
