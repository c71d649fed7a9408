"""Escrow ledger configuration constants.

Amounts follow the 256-bit unsigned integer model of the ledger's native unit;
identities are opaque 32-byte references.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

# Identities
IDENTITY_LEN = 32
ZERO_IDENTITY = bytes(IDENTITY_LEN)

# Amounts
AMOUNT_BITS = 256
MAX_AMOUNT = (1 << AMOUNT_BITS) - 1

# Tooling defaults
DEFAULT_FIXTURES_DIR = "fixtures"
DEFAULT_VECTOR_DIR = "vectors"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("true", "1", "yes")


@dataclass
class ToolConfig:
    """Settings shared by the fixture tools."""

    fixtures_dir: str = DEFAULT_FIXTURES_DIR
    vector_dir: str = DEFAULT_VECTOR_DIR
    verbose: bool = False

    @classmethod
    def from_env(cls) -> "ToolConfig":
        """Load configuration from environment variables."""
        return cls(
            fixtures_dir=os.environ.get("FIXTURES_DIR", DEFAULT_FIXTURES_DIR),
            vector_dir=os.environ.get("VECTOR_DIR", DEFAULT_VECTOR_DIR),
            verbose=_env_flag("VERBOSE"),
        )
