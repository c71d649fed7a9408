"""Canonical ledger state digest (v1)."""
from __future__ import annotations

from typing import Any

from blake3 import blake3


def _hex_to_bytes(value: str | None) -> bytes:
    if value is None:
        return b""
    if not isinstance(value, str):
        raise TypeError("hex value must be string")
    v = value[2:] if value.startswith(("0x", "0X")) else value
    if v == "":
        return b""
    return bytes.fromhex(v)


def _u8(value: int) -> bytes:
    return int(value).to_bytes(1, "big", signed=False)


def _u64_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u64 must be non-negative")
    return int(value).to_bytes(8, "big", signed=False)


def _u256_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u256 must be non-negative")
    return int(value).to_bytes(32, "big", signed=False)


def _identity(value: str) -> bytes:
    raw = _hex_to_bytes(value)
    if len(raw) != 32:
        raise ValueError(f"identity must be 32 bytes, got {len(raw)}")
    return raw


def compute_state_digest(state: dict[str, Any]) -> str:
    """Compute state digest v1 from a serialized ledger state.

    Escrows are encoded in id order, milestones in their stored order, and
    the result hashed with BLAKE3-256. The event log contributes its length
    only.
    """
    buf = bytearray()
    buf += _u64_be(int(state.get("escrow_count", 0)))
    buf += _u64_be(len(state.get("events", [])))

    escrows = sorted(state.get("escrows", []), key=lambda e: int(e["id"]))
    for esc in escrows:
        buf += _u64_be(int(esc["id"]))
        for role in ("client", "contractor", "arbitrator"):
            buf += _identity(esc[role])
        buf += _u256_be(int(esc["total_amount"]))
        buf += _u256_be(int(esc["released_amount"]))
        buf += _u8(int(esc["status"]))
        buf += _u64_be(int(esc.get("created_at", 0)))

        milestones = esc.get("milestones", [])
        buf += _u64_be(len(milestones))
        for m in milestones:
            desc = m.get("description", "").encode("utf-8")
            buf += _u64_be(len(desc))
            buf += desc
            buf += _u256_be(int(m["amount"]))
            buf += _u8(int(m["status"]))
            flags = (1 if m.get("client_approved") else 0) | (2 if m.get("contractor_submitted") else 0)
            buf += _u8(flags)

    return blake3(buf).hexdigest()
