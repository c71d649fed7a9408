"""Helpers to serialize/deserialize ledger fixtures."""

from __future__ import annotations

from typing import Any

from escrow_spec.types import (
    EVENT_TYPES,
    Call,
    Escrow,
    EscrowStatus,
    Event,
    LedgerState,
    Milestone,
    MilestoneStatus,
    Operation,
)

# Payload/event fields carrying identities (hex on the wire).
_IDENTITY_KEYS = frozenset({"client", "contractor", "arbitrator"})


def _hex_to_bytes(v: str) -> bytes:
    return bytes.fromhex(v)


def _bytes_to_hex(v: bytes) -> str:
    return v.hex()


def _encode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        k: _bytes_to_hex(v) if k in _IDENTITY_KEYS and isinstance(v, bytes) else v
        for k, v in fields.items()
    }


def _decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        k: _hex_to_bytes(v) if k in _IDENTITY_KEYS and isinstance(v, str) else v
        for k, v in fields.items()
    }


def milestone_to_json(m: Milestone) -> dict[str, Any]:
    return {
        "description": m.description,
        "amount": m.amount,
        "status": int(m.status),
        "client_approved": m.client_approved,
        "contractor_submitted": m.contractor_submitted,
    }


def escrow_to_json(escrow_id: int, e: Escrow) -> dict[str, Any]:
    return {
        "id": escrow_id,
        "client": _bytes_to_hex(e.client),
        "contractor": _bytes_to_hex(e.contractor),
        "arbitrator": _bytes_to_hex(e.arbitrator),
        "total_amount": e.total_amount,
        "released_amount": e.released_amount,
        "status": int(e.status),
        "created_at": e.created_at,
        "milestones": [milestone_to_json(m) for m in e.milestones],
    }


def event_to_json(ev: Event) -> dict[str, Any]:
    return {"name": ev.name, **_encode_fields(ev.payload())}


def event_from_json(data: dict[str, Any]) -> Event:
    fields = dict(data)
    cls = EVENT_TYPES[fields.pop("name")]
    return cls(**_decode_fields(fields))


def state_to_json(state: LedgerState) -> dict[str, Any]:
    return {
        "escrow_count": state.escrow_count,
        "escrows": [escrow_to_json(eid, e) for eid, e in sorted(state.escrows.items())],
        "events": [event_to_json(ev) for ev in state.events],
    }


def state_from_json(data: dict[str, Any]) -> LedgerState:
    state = LedgerState(escrow_count=int(data.get("escrow_count", 0)))
    for e in data.get("escrows", []):
        state.escrows[int(e["id"])] = Escrow(
            client=_hex_to_bytes(e["client"]),
            contractor=_hex_to_bytes(e["contractor"]),
            arbitrator=_hex_to_bytes(e["arbitrator"]),
            total_amount=int(e["total_amount"]),
            released_amount=int(e.get("released_amount", 0)),
            status=EscrowStatus(int(e.get("status", 0))),
            created_at=int(e.get("created_at", 0)),
            milestones=[
                Milestone(
                    description=m["description"],
                    amount=int(m["amount"]),
                    status=MilestoneStatus(int(m.get("status", 0))),
                    client_approved=bool(m.get("client_approved", False)),
                    contractor_submitted=bool(m.get("contractor_submitted", False)),
                )
                for m in e.get("milestones", [])
            ],
        )
    state.events = [event_from_json(ev) for ev in data.get("events", [])]
    return state


def call_to_json(call: Call) -> dict[str, Any]:
    return {
        "caller": _bytes_to_hex(call.caller),
        "operation": call.operation.value,
        "payload": _encode_fields(call.payload),
        "value": call.value,
    }


def call_from_json(data: dict[str, Any]) -> Call:
    return Call(
        caller=_hex_to_bytes(data["caller"]),
        operation=Operation(data["operation"]),
        payload=_decode_fields(dict(data.get("payload", {}))),
        value=int(data.get("value", 0)),
    )
