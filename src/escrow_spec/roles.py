"""Role-based authorization policy for ledger operations."""

from __future__ import annotations

from typing import Dict, FrozenSet

from .errors import ErrorCode, EscrowError
from .types import Escrow, Operation, Role

# CREATE_ESCROW is open to any identity: the caller becomes the client.
_POLICY: Dict[Operation, FrozenSet[Role]] = {
    Operation.SUBMIT_MILESTONE: frozenset({Role.CONTRACTOR}),
    Operation.APPROVE_MILESTONE: frozenset({Role.CLIENT}),
    Operation.RAISE_DISPUTE: frozenset({Role.CLIENT, Role.CONTRACTOR}),
    Operation.RESOLVE_DISPUTE: frozenset({Role.ARBITRATOR}),
}


def allowed_roles(op: Operation) -> FrozenSet[Role]:
    return _POLICY.get(op, frozenset())


def is_authorized(op: Operation, escrow: Escrow, caller: bytes) -> bool:
    """Return True if `caller` holds a role on `escrow` permitted for `op`."""
    role = escrow.role_of(caller)
    return role is not None and role in allowed_roles(op)


def require_authorized(op: Operation, escrow: Escrow, caller: bytes) -> None:
    if not is_authorized(op, escrow, caller):
        roles = "/".join(sorted(r.value for r in allowed_roles(op))) or "nobody"
        raise EscrowError(ErrorCode.UNAUTHORIZED, f"{op.value} requires {roles}")
