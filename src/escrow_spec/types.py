"""Core types for the milestone escrow ledger.

Records are plain dataclasses owned by `LedgerState`; the ledger hands out
copies only. Identities are opaque 32-byte references and amounts are
non-negative integers bounded by `config.MAX_AMOUNT`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, ClassVar, Dict, List, Optional


class MilestoneStatus(IntEnum):
    PENDING = 0
    SUBMITTED = 1
    APPROVED = 2
    DISPUTED = 3


class EscrowStatus(IntEnum):
    ACTIVE = 0
    DISPUTED = 1
    COMPLETED = 2
    # Declared for compatibility; no operation transitions into it.
    CANCELLED = 3


class Role(Enum):
    CLIENT = "client"
    CONTRACTOR = "contractor"
    ARBITRATOR = "arbitrator"


class Operation(Enum):
    CREATE_ESCROW = "create_escrow"
    SUBMIT_MILESTONE = "submit_milestone"
    APPROVE_MILESTONE = "approve_milestone"
    RAISE_DISPUTE = "raise_dispute"
    RESOLVE_DISPUTE = "resolve_dispute"


@dataclass
class Milestone:
    description: str
    amount: int
    status: MilestoneStatus = MilestoneStatus.PENDING
    client_approved: bool = False
    contractor_submitted: bool = False


@dataclass
class Escrow:
    client: bytes
    contractor: bytes
    arbitrator: bytes
    total_amount: int
    released_amount: int = 0
    status: EscrowStatus = EscrowStatus.ACTIVE
    milestones: List[Milestone] = field(default_factory=list)
    created_at: int = 0

    @property
    def held_amount(self) -> int:
        return self.total_amount - self.released_amount

    def role_of(self, identity: bytes) -> Optional[Role]:
        if identity == self.client:
            return Role.CLIENT
        if identity == self.contractor:
            return Role.CONTRACTOR
        if identity == self.arbitrator:
            return Role.ARBITRATOR
        return None


# --- Events ---


@dataclass(frozen=True)
class Event:
    name: ClassVar[str] = "Event"
    escrow_id: int

    def payload(self) -> Dict[str, Any]:
        return dict(vars(self))


@dataclass(frozen=True)
class EscrowCreated(Event):
    name: ClassVar[str] = "EscrowCreated"
    client: bytes
    contractor: bytes
    total_amount: int


@dataclass(frozen=True)
class MilestoneSubmitted(Event):
    name: ClassVar[str] = "MilestoneSubmitted"
    index: int


@dataclass(frozen=True)
class MilestoneApproved(Event):
    name: ClassVar[str] = "MilestoneApproved"
    index: int
    amount: int


@dataclass(frozen=True)
class FundsReleased(Event):
    name: ClassVar[str] = "FundsReleased"
    contractor: bytes
    amount: int


@dataclass(frozen=True)
class DisputeRaised(Event):
    name: ClassVar[str] = "DisputeRaised"
    index: int


@dataclass(frozen=True)
class DisputeResolved(Event):
    name: ClassVar[str] = "DisputeResolved"
    index: int
    approved: bool


EVENT_TYPES: Dict[str, type] = {
    cls.name: cls
    for cls in (
        EscrowCreated,
        MilestoneSubmitted,
        MilestoneApproved,
        FundsReleased,
        DisputeRaised,
        DisputeResolved,
    )
}


# --- Calls ---


@dataclass
class Call:
    """A single actor request against the ledger.

    `value` is the amount attached by the caller; only `CREATE_ESCROW`
    accepts a non-zero value.
    """

    caller: bytes
    operation: Operation
    payload: Dict[str, Any] = field(default_factory=dict)
    value: int = 0


@dataclass
class Payout:
    recipient: bytes
    amount: int


# --- LedgerState ---


@dataclass
class LedgerState:
    escrows: Dict[int, Escrow] = field(default_factory=dict)
    escrow_count: int = 0
    events: List[Event] = field(default_factory=list)
