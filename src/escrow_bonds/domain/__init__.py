"""Domain layer — pure business logic with zero framework dependencies."""

from escrow_bonds.domain.enums import (
    BondPhase,
    BondStatus,
    EventType,
    PartyRole,
    TransferDirection,
    TransferPurpose,
)
from escrow_bonds.domain.exceptions import (
    BondingError,
    BondNotFoundError,
    InvalidStateTransitionError,
    TransferError,
    UnauthorizedError,
)
from escrow_bonds.domain.models import (
    NULL_IDENTITY,
    BondCreated,
    BondView,
    FeeSchedule,
    FeeSplit,
    LedgerSnapshot,
)
from escrow_bonds.domain.state_machine import (
    BondStateMachine,
    validate_transition,
)
from escrow_bonds.domain.transfer_protocol import TransferGateway

__all__ = [
    "BondPhase",
    "BondStatus",
    "EventType",
    "PartyRole",
    "TransferDirection",
    "TransferPurpose",
    "BondingError",
    "BondNotFoundError",
    "InvalidStateTransitionError",
    "TransferError",
    "UnauthorizedError",
    "NULL_IDENTITY",
    "BondCreated",
    "BondView",
    "FeeSchedule",
    "FeeSplit",
    "LedgerSnapshot",
    "BondStateMachine",
    "validate_transition",
    "TransferGateway",
]
