"""Domain enumerations for the bonding engine.

These enums define the canonical states and types used throughout the system.
They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class BondStatus(enum.StrEnum):
    """Stored lifecycle status of a bond.

    Confirmations are tracked separately as two slots, so a VALIDATED bond
    may be unconfirmed, partially confirmed or fully confirmed.
    See domain/state_machine.py for the transition table.
    """

    CREATED = "CREATED"
    SIGNED = "SIGNED"
    VALIDATED = "VALIDATED"
    COMPLETED = "COMPLETED"


class BondPhase(enum.StrEnum):
    """Linear view of a bond's progress, derived from status + confirmation slots."""

    CREATED = "CREATED"
    SIGNED = "SIGNED"
    VALIDATED = "VALIDATED"
    PARTIALLY_CONFIRMED = "PARTIALLY_CONFIRMED"
    FULLY_CONFIRMED = "FULLY_CONFIRMED"
    COMPLETED = "COMPLETED"


class PartyRole(enum.IntEnum):
    """Position of a participant in the bond; doubles as the confirmation slot index."""

    FIRST_PARTY = 0
    SECOND_PARTY = 1


class EventType(enum.StrEnum):
    """Types of audit events recorded in the bond_events table.

    Every transition produces exactly one event.
    """

    BOND_CREATED = "BOND_CREATED"
    BOND_SIGNED = "BOND_SIGNED"
    BOND_VALIDATED = "BOND_VALIDATED"
    FIRST_PARTY_CONFIRMED = "FIRST_PARTY_CONFIRMED"
    SECOND_PARTY_CONFIRMED = "SECOND_PARTY_CONFIRMED"
    BOND_CLOSED = "BOND_CLOSED"


class TransferDirection(enum.StrEnum):
    """Direction of a value movement relative to system custody."""

    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"


class TransferPurpose(enum.StrEnum):
    """Why value moved. Stored on every value_transfers row."""

    ESCROW_INTAKE = "ESCROW_INTAKE"
    BOND_PAYOUT = "BOND_PAYOUT"
    FEE_WITHDRAWAL = "FEE_WITHDRAWAL"
