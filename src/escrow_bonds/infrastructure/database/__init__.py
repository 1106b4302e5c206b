"""Database infrastructure — engine, ORM models, and repositories."""

from escrow_bonds.infrastructure.database.engine import (
    close_db,
    create_engine_from_settings,
    create_session_factory,
    init_db,
)
from escrow_bonds.infrastructure.database.orm_models import (
    Base,
    Bond,
    BondEvent,
    FeeAccount,
    ValueTransfer,
)
from escrow_bonds.infrastructure.database.repositories import (
    BondRepository,
    EventRepository,
    FeeAccountRepository,
    TransferRepository,
)

__all__ = [
    "Base",
    "Bond",
    "BondEvent",
    "FeeAccount",
    "ValueTransfer",
    "BondRepository",
    "EventRepository",
    "FeeAccountRepository",
    "TransferRepository",
    "create_engine_from_settings",
    "create_session_factory",
    "init_db",
    "close_db",
]
