"""SQLAlchemy 2.0 ORM models for the bonding engine.

Four tables:
    1. bonds            — One row per bond, keyed by a monotonic integer id.
    2. bond_events      — Append-only audit log of every transition.
    3. fee_accounts     — Single row holding accrued fees and custodial balance.
    4. value_transfers  — Journal of every value movement in or out of custody.

Design decisions:
    - Integer ids with AUTOINCREMENT semantics so ids are never reused.
    - BigInteger minimal units for all amounts; fee arithmetic stays integral.
    - JSON (JSONB on PostgreSQL) for event metadata.
    - CHECK constraints mirror the domain invariants at the DB level.
    - bond_events and value_transfers are append-only at the application level.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

FEE_ACCOUNT_ID = 1

_JSON = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def _set_updated_at(mapper, connection, target):  # noqa: ANN001
    """SQLAlchemy event listener that updates `updated_at` before flush."""
    if hasattr(target, "updated_at"):
        target.updated_at = datetime.now(UTC)


# ---------------------------------------------------------------------------
# 1. bonds
# ---------------------------------------------------------------------------
class Bond(Base):
    """A promised exchange between a creator (first party) and a second party."""

    __tablename__ = "bonds"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # --- Terms ---
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Value the second party must tender, in minimal units",
    )

    # --- Participants (position 0 and 1) ---
    creator: Mapped[str] = mapped_column(String(128), nullable=False)
    second_party: Mapped[str] = mapped_column(String(128), nullable=False)

    # --- Lifecycle ---
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="CREATED",
        comment="Current lifecycle status (guarded by BondStateMachine)",
    )
    first_confirmation: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        default=None,
        comment="Confirmation slot 0: set once by the creator",
    )
    second_confirmation: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        default=None,
        comment="Confirmation slot 1: set once by the second party with payment",
    )

    # --- Financials ---
    escrowed: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        comment="Value currently held in custody for this bond",
    )
    payout: Mapped[int | None] = mapped_column(BigInteger, nullable=True, default=None)
    fee: Mapped[int | None] = mapped_column(BigInteger, nullable=True, default=None)
    settlement_reference: Mapped[str | None] = mapped_column(
        String(80),
        nullable=True,
        default=None,
        comment="Transfer reference of the payout to the first party",
    )

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    events: Mapped[list[BondEvent]] = relationship(
        "BondEvent",
        back_populates="bond",
        cascade="all, delete-orphan",
        order_by="BondEvent.id.asc()",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('CREATED', 'SIGNED', 'VALIDATED', 'COMPLETED')",
            name="ck_bond_valid_status",
        ),
        CheckConstraint("amount > 0", name="ck_bond_positive_amount"),
        CheckConstraint("creator <> second_party", name="ck_bond_distinct_parties"),
        CheckConstraint("escrowed >= 0", name="ck_bond_escrow_non_negative"),
        Index("idx_bond_status", "status"),
        Index("idx_bond_creator", "creator"),
        Index("idx_bond_second_party", "second_party"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<Bond id={self.id} status={self.status} amount={self.amount}>"


# ---------------------------------------------------------------------------
# 2. bond_events (Append-Only Audit Log)
# ---------------------------------------------------------------------------
class BondEvent(Base):
    """Immutable audit record of a single bond transition."""

    __tablename__ = "bond_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bond_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("bonds.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    old_status: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        comment="Bond status before this event (null for creation)",
    )
    new_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor: Mapped[str] = mapped_column(String(128), nullable=False)
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata",
        _JSON,
        nullable=True,
        default=None,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    bond: Mapped[Bond] = relationship("Bond", back_populates="events")

    __table_args__ = (
        Index("idx_event_bond", "bond_id"),
        Index("idx_event_type", "event_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<BondEvent id={self.id} bond={self.bond_id} type={self.event_type} "
            f"{self.old_status}->{self.new_status}>"
        )


# ---------------------------------------------------------------------------
# 3. fee_accounts
# ---------------------------------------------------------------------------
class FeeAccount(Base):
    """The platform's fee accumulator and custody total. Exactly one row."""

    __tablename__ = "fee_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=FEE_ACCOUNT_ID)
    accrued_fees: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    custodial_balance: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        comment="Unsettled escrow plus unwithdrawn accrued fees",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint("accrued_fees >= 0", name="ck_fee_accrued_non_negative"),
        CheckConstraint("custodial_balance >= accrued_fees", name="ck_fee_custody_covers_fees"),
    )

    def __repr__(self) -> str:
        return f"<FeeAccount accrued={self.accrued_fees} custodial={self.custodial_balance}>"


# ---------------------------------------------------------------------------
# 4. value_transfers (Append-Only Journal)
# ---------------------------------------------------------------------------
class ValueTransfer(Base):
    """One movement of value into or out of system custody."""

    __tablename__ = "value_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bond_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("bonds.id", ondelete="SET NULL"),
        nullable=True,
        comment="Null for fee withdrawals",
    )
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    purpose: Mapped[str] = mapped_column(String(20), nullable=False)
    counterparty: Mapped[str] = mapped_column(String(128), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reference: Mapped[str] = mapped_column(String(80), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transfer_positive_amount"),
        CheckConstraint("direction IN ('INBOUND', 'OUTBOUND')", name="ck_transfer_direction"),
        Index("idx_transfer_bond", "bond_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ValueTransfer id={self.id} {self.direction} {self.purpose} "
            f"amount={self.amount} ref={self.reference}>"
        )


event.listen(Bond, "before_update", _set_updated_at)
event.listen(FeeAccount, "before_update", _set_updated_at)
