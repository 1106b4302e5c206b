"""Pydantic schemas for the bond API.

These schemas define the request/response shapes for the REST API. They are
separate from the ORM models and the domain value objects to keep clean
boundaries between layers. Business rules (minimum amount, distinct parties)
are enforced by BondRegistry, not here, so every surface reports the same
domain error.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from escrow_bonds import __version__

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreateBondRequest(BaseModel):
    """Request body for registering a new bond. The caller is the creator."""

    name: str = Field(
        ...,
        max_length=200,
        description="Descriptive label for the promised exchange",
        examples=["Logo design for ACME"],
    )
    amount: int = Field(
        ...,
        description="Value the second party must tender, in minimal units",
        examples=[1000],
    )
    second_party: str = Field(
        ...,
        max_length=128,
        description="Identity of the counterpart who signs and pays",
        examples=["0x742d35Cc6634C0532925a3b844Bc9e7595f2bD18"],
    )
    idempotency_key: str | None = Field(
        default=None,
        max_length=128,
        description="Optional idempotency key to prevent duplicate bond creation",
    )


class ConfirmBondRequest(BaseModel):
    """Request body for a party's confirmation."""

    tendered_value: int = Field(
        default=0,
        description="Must be 0 for the creator and exactly the bond amount for the second party",
    )


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class BondCreatedResponse(BaseModel):
    id: int
    name: str
    creator: str
    second_party: str


class BondResponse(BaseModel):
    """Read projection of a bond."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    amount: int
    creator: str
    second_party: str
    status: str
    phase: str
    signed: bool
    validated: bool
    completed: bool
    confirmations: list[str | None]
    escrowed: int
    payout: int | None = None
    fee: int | None = None


class BondEventResponse(BaseModel):
    """Response schema for an audit event."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    bond_id: int
    event_type: str
    old_status: str | None
    new_status: str
    actor: str
    metadata: dict | None = Field(default=None, validation_alias="metadata_json")
    created_at: datetime


class BondActionsResponse(BaseModel):
    """Lightweight status check with the next permitted state machine events."""

    bond_id: int
    status: str
    phase: str
    allowed_events: list[str]
    awaiting_confirmation: list[str]


class SettlementResponse(BaseModel):
    bond_id: int
    recipient: str
    payout: int
    fee: int
    reference: str | None = None


class LedgerResponse(BaseModel):
    accrued_fees: int
    custodial_balance: int
    escrowed: int
    open_bonds: int
    balanced: bool


class FeeWithdrawalResponse(BaseModel):
    amount: int
    recipient: str
    reference: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = __version__
    database: str = "unknown"
    redis: str = "unknown"
