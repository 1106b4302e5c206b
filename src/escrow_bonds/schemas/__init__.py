"""Pydantic API schemas."""

from escrow_bonds.schemas.bond import (
    BondActionsResponse,
    BondCreatedResponse,
    BondEventResponse,
    BondResponse,
    ConfirmBondRequest,
    CreateBondRequest,
    FeeWithdrawalResponse,
    HealthResponse,
    LedgerResponse,
    SettlementResponse,
)

__all__ = [
    "BondActionsResponse",
    "BondCreatedResponse",
    "BondEventResponse",
    "BondResponse",
    "ConfirmBondRequest",
    "CreateBondRequest",
    "FeeWithdrawalResponse",
    "HealthResponse",
    "LedgerResponse",
    "SettlementResponse",
]
