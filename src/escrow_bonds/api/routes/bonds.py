"""Bond REST API routes.

The caller's identity arrives in the X-Actor header. The MCP tools in
mcp_server/tools.py call the same BondRegistry, so both surfaces share one
set of rules.

Routes:
    POST   /api/v1/bonds                 — Register a new bond (caller is creator)
    GET    /api/v1/bonds                 — List bonds, optionally by party/status
    GET    /api/v1/bonds/{id}            — View a bond
    GET    /api/v1/bonds/{id}/actions    — Status plus permitted next events
    GET    /api/v1/bonds/{id}/events     — Audit trail
    POST   /api/v1/bonds/{id}/sign       — Second party signs
    POST   /api/v1/bonds/{id}/validate   — Arbiter validates
    POST   /api/v1/bonds/{id}/confirm    — A party confirms (second party pays)
    POST   /api/v1/bonds/{id}/close      — Arbiter settles
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from escrow_bonds.api.deps import get_actor, get_idempotency, get_registry
from escrow_bonds.domain.enums import BondStatus
from escrow_bonds.infrastructure.redis_client import IdempotencyGuard
from escrow_bonds.logging_config import get_logger
from escrow_bonds.schemas.bond import (
    BondActionsResponse,
    BondCreatedResponse,
    BondEventResponse,
    BondResponse,
    ConfirmBondRequest,
    CreateBondRequest,
    SettlementResponse,
)
from escrow_bonds.services.bond_registry import BondRegistry

router = APIRouter(prefix="/api/v1/bonds", tags=["Bonds"])
logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=BondCreatedResponse,
    status_code=201,
    summary="Register a new bond",
)
async def create_bond(
    request: CreateBondRequest,
    actor: str = Depends(get_actor),
    registry: BondRegistry = Depends(get_registry),
    idempotency: IdempotencyGuard = Depends(get_idempotency),
) -> BondCreatedResponse:
    """Create a bond in CREATED state with the caller as first party."""
    key = f"create-bond:{actor}:{request.idempotency_key}" if request.idempotency_key else None
    if key:
        await idempotency.claim(key)
    try:
        created = await registry.create_bond(
            name=request.name,
            amount=request.amount,
            second_party=request.second_party,
            actor=actor,
        )
    except Exception:
        if key:
            await idempotency.release(key)
        raise
    logger.info("api.bond_created", bond_id=created.id, idempotency_key=request.idempotency_key)
    return BondCreatedResponse(**created.to_dict())


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@router.post("/{bond_id}/sign", response_model=BondResponse, summary="Second party signs")
async def sign_bond(
    bond_id: int,
    actor: str = Depends(get_actor),
    registry: BondRegistry = Depends(get_registry),
) -> BondResponse:
    view = await registry.sign_bond(bond_id, actor)
    return BondResponse(**view.to_dict())


@router.post("/{bond_id}/validate", response_model=BondResponse, summary="Arbiter validates")
async def validate_bond(
    bond_id: int,
    actor: str = Depends(get_actor),
    registry: BondRegistry = Depends(get_registry),
) -> BondResponse:
    view = await registry.validate_bond(bond_id, actor)
    return BondResponse(**view.to_dict())


@router.post("/{bond_id}/confirm", response_model=BondResponse, summary="Confirm fulfilment")
async def confirm_bond(
    bond_id: int,
    request: ConfirmBondRequest,
    actor: str = Depends(get_actor),
    registry: BondRegistry = Depends(get_registry),
) -> BondResponse:
    """The creator confirms with no value; the second party tenders the exact amount."""
    view = await registry.confirm(bond_id, actor, tendered_value=request.tendered_value)
    return BondResponse(**view.to_dict())


@router.post("/{bond_id}/close", response_model=SettlementResponse, summary="Arbiter settles")
async def close_bond(
    bond_id: int,
    actor: str = Depends(get_actor),
    registry: BondRegistry = Depends(get_registry),
) -> SettlementResponse:
    """Pay the creator the amount minus the platform fee and complete the bond."""
    receipt = await registry.close_bond(bond_id, actor)
    return SettlementResponse(**receipt.to_dict())


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=list[BondResponse], summary="List bonds")
async def list_bonds(
    party: str | None = None,
    status: BondStatus | None = None,
    registry: BondRegistry = Depends(get_registry),
) -> list[BondResponse]:
    views = await registry.list_bonds(party=party, status=status)
    return [BondResponse(**v.to_dict()) for v in views]


@router.get("/{bond_id}", response_model=BondResponse, summary="View a bond")
async def get_bond(
    bond_id: int,
    registry: BondRegistry = Depends(get_registry),
) -> BondResponse:
    view = await registry.view_bond(bond_id)
    return BondResponse(**view.to_dict())


@router.get(
    "/{bond_id}/actions",
    response_model=BondActionsResponse,
    summary="Status and permitted next events",
)
async def get_actions(
    bond_id: int,
    registry: BondRegistry = Depends(get_registry),
) -> BondActionsResponse:
    return BondActionsResponse(**await registry.allowed_actions(bond_id))


@router.get(
    "/{bond_id}/events",
    response_model=list[BondEventResponse],
    summary="Audit trail",
)
async def get_events(
    bond_id: int,
    registry: BondRegistry = Depends(get_registry),
) -> list[BondEventResponse]:
    events = await registry.get_events(bond_id)
    return [BondEventResponse.model_validate(e) for e in events]
