"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject the services owned
by the BondingContext stored on ``app.state`` and the caller's identity.
"""

from __future__ import annotations

from fastapi import Depends, Header, Request

from escrow_bonds.context import BondingContext
from escrow_bonds.infrastructure.redis_client import IdempotencyGuard
from escrow_bonds.logging_config import bind_actor
from escrow_bonds.services.bond_registry import BondRegistry
from escrow_bonds.services.fee_ledger import FeeLedger


def get_context(request: Request) -> BondingContext:
    """Provide the application's BondingContext."""
    return request.app.state.context


def get_registry(context: BondingContext = Depends(get_context)) -> BondRegistry:
    return context.registry


def get_ledger(context: BondingContext = Depends(get_context)) -> FeeLedger:
    return context.ledger


def get_idempotency(context: BondingContext = Depends(get_context)) -> IdempotencyGuard:
    return context.idempotency


def get_actor(x_actor: str = Header(..., alias="X-Actor", min_length=1)) -> str:
    """The calling identity, as asserted by the upstream authentication layer."""
    bind_actor(x_actor)
    return x_actor
