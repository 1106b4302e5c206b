"""BondingContext — the one object that owns the engine's state.

The arbiter identity, fee schedule, database engine, transfer gateway, locks
and both services are built here from Settings and handed to whoever needs
them (FastAPI app state, MCP tools, the simulation, tests). There is no
module-level mutable state anywhere else.

Usage:
    ctx = BondingContext(settings)
    await ctx.start()
    created = await ctx.registry.create_bond("Logo design", 1000, bob, actor=alice)
    ...
    await ctx.close()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from escrow_bonds.domain.models import FeeSchedule
from escrow_bonds.infrastructure.database.engine import (
    close_db,
    create_engine_from_settings,
    create_session_factory,
    init_db,
)
from escrow_bonds.infrastructure.database.repositories import FeeAccountRepository
from escrow_bonds.infrastructure.locks import KeyedLocks
from escrow_bonds.infrastructure.redis_client import (
    IdempotencyGuard,
    close_redis,
    connect_redis,
)
from escrow_bonds.logging_config import get_logger
from escrow_bonds.services.bond_registry import BondRegistry
from escrow_bonds.services.fee_ledger import FeeLedger
from escrow_bonds.services.payment_service import PaymentService

if TYPE_CHECKING:
    import redis.asyncio as aioredis

    from escrow_bonds.config import Settings
    from escrow_bonds.domain.transfer_protocol import TransferGateway

logger = get_logger(__name__)


class BondingContext:
    """Wires settings, storage, settlement rail and services together."""

    def __init__(self, settings: Settings, gateway: TransferGateway | None = None) -> None:
        self.settings = settings
        self.fees = FeeSchedule(
            min_amount=settings.min_bond_amount,
            fee_pct=settings.platform_fee_pct,
        )
        self.engine = create_engine_from_settings(settings)
        self.sessions = create_session_factory(self.engine)
        self.gateway: TransferGateway = gateway if gateway is not None else PaymentService()
        self.locks = KeyedLocks()
        self.ledger = FeeLedger(self.sessions, self.gateway, arbiter=settings.arbiter_identity)
        self.registry = BondRegistry(
            self.sessions,
            self.ledger,
            arbiter=settings.arbiter_identity,
            fees=self.fees,
            locks=self.locks,
        )
        self.redis: aioredis.Redis | None = None
        self.idempotency = IdempotencyGuard(None)

    @property
    def arbiter(self) -> str:
        return self.settings.arbiter_identity

    async def start(self, use_redis: bool = True) -> None:
        """Create tables where appropriate, seed the fee account, connect Redis."""
        await init_db(
            self.engine,
            create_tables=self.settings.is_development or self.settings.is_sqlite,
        )
        async with self.sessions.begin() as session:
            await FeeAccountRepository(session).get(for_update=True)

        if use_redis:
            try:
                self.redis = await connect_redis(self.settings.redis_url)
            except Exception as exc:
                logger.warning("context.redis_unavailable", error=str(exc))
                self.redis = None
        self.idempotency = IdempotencyGuard(
            self.redis, ttl_seconds=self.settings.redis_idempotency_ttl_seconds
        )
        logger.info(
            "context.started",
            arbiter=self.arbiter,
            min_amount=self.fees.min_amount,
            fee_pct=self.fees.fee_pct,
            idempotency=self.idempotency.enabled,
        )

    async def close(self) -> None:
        await close_redis(self.redis)
        self.redis = None
        await close_db(self.engine)
