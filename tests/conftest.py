"""Shared test fixtures for the escrow bonds test suite.

Provides:
    - Settings pointing at a throwaway SQLite file per test
    - A started BondingContext wired to an inspectable PaymentService
    - Bonds pre-driven to the interesting lifecycle points
    - Async test support via pytest-asyncio
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from escrow_bonds.config import Settings
from escrow_bonds.context import BondingContext
from escrow_bonds.services.payment_service import PaymentService

ARBITER = "0xA4b1E7e5000000000000000000000000000A4b1E"
ALICE = "0x742d35Cc6634C0532925a3b844Bc9e7595f2bD18"
BOB = "0x8ba1f109551bD432803012645Ac136ddd64DBA72"
MALLORY = "0x00000000000000000000000000000000DeaDBeef"

# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


@pytest.fixture
def arbiter() -> str:
    return ARBITER


@pytest.fixture
def alice() -> str:
    """The creator / first party."""
    return ALICE


@pytest.fixture
def bob() -> str:
    """The second party, who signs and pays in."""
    return BOB


@pytest.fixture
def mallory() -> str:
    """An identity unrelated to any bond."""
    return MALLORY


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        app_env="development",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'bonds.db'}",
        arbiter_identity=ARBITER,
        min_bond_amount=100,
        platform_fee_pct=10,
    )


@pytest.fixture
def rail() -> PaymentService:
    return PaymentService()


@pytest_asyncio.fixture
async def ctx(settings: Settings, rail: PaymentService):
    context = BondingContext(settings, gateway=rail)
    await context.start(use_redis=False)
    yield context
    await context.close()


@pytest_asyncio.fixture
async def created_bond(ctx: BondingContext) -> int:
    """A 1000-unit bond from Alice to Bob, CREATED."""
    created = await ctx.registry.create_bond("Logo design", 1000, BOB, actor=ALICE)
    return created.id


@pytest_asyncio.fixture
async def validated_bond(ctx: BondingContext, created_bond: int) -> int:
    await ctx.registry.sign_bond(created_bond, BOB)
    await ctx.registry.validate_bond(created_bond, ARBITER)
    return created_bond


@pytest_asyncio.fixture
async def confirmed_bond(ctx: BondingContext, validated_bond: int) -> int:
    """Both parties confirmed; 1000 held in escrow."""
    await ctx.registry.confirm(validated_bond, ALICE)
    await ctx.registry.confirm(validated_bond, BOB, tendered_value=1000)
    return validated_bond
