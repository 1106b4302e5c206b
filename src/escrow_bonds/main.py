"""FastAPI application entry point for the escrow bonding engine.

Lifecycle:
    1. Startup: Initialize logging, database (tables in dev/SQLite), fee account, Redis.
    2. Running: Serve REST API + MCP tools on a single Uvicorn process.
    3. Shutdown: Close database and Redis connections gracefully.

The MCP server is mounted at /mcp so agents can discover tools alongside the
REST API at /api/v1/*.

Run with:
    uvicorn escrow_bonds.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from escrow_bonds import __version__
from escrow_bonds.api.middleware import setup_middleware
from escrow_bonds.api.routes.bonds import router as bonds_router
from escrow_bonds.api.routes.health import router as health_router
from escrow_bonds.api.routes.ledger import router as ledger_router
from escrow_bonds.config import Settings, get_settings
from escrow_bonds.context import BondingContext
from escrow_bonds.logging_config import get_logger, setup_logging
from escrow_bonds.mcp_server.tools import build_mcp_server

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = settings or get_settings()
    context = BondingContext(settings)
    mcp = build_mcp_server(context)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging(
            log_level=settings.app_log_level,
            json_logs=not settings.is_development,
        )
        logger = get_logger(__name__)
        logger.info("app.starting", env=settings.app_env, debug=settings.app_debug)

        await context.start()
        async with AsyncExitStack() as stack:
            if settings.mcp_transport == "streamable-http":
                await stack.enter_async_context(mcp.session_manager.run())
            logger.info("app.started", host=settings.app_host, port=settings.app_port)

            yield

            logger.info("app.shutting_down")
        await context.close()
        logger.info("app.stopped")

    app = FastAPI(
        title="Escrow Bonds",
        description=(
            "Two-party escrow bonds with a single arbiter: register, sign, "
            "validate, confirm with payment, settle minus a platform fee."
        ),
        version=__version__,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )
    app.state.context = context

    # --- Middleware ---
    setup_middleware(app)

    # --- REST API Routes ---
    app.include_router(health_router)
    app.include_router(bonds_router)
    app.include_router(ledger_router)

    # --- MCP Server (mounted as sub-application) ---
    if settings.mcp_transport == "streamable-http":
        app.mount("/mcp", mcp.streamable_http_app())
    else:
        app.mount("/mcp", mcp.sse_app())

    return app


# The app instance used by Uvicorn
app = create_app()
