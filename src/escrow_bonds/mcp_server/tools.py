"""MCP tool definitions for the escrow bonding engine.

These tools expose BondRegistry and FeeLedger via the Model Context Protocol,
so agents can discover and call them programmatically.

Tools:
    - create_bond: Register a new bond (caller is the first party)
    - sign_bond: Second party signs
    - validate_bond: Arbiter validates a signed bond
    - confirm_bond: A party confirms; the second party tenders the amount
    - close_bond: Arbiter settles a fully confirmed bond
    - check_bond: Current status and permitted next events
    - ledger_snapshot: Accrued fees and custody (arbiter)
    - withdraw_fees: Pay accrued fees to the arbiter

The MCP server is mounted into FastAPI at /mcp via app.mount(). Tools take the
caller identity as an explicit ``actor`` argument since there are no request
headers. Domain rejections come back as ``{"error": CODE, "message": ...}``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from escrow_bonds.domain.exceptions import BondingError
from escrow_bonds.logging_config import bind_actor, get_logger

if TYPE_CHECKING:
    from escrow_bonds.context import BondingContext

logger = get_logger(__name__)


def _rejected(tool: str, exc: BondingError) -> dict:
    logger.warning(f"mcp.{tool}.rejected", code=exc.code, error=exc.message)
    return {"error": exc.code, "message": exc.message}


class BondTools:
    """Tool implementations bound to one BondingContext."""

    def __init__(self, context: BondingContext) -> None:
        self._context = context

    async def create_bond(self, actor: str, name: str, amount: int, second_party: str) -> dict:
        """Register a new escrow bond with yourself as the first party.

        Args:
            actor: Your identity (the creator, who is paid on close).
            name: Descriptive label for the promised exchange.
            amount: Value the second party must pay in, in minimal units.
            second_party: Identity of the counterpart who signs and pays.

        Returns:
            The new bond's id, name and parties.
        """
        bind_actor(actor)
        try:
            created = await self._context.registry.create_bond(
                name=name, amount=amount, second_party=second_party, actor=actor
            )
        except BondingError as exc:
            return _rejected("create_bond", exc)
        return {
            **created.to_dict(),
            "message": "Bond created. Next step: the second party signs.",
        }

    async def sign_bond(self, actor: str, bond_id: int) -> dict:
        """Sign a bond as its second party.

        Args:
            actor: Your identity; must be the bond's second party.
            bond_id: Id of the bond.
        """
        bind_actor(actor)
        try:
            view = await self._context.registry.sign_bond(bond_id, actor)
        except BondingError as exc:
            return _rejected("sign_bond", exc)
        return {**view.to_dict(), "message": "Bond signed. Awaiting arbiter validation."}

    async def validate_bond(self, actor: str, bond_id: int) -> dict:
        """Validate a signed bond. Arbiter only.

        Args:
            actor: Your identity; must be the arbiter.
            bond_id: Id of the bond.
        """
        bind_actor(actor)
        try:
            view = await self._context.registry.validate_bond(bond_id, actor)
        except BondingError as exc:
            return _rejected("validate_bond", exc)
        return {**view.to_dict(), "message": "Bond validated. Both parties may now confirm."}

    async def confirm_bond(self, actor: str, bond_id: int, tendered_value: int = 0) -> dict:
        """Confirm fulfilment of a validated bond.

        Args:
            actor: Your identity; the bond's first or second party.
            bond_id: Id of the bond.
            tendered_value: 0 for the first party, exactly the bond amount
                for the second party.
        """
        bind_actor(actor)
        try:
            view = await self._context.registry.confirm(bond_id, actor, tendered_value)
        except BondingError as exc:
            return _rejected("confirm_bond", exc)
        return view.to_dict()

    async def close_bond(self, actor: str, bond_id: int) -> dict:
        """Settle a fully confirmed bond. Arbiter only.

        Pays the first party the amount minus the platform fee.

        Args:
            actor: Your identity; must be the arbiter.
            bond_id: Id of the bond.
        """
        bind_actor(actor)
        try:
            receipt = await self._context.registry.close_bond(bond_id, actor)
        except BondingError as exc:
            return _rejected("close_bond", exc)
        return {**receipt.to_dict(), "message": "Bond closed and settled."}

    async def check_bond(self, bond_id: int) -> dict:
        """Check a bond's status, confirmations and permitted next events.

        Args:
            bond_id: Id of the bond.
        """
        try:
            view = await self._context.registry.view_bond(bond_id)
            actions = await self._context.registry.allowed_actions(bond_id)
        except BondingError as exc:
            return _rejected("check_bond", exc)
        return {**view.to_dict(), **actions}

    async def ledger_snapshot(self, actor: str) -> dict:
        """Read accrued fees, custodial balance and open escrow. Arbiter only."""
        bind_actor(actor)
        try:
            snapshot = await self._context.ledger.snapshot(actor)
        except BondingError as exc:
            return _rejected("ledger_snapshot", exc)
        return snapshot.to_dict()

    async def withdraw_fees(self, actor: str) -> dict:
        """Transfer all accrued fees to the arbiter. Arbiter only."""
        bind_actor(actor)
        try:
            withdrawal = await self._context.ledger.withdraw_fees(actor)
        except BondingError as exc:
            return _rejected("withdraw_fees", exc)
        return withdrawal.to_dict()


def build_mcp_server(context: BondingContext) -> FastMCP:
    """Create the FastMCP server with every bond tool registered."""
    mcp = FastMCP("Escrow Bonds", json_response=True)
    tools = BondTools(context)
    for tool in (
        tools.create_bond,
        tools.sign_bond,
        tools.validate_bond,
        tools.confirm_bond,
        tools.close_bond,
        tools.check_bond,
        tools.ledger_snapshot,
        tools.withdraw_fees,
    ):
        mcp.add_tool(tool)
    return mcp
