"""Tests for the MCP tool surface.

The tool methods are called directly; FastMCP registration is checked by
listing the server's tools.
"""

from __future__ import annotations

import pytest

from escrow_bonds.mcp_server.tools import BondTools, build_mcp_server


@pytest.fixture
def tools(ctx) -> BondTools:
    return BondTools(ctx)


class TestRegistration:
    @pytest.mark.asyncio
    async def test_all_tools_registered(self, ctx) -> None:
        server = build_mcp_server(ctx)
        names = {tool.name for tool in await server.list_tools()}
        assert names == {
            "create_bond",
            "sign_bond",
            "validate_bond",
            "confirm_bond",
            "close_bond",
            "check_bond",
            "ledger_snapshot",
            "withdraw_fees",
        }


class TestBondTools:
    @pytest.mark.asyncio
    async def test_round_trip(self, tools, alice, bob, arbiter) -> None:
        created = await tools.create_bond(alice, "Logo design", 1000, bob)
        bond_id = created["id"]
        assert "error" not in created

        assert (await tools.sign_bond(bob, bond_id))["status"] == "SIGNED"
        assert (await tools.validate_bond(arbiter, bond_id))["status"] == "VALIDATED"
        await tools.confirm_bond(alice, bond_id)
        confirmed = await tools.confirm_bond(bob, bond_id, tendered_value=1000)
        assert confirmed["phase"] == "FULLY_CONFIRMED"

        status = await tools.check_bond(bond_id)
        assert status["allowed_events"] == ["close_bond"]

        receipt = await tools.close_bond(arbiter, bond_id)
        assert (receipt["payout"], receipt["fee"]) == (900, 100)

        assert (await tools.ledger_snapshot(arbiter))["accrued_fees"] == 100
        assert (await tools.withdraw_fees(arbiter))["amount"] == 100

    @pytest.mark.asyncio
    async def test_rejections_become_error_payloads(self, tools, alice, bob) -> None:
        result = await tools.create_bond(alice, "Tiny", 10, bob)
        assert result["error"] == "AMOUNT_BELOW_MINIMUM"

        result = await tools.check_bond(77)
        assert result["error"] == "NOT_FOUND"

        result = await tools.ledger_snapshot(alice)
        assert result["error"] == "UNAUTHORIZED"
