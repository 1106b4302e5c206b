#!/usr/bin/env python3
"""Escrow Bonds — End-to-End Simulation.

Runs three scenarios with a creator (Alice), a counterpart (Bob) and the
arbiter against a throwaway SQLite database and the in-process payment rail:

    Scenario 1: Round Trip
        - Alice registers a 1000-unit bond naming Bob
        - Bob signs, arbiter validates
        - Alice confirms, Bob confirms paying 1000 into escrow
        - Arbiter closes: Alice receives 900, 100 accrues as fee
        - Arbiter withdraws fees: custody returns to zero

    Scenario 2: Rail Outage
        - A fully confirmed bond is closed while the payment rail is down
        - The close fails and rolls back: bond still open, escrow intact
        - The rail recovers and the close succeeds

    Scenario 3: Rejections
        - Amount below minimum, wrong signer, first-party tender,
          short tender, premature close

Usage:
    python simulation.py
    python simulation.py --scenario 2
    python simulation.py --fee-pct 5 --min-amount 50
    python simulation.py --database-url sqlite+aiosqlite:///./bonds.db
"""

from __future__ import annotations

import argparse
import asyncio
import tempfile
from pathlib import Path

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from escrow_bonds.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

from escrow_bonds.config import Settings  # noqa: E402
from escrow_bonds.context import BondingContext  # noqa: E402
from escrow_bonds.domain.exceptions import BondingError, TransferError  # noqa: E402
from escrow_bonds.services.payment_service import PaymentService  # noqa: E402

ALICE = "0x" + "A" * 40
BOB = "0x" + "B" * 40
ARBITER = "0x" + "C" * 40


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------
def section(title: str) -> None:
    print(f"\n{'─' * 70}\n  {title}\n{'─' * 70}")


async def print_ledger(ctx: BondingContext) -> None:
    snap = await ctx.ledger.snapshot(ARBITER)
    print(
        f"  📒 ledger: custody={snap.custodial_balance} escrowed={snap.escrowed} "
        f"accrued={snap.accrued_fees} balanced={snap.balanced}"
    )


async def print_audit_trail(ctx: BondingContext, bond_id: int) -> None:
    print("\n  📋 Audit trail:")
    for event in await ctx.registry.get_events(bond_id):
        print(
            f"     {event.event_type:<24} {event.old_status or '-':>9} -> "
            f"{event.new_status:<9} by {event.actor[:10]}…"
        )


async def expect_rejection(label: str, op) -> None:
    try:
        await op
    except BondingError as exc:
        print(f"  🚫 {label}: {exc.code} — {exc.message}")
        return
    raise AssertionError(f"{label} should have been rejected")


async def fully_confirmed_bond(ctx: BondingContext, name: str, amount: int) -> int:
    created = await ctx.registry.create_bond(name, amount, BOB, actor=ALICE)
    await ctx.registry.sign_bond(created.id, BOB)
    await ctx.registry.validate_bond(created.id, ARBITER)
    await ctx.registry.confirm(created.id, ALICE)
    await ctx.registry.confirm(created.id, BOB, tendered_value=amount)
    return created.id


# ===========================================================================
# Scenarios
# ===========================================================================
async def scenario_1_round_trip(ctx: BondingContext, rail: PaymentService) -> None:
    print("\n" + "=" * 70)
    print("  SCENARIO 1: ROUND TRIP")
    print("=" * 70)

    section("Register, sign, validate")
    created = await ctx.registry.create_bond("Logo design", 1000, BOB, actor=ALICE)
    print(f"  🔵 ALICE: bond #{created.id} registered")
    await ctx.registry.sign_bond(created.id, BOB)
    print("  🟢 BOB: signed")
    await ctx.registry.validate_bond(created.id, ARBITER)
    print("  ⚖️  ARBITER: validated")

    section("Confirm (Bob pays into escrow)")
    view = await ctx.registry.confirm(created.id, ALICE)
    print(f"  🔵 ALICE: confirmed -> {view.phase.value}")
    view = await ctx.registry.confirm(created.id, BOB, tendered_value=1000)
    print(f"  🟢 BOB: confirmed with 1000 -> {view.phase.value}")
    await print_ledger(ctx)

    section("Close and withdraw")
    receipt = await ctx.registry.close_bond(created.id, ARBITER)
    print(f"  💰 Alice paid {receipt.payout}, fee {receipt.fee}, ref {receipt.reference[:18]}…")
    await print_ledger(ctx)
    withdrawal = await ctx.ledger.withdraw_fees(ARBITER)
    print(f"  🏦 Arbiter withdrew {withdrawal.amount}")
    await print_ledger(ctx)
    print(f"  Wallets: alice={rail.balance_of(ALICE)} bob={rail.balance_of(BOB)} "
          f"arbiter={rail.balance_of(ARBITER)} custody={rail.custody_balance}")

    await print_audit_trail(ctx, created.id)


async def scenario_2_rail_outage(ctx: BondingContext, rail: PaymentService) -> None:
    print("\n" + "=" * 70)
    print("  SCENARIO 2: RAIL OUTAGE DURING SETTLEMENT")
    print("=" * 70)

    bond_id = await fully_confirmed_bond(ctx, "Translation job", 500)
    await print_ledger(ctx)

    section("Close while the rail is down")
    rail.set_outage(True)
    try:
        await ctx.registry.close_bond(bond_id, ARBITER)
    except TransferError as exc:
        print(f"  ⚠️  close failed: {exc.message}")
    view = await ctx.registry.view_bond(bond_id)
    print(f"  Bond #{bond_id} still {view.status.value}, escrowed={view.escrowed}")
    await ctx.ledger.reconcile(ARBITER)
    await print_ledger(ctx)

    section("Rail recovers")
    rail.set_outage(False)
    receipt = await ctx.registry.close_bond(bond_id, ARBITER)
    print(f"  💰 Alice paid {receipt.payout}, fee {receipt.fee}")
    await ctx.ledger.reconcile(ARBITER)
    await print_ledger(ctx)


async def scenario_3_rejections(ctx: BondingContext, rail: PaymentService) -> None:
    print("\n" + "=" * 70)
    print("  SCENARIO 3: REJECTIONS")
    print("=" * 70)

    await expect_rejection(
        "amount below minimum",
        ctx.registry.create_bond("Tiny", ctx.fees.min_amount - 1, BOB, actor=ALICE),
    )
    created = await ctx.registry.create_bond("Audit", 2000, BOB, actor=ALICE)
    await expect_rejection("wrong signer", ctx.registry.sign_bond(created.id, ALICE))
    await ctx.registry.sign_bond(created.id, BOB)
    await expect_rejection("confirm before validation", ctx.registry.confirm(created.id, ALICE))
    await ctx.registry.validate_bond(created.id, ARBITER)
    await expect_rejection(
        "first party tenders value",
        ctx.registry.confirm(created.id, ALICE, tendered_value=2000),
    )
    await expect_rejection(
        "short tender",
        ctx.registry.confirm(created.id, BOB, tendered_value=1999),
    )
    await expect_rejection("premature close", ctx.registry.close_bond(created.id, ARBITER))
    await ctx.ledger.reconcile(ARBITER)
    await print_ledger(ctx)


SCENARIOS = {
    1: scenario_1_round_trip,
    2: scenario_2_rail_outage,
    3: scenario_3_rejections,
}


# ===========================================================================
# Main
# ===========================================================================
async def run(
    scenarios: list[int],
    database_url: str | None,
    min_amount: int,
    fee_pct: int,
) -> None:
    with tempfile.TemporaryDirectory() as tmp:
        url = database_url or f"sqlite+aiosqlite:///{Path(tmp) / 'simulation.db'}"
        settings = Settings(
            _env_file=None,
            database_url=url,
            arbiter_identity=ARBITER,
            min_bond_amount=min_amount,
            platform_fee_pct=fee_pct,
        )
        rail = PaymentService()
        ctx = BondingContext(settings, gateway=rail)
        await ctx.start(use_redis=False)
        try:
            print("\n" + "🚀" * 35)
            print("  ESCROW BONDS — SIMULATION")
            print(f"  Database: {url}")
            print(f"  Minimum amount: {min_amount}  Platform fee: {fee_pct}%")
            print("🚀" * 35 + "\n")

            for num in scenarios:
                await SCENARIOS[num](ctx, rail)

            print("\n" + "=" * 70)
            print("  ✅ ALL SCENARIOS COMPLETED SUCCESSFULLY")
            print("=" * 70 + "\n")
        finally:
            await ctx.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Escrow Bonds Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        choices=sorted(SCENARIOS),
        default=0,
        help="Run a specific scenario (1, 2, or 3). Default: run all.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy async URL. Default: a temporary SQLite file.",
    )
    parser.add_argument("--min-amount", type=int, default=100, help="Minimum bond amount.")
    parser.add_argument("--fee-pct", type=int, default=10, help="Platform fee percentage.")
    args = parser.parse_args()

    selected = [args.scenario] if args.scenario else sorted(SCENARIOS)
    asyncio.run(run(selected, args.database_url, args.min_amount, args.fee_pct))
