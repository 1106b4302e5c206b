"""Fee ledger REST API routes. Arbiter only.

Routes:
    GET    /api/v1/ledger            — Accrued fees, custody and open escrow
    POST   /api/v1/ledger/withdraw   — Pay accrued fees to the arbiter
    GET    /api/v1/ledger/reconcile  — Verify the custody invariant
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from escrow_bonds.api.deps import get_actor, get_ledger
from escrow_bonds.schemas.bond import FeeWithdrawalResponse, LedgerResponse
from escrow_bonds.services.fee_ledger import FeeLedger

router = APIRouter(prefix="/api/v1/ledger", tags=["Ledger"])


@router.get("", response_model=LedgerResponse, summary="Ledger snapshot")
async def get_ledger_snapshot(
    actor: str = Depends(get_actor),
    ledger: FeeLedger = Depends(get_ledger),
) -> LedgerResponse:
    snapshot = await ledger.snapshot(actor)
    return LedgerResponse(**snapshot.to_dict())


@router.post("/withdraw", response_model=FeeWithdrawalResponse, summary="Withdraw accrued fees")
async def withdraw_fees(
    actor: str = Depends(get_actor),
    ledger: FeeLedger = Depends(get_ledger),
) -> FeeWithdrawalResponse:
    """Zero the fee accumulator and transfer it to the arbiter."""
    withdrawal = await ledger.withdraw_fees(actor)
    return FeeWithdrawalResponse(**withdrawal.to_dict())


@router.get("/reconcile", response_model=LedgerResponse, summary="Verify custody invariant")
async def reconcile(
    actor: str = Depends(get_actor),
    ledger: FeeLedger = Depends(get_ledger),
) -> LedgerResponse:
    snapshot = await ledger.reconcile(actor)
    return LedgerResponse(**snapshot.to_dict())
