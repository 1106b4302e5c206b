"""Application services — use case orchestration."""

from escrow_bonds.services.bond_registry import BondRegistry
from escrow_bonds.services.fee_ledger import FeeLedger
from escrow_bonds.services.payment_service import PaymentService

__all__ = ["BondRegistry", "FeeLedger", "PaymentService"]
