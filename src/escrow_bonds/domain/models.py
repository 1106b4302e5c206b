"""Domain value objects: fee arithmetic, read projections and notifications.

Amounts are integers in minimal units throughout. Nothing here touches the
database; the services build these from ORM rows.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from escrow_bonds.domain.enums import BondPhase, BondStatus, PartyRole

NULL_IDENTITY = "0x0000000000000000000000000000000000000000"


def is_null_identity(identity: str | None) -> bool:
    """True for missing, blank or zero-address identities."""
    if identity is None or not isinstance(identity, str):
        return True
    stripped = identity.strip()
    return not stripped or stripped.lower() == NULL_IDENTITY


def is_integer_amount(value: object) -> bool:
    # bool is an int subclass; True must not pass as 1 unit
    return isinstance(value, int) and not isinstance(value, bool)


def new_transfer_reference() -> str:
    """A fresh 0x-prefixed reference, assigned before a transfer is submitted."""
    return "0x" + uuid.uuid4().hex + uuid.uuid4().hex


@dataclass(frozen=True)
class FeeSplit:
    payout: int
    fee: int


@dataclass(frozen=True)
class FeeSchedule:
    """Platform fee policy.

    The fee is derived as the remainder of the floored payout, so
    ``payout + fee == amount`` holds for every amount.
    """

    min_amount: int = 100
    fee_pct: int = 10

    def __post_init__(self) -> None:
        if not 0 <= self.fee_pct <= 100:
            raise ValueError(f"fee_pct must be between 0 and 100, got {self.fee_pct}")
        if self.min_amount < 1:
            raise ValueError(f"min_amount must be positive, got {self.min_amount}")

    def split(self, amount: int) -> FeeSplit:
        payout = amount * (100 - self.fee_pct) // 100
        return FeeSplit(payout=payout, fee=amount - payout)


@dataclass(frozen=True)
class BondCreated:
    """Notification emitted once per bond, after the creating transaction commits."""

    id: int
    name: str
    creator: str
    second_party: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "creator": self.creator,
            "second_party": self.second_party,
        }


@dataclass(frozen=True)
class BondView:
    """Read-only projection of a bond."""

    id: int
    name: str
    amount: int
    creator: str
    second_party: str
    status: BondStatus
    confirmations: tuple[str | None, str | None]
    escrowed: int = 0
    payout: int | None = None
    fee: int | None = None

    @property
    def signed(self) -> bool:
        return self.status != BondStatus.CREATED

    @property
    def validated(self) -> bool:
        return self.status in (BondStatus.VALIDATED, BondStatus.COMPLETED)

    @property
    def completed(self) -> bool:
        return self.status == BondStatus.COMPLETED

    @property
    def parties(self) -> tuple[str, str]:
        return (self.creator, self.second_party)

    @property
    def phase(self) -> BondPhase:
        if self.status != BondStatus.VALIDATED:
            return BondPhase(self.status.value)
        confirmed = sum(slot is not None for slot in self.confirmations)
        if confirmed == 2:
            return BondPhase.FULLY_CONFIRMED
        if confirmed == 1:
            return BondPhase.PARTIALLY_CONFIRMED
        return BondPhase.VALIDATED

    def confirmed_by(self, role: PartyRole) -> str | None:
        return self.confirmations[role]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "amount": self.amount,
            "creator": self.creator,
            "second_party": self.second_party,
            "status": self.status.value,
            "phase": self.phase.value,
            "signed": self.signed,
            "validated": self.validated,
            "completed": self.completed,
            "confirmations": list(self.confirmations),
            "escrowed": self.escrowed,
            "payout": self.payout,
            "fee": self.fee,
        }


@dataclass(frozen=True)
class SettlementReceipt:
    """Outcome of a successful close: who was paid, how much, and the fee kept."""

    bond_id: int
    recipient: str
    payout: int
    fee: int
    reference: str | None = None

    def to_dict(self) -> dict:
        return {
            "bond_id": self.bond_id,
            "recipient": self.recipient,
            "payout": self.payout,
            "fee": self.fee,
            "reference": self.reference,
        }


@dataclass(frozen=True)
class FeeWithdrawal:
    amount: int
    recipient: str
    reference: str | None = None

    def to_dict(self) -> dict:
        return {"amount": self.amount, "recipient": self.recipient, "reference": self.reference}


@dataclass(frozen=True)
class LedgerSnapshot:
    accrued_fees: int
    custodial_balance: int
    escrowed: int
    open_bonds: int = 0

    @property
    def balanced(self) -> bool:
        return self.custodial_balance == self.escrowed + self.accrued_fees

    def to_dict(self) -> dict:
        return {
            "accrued_fees": self.accrued_fees,
            "custodial_balance": self.custodial_balance,
            "escrowed": self.escrowed,
            "open_bonds": self.open_bonds,
            "balanced": self.balanced,
        }
