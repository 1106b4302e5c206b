"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession and never manage
their own transactions (that's the caller's responsibility).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select

from escrow_bonds.domain.enums import BondStatus
from escrow_bonds.infrastructure.database.orm_models import (
    FEE_ACCOUNT_ID,
    Bond,
    BondEvent,
    FeeAccount,
    ValueTransfer,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from escrow_bonds.domain.enums import EventType, TransferDirection, TransferPurpose


class BondRepository:
    """Data access for bonds."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, bond: Bond) -> Bond:
        """Insert a new bond; the id is allocated by the flush."""
        self._session.add(bond)
        await self._session.flush()
        return bond

    async def get_by_id(self, bond_id: int, for_update: bool = False) -> Bond | None:
        """Fetch a bond by id, optionally row-locking it (no-op on SQLite)."""
        stmt = select(Bond).where(Bond.id == bond_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_bonds(
        self, party: str | None = None, status: BondStatus | None = None
    ) -> list[Bond]:
        """List bonds in id order, optionally filtered by participant or status."""
        stmt = select(Bond).order_by(Bond.id.asc())
        if party is not None:
            stmt = stmt.where(or_(Bond.creator == party, Bond.second_party == party))
        if status is not None:
            stmt = stmt.where(Bond.status == status.value)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update_status(self, bond: Bond, new_status: BondStatus) -> Bond:
        """Update the status of a bond (call AFTER state machine validation)."""
        bond.status = new_status.value
        await self._session.flush()
        return bond

    async def escrow_totals(self) -> tuple[int, int]:
        """Return (sum of escrow held, number of bonds not yet completed)."""
        result = await self._session.execute(
            select(
                func.coalesce(func.sum(Bond.escrowed), 0),
                func.count(Bond.id),
            ).where(Bond.status != BondStatus.COMPLETED.value)
        )
        escrowed, open_bonds = result.one()
        return int(escrowed), int(open_bonds)


class EventRepository:
    """Data access for the append-only audit event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        bond_id: int,
        event_type: EventType,
        old_status: BondStatus | None,
        new_status: BondStatus,
        actor: str,
        metadata: dict | None = None,
    ) -> BondEvent:
        """Append a new audit event. This is the ONLY write operation allowed."""
        evt = BondEvent(
            bond_id=bond_id,
            event_type=event_type.value,
            old_status=old_status.value if old_status else None,
            new_status=new_status.value,
            actor=actor,
            metadata_json=metadata,
        )
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def get_by_bond(self, bond_id: int) -> list[BondEvent]:
        """Fetch all events for a bond in chronological order."""
        result = await self._session.execute(
            select(BondEvent)
            .where(BondEvent.bond_id == bond_id)
            .order_by(BondEvent.id.asc())
        )
        return list(result.scalars().all())


class FeeAccountRepository:
    """Data access for the single fee account row."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, for_update: bool = False) -> FeeAccount:
        """Fetch the fee account, creating the zeroed row on first use."""
        stmt = select(FeeAccount).where(FeeAccount.id == FEE_ACCOUNT_ID)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        account = result.scalar_one_or_none()
        if account is None:
            account = FeeAccount(id=FEE_ACCOUNT_ID, accrued_fees=0, custodial_balance=0)
            self._session.add(account)
            await self._session.flush()
        return account

    async def apply(self, account: FeeAccount, custody_delta: int = 0, fee_delta: int = 0) -> FeeAccount:
        """Adjust custody and accrued fees by the given deltas."""
        account.custodial_balance += custody_delta
        account.accrued_fees += fee_delta
        await self._session.flush()
        return account


class TransferRepository:
    """Data access for the append-only value transfer journal."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        direction: TransferDirection,
        purpose: TransferPurpose,
        counterparty: str,
        amount: int,
        reference: str,
        bond_id: int | None = None,
    ) -> ValueTransfer:
        transfer = ValueTransfer(
            bond_id=bond_id,
            direction=direction.value,
            purpose=purpose.value,
            counterparty=counterparty,
            amount=amount,
            reference=reference,
        )
        self._session.add(transfer)
        await self._session.flush()
        return transfer

    async def get_by_bond(self, bond_id: int) -> list[ValueTransfer]:
        result = await self._session.execute(
            select(ValueTransfer)
            .where(ValueTransfer.bond_id == bond_id)
            .order_by(ValueTransfer.id.asc())
        )
        return list(result.scalars().all())

    async def list_all(self) -> list[ValueTransfer]:
        result = await self._session.execute(select(ValueTransfer).order_by(ValueTransfer.id.asc()))
        return list(result.scalars().all())
