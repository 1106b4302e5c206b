"""Fee Ledger — custody accounting and every movement of value.

The ledger owns the fee account row exclusively. BondRegistry never touches
it directly; it calls ``collect_escrow`` when the second party pays in and
``settle_bond`` when the arbiter closes a bond. Both run inside the caller's
transaction while the caller holds ``guard()``, so the bond change, the
ledger change and the external transfer commit or roll back together.

Ordering inside every money-moving call: update the books, journal the
transfer under a reference assigned here, flush, and only then call the
gateway. Nothing but the commit follows a successful transfer. A gateway
failure raises out of the transaction and undoes the bookkeeping.

Invariant after every committed operation:
    custodial_balance == sum(escrow of open bonds) + accrued_fees
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from escrow_bonds.domain.enums import TransferDirection, TransferPurpose
from escrow_bonds.domain.exceptions import (
    LedgerInvariantError,
    TransferError,
    UnauthorizedError,
)
from escrow_bonds.domain.models import (
    FeeSplit,
    FeeWithdrawal,
    LedgerSnapshot,
    new_transfer_reference,
)
from escrow_bonds.infrastructure.database.repositories import (
    BondRepository,
    FeeAccountRepository,
    TransferRepository,
)
from escrow_bonds.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from escrow_bonds.domain.transfer_protocol import TransferGateway

logger = get_logger(__name__)


class FeeLedger:
    """Tracks accrued fees and custody; executes transfers through the gateway."""

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        gateway: TransferGateway,
        arbiter: str,
    ) -> None:
        self._sessions = sessions
        self._gateway = gateway
        self._arbiter = arbiter
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def guard(self) -> AsyncIterator[None]:
        """Exclusive access to the fee account for the duration of a transaction."""
        async with self._lock:
            yield

    # ------------------------------------------------------------------
    # Arbiter reads
    # ------------------------------------------------------------------

    async def custodial_balance(self, actor: str) -> int:
        self._require_arbiter(actor, "read the custodial balance")
        async with self._sessions() as session:
            account = await FeeAccountRepository(session).get()
            return account.custodial_balance

    async def accrued_fees(self, actor: str) -> int:
        self._require_arbiter(actor, "read accrued fees")
        async with self._sessions() as session:
            account = await FeeAccountRepository(session).get()
            return account.accrued_fees

    async def snapshot(self, actor: str) -> LedgerSnapshot:
        self._require_arbiter(actor, "read the ledger")
        async with self._sessions() as session:
            return await self._snapshot(session)

    async def reconcile(self, actor: str) -> LedgerSnapshot:
        """Check the custody invariant against bond escrow. Raises on mismatch."""
        self._require_arbiter(actor, "reconcile the ledger")
        async with self._sessions() as session:
            snap = await self._snapshot(session)
        if not snap.balanced:
            logger.error("ledger.invariant_violated", **snap.to_dict())
            raise LedgerInvariantError(snap.custodial_balance, snap.escrowed, snap.accrued_fees)
        return snap

    # ------------------------------------------------------------------
    # Fee withdrawal
    # ------------------------------------------------------------------

    async def withdraw_fees(self, actor: str) -> FeeWithdrawal:
        """Zero the accumulator and pay it to the arbiter, atomically.

        With nothing accrued this is a no-op returning amount 0.
        """
        self._require_arbiter(actor, "withdraw fees")
        async with self._lock, self._sessions.begin() as session:
            fee_repo = FeeAccountRepository(session)
            account = await fee_repo.get(for_update=True)
            amount = account.accrued_fees
            if amount == 0:
                logger.info("ledger.fees_withdrawn", amount=0)
                return FeeWithdrawal(amount=0, recipient=self._arbiter)

            await fee_repo.apply(account, custody_delta=-amount, fee_delta=-amount)
            reference = new_transfer_reference()
            await TransferRepository(session).record(
                direction=TransferDirection.OUTBOUND,
                purpose=TransferPurpose.FEE_WITHDRAWAL,
                counterparty=self._arbiter,
                amount=amount,
                reference=reference,
            )
            await self._send(self._arbiter, amount, reference, "fee withdrawal")

        logger.info("ledger.fees_withdrawn", amount=amount, reference=reference)
        return FeeWithdrawal(amount=amount, recipient=self._arbiter, reference=reference)

    # ------------------------------------------------------------------
    # Transfer calls used by BondRegistry (caller holds guard() and the session)
    #
    # The caller flushes its own writes first; the transfer is the last step
    # before the caller's commit.
    # ------------------------------------------------------------------

    async def collect_escrow(
        self, session: AsyncSession, bond_id: int, sender: str, amount: int, reference: str
    ) -> None:
        """Take the second party's tender into custody."""
        fee_repo = FeeAccountRepository(session)
        account = await fee_repo.get(for_update=True)
        await fee_repo.apply(account, custody_delta=amount)
        await TransferRepository(session).record(
            direction=TransferDirection.INBOUND,
            purpose=TransferPurpose.ESCROW_INTAKE,
            counterparty=sender,
            amount=amount,
            reference=reference,
            bond_id=bond_id,
        )
        await self._collect(sender, amount, reference, f"escrow for bond {bond_id}")
        logger.info("ledger.escrow_collected", bond_id=bond_id, amount=amount, reference=reference)

    async def settle_bond(
        self,
        session: AsyncSession,
        bond_id: int,
        recipient: str,
        split: FeeSplit,
        reference: str | None,
    ) -> None:
        """Accrue the fee, release the payout from custody and pay the first party.

        A zero payout (the whole amount is fee) moves nothing on the rail and
        leaves no journal row; ``reference`` is then None.
        """
        fee_repo = FeeAccountRepository(session)
        account = await fee_repo.get(for_update=True)
        await fee_repo.apply(account, custody_delta=-split.payout, fee_delta=split.fee)
        if split.payout > 0:
            if reference is None:
                raise ValueError("A payout needs a transfer reference")
            await TransferRepository(session).record(
                direction=TransferDirection.OUTBOUND,
                purpose=TransferPurpose.BOND_PAYOUT,
                counterparty=recipient,
                amount=split.payout,
                reference=reference,
                bond_id=bond_id,
            )
            await self._send(recipient, split.payout, reference, f"payout for bond {bond_id}")
        logger.info(
            "ledger.bond_settled",
            bond_id=bond_id,
            payout=split.payout,
            fee=split.fee,
            reference=reference,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _require_arbiter(self, actor: str, action: str) -> None:
        if actor != self._arbiter:
            raise UnauthorizedError(actor, action)

    async def _snapshot(self, session: AsyncSession) -> LedgerSnapshot:
        account = await FeeAccountRepository(session).get()
        escrowed, open_bonds = await BondRepository(session).escrow_totals()
        return LedgerSnapshot(
            accrued_fees=account.accrued_fees,
            custodial_balance=account.custodial_balance,
            escrowed=escrowed,
            open_bonds=open_bonds,
        )

    async def _send(self, recipient: str, amount: int, reference: str, memo: str) -> None:
        try:
            await self._gateway.send(recipient, amount, reference, memo)
        except TransferError as exc:
            logger.error("transfer.failed", direction="out", to=recipient, amount=amount, error=exc.message)
            raise
        except Exception as exc:
            logger.error("transfer.failed", direction="out", to=recipient, amount=amount, error=str(exc))
            raise TransferError(f"Transfer of {amount} to {recipient} failed: {exc}", reference) from exc

    async def _collect(self, sender: str, amount: int, reference: str, memo: str) -> None:
        try:
            await self._gateway.collect(sender, amount, reference, memo)
        except TransferError as exc:
            logger.error("transfer.failed", direction="in", sender=sender, amount=amount, error=exc.message)
            raise
        except Exception as exc:
            logger.error("transfer.failed", direction="in", sender=sender, amount=amount, error=str(exc))
            raise TransferError(f"Collection of {amount} from {sender} failed: {exc}", reference) from exc
