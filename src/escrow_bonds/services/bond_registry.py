"""Bond Registry — the bond lifecycle.

This is the application layer that coordinates between:
    - Domain state machine (transition guard)
    - Repositories (data access)
    - Event log (audit trail)
    - FeeLedger (every movement of value)

Both REST routes and MCP tools call into this service, so every rule lives
here once. Each public operation is one transaction: preconditions are
checked first with specific errors, mutations follow, and any exception
rolls the whole operation back.
"""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any

from statemachine.exceptions import TransitionNotAllowed

from escrow_bonds.domain.enums import BondStatus, EventType, PartyRole
from escrow_bonds.domain.exceptions import (
    AlreadyCompletedError,
    AlreadyConfirmedError,
    AlreadySignedError,
    AlreadyValidatedError,
    AmountBelowMinimumError,
    BondNotFoundError,
    IncompleteConfirmationsError,
    InvalidNameError,
    InvalidPartyError,
    InvalidStateTransitionError,
    NotSignedError,
    NotValidatedError,
    UnauthorizedError,
    UnexpectedTenderError,
    WrongAmountError,
)
from escrow_bonds.domain.models import (
    BondCreated,
    BondView,
    FeeSchedule,
    SettlementReceipt,
    is_integer_amount,
    is_null_identity,
    new_transfer_reference,
)
from escrow_bonds.domain.state_machine import BondStateMachine, validate_transition
from escrow_bonds.infrastructure.database.orm_models import Bond
from escrow_bonds.infrastructure.database.repositories import (
    BondRepository,
    EventRepository,
)
from escrow_bonds.infrastructure.locks import KeyedLocks
from escrow_bonds.logging_config import bind_actor, get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from escrow_bonds.infrastructure.database.orm_models import BondEvent
    from escrow_bonds.services.fee_ledger import FeeLedger

    CreationListener = Callable[[BondCreated], Any]

logger = get_logger(__name__)


class BondRegistry:
    """Owns bond records and drives them through their lifecycle."""

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        ledger: FeeLedger,
        arbiter: str,
        fees: FeeSchedule,
        locks: KeyedLocks | None = None,
    ) -> None:
        self._sessions = sessions
        self._ledger = ledger
        self._arbiter = arbiter
        self._fees = fees
        self._locks = locks if locks is not None else KeyedLocks()
        self._listeners: list[CreationListener] = []

    def subscribe(self, listener: CreationListener) -> None:
        """Register a callable (sync or async) to receive BondCreated notifications."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_bond(
        self,
        name: str,
        amount: int,
        second_party: str,
        actor: str,
    ) -> BondCreated:
        """Register a new bond in CREATED state. No funds move."""
        if not isinstance(name, str) or not name.strip():
            raise InvalidNameError()
        if not is_integer_amount(amount) or amount < self._fees.min_amount:
            raise AmountBelowMinimumError(amount, self._fees.min_amount)
        if is_null_identity(actor):
            raise InvalidPartyError("Creator must be a valid, non-null identity")
        if is_null_identity(second_party):
            raise InvalidPartyError("Second party must be a valid, non-null identity")
        if second_party == actor:
            raise InvalidPartyError("Second party must differ from the creator")

        async with self._sessions.begin() as session:
            bond = await BondRepository(session).create(
                Bond(
                    name=name.strip(),
                    amount=amount,
                    creator=actor,
                    second_party=second_party,
                    status=BondStatus.CREATED.value,
                )
            )
            await EventRepository(session).record(
                bond_id=bond.id,
                event_type=EventType.BOND_CREATED,
                old_status=None,
                new_status=BondStatus.CREATED,
                actor=actor,
                metadata={"name": bond.name, "amount": amount, "second_party": second_party},
            )
            created = BondCreated(
                id=bond.id,
                name=bond.name,
                creator=actor,
                second_party=second_party,
            )

        logger.info("bond.created", bond_id=created.id, amount=amount, creator=actor)
        await self._notify(created)
        return created

    # ------------------------------------------------------------------
    # Signing / Validation
    # ------------------------------------------------------------------

    async def sign_bond(self, bond_id: int, actor: str) -> BondView:
        """Second party accepts the bond. CREATED -> SIGNED, exactly once."""
        bind_actor(actor)
        async with self._locks.hold(bond_id), self._sessions.begin() as session:
            bond = await self._get_bond_or_raise(session, bond_id, for_update=True)
            if actor != bond.second_party:
                raise UnauthorizedError(actor, f"sign bond {bond_id}")
            if bond.status != BondStatus.CREATED:
                raise AlreadySignedError(bond_id)

            await self._transition(
                session, bond, "sign_bond", BondStatus.SIGNED, EventType.BOND_SIGNED, actor
            )
            view = _to_view(bond)

        logger.info("bond.signed", bond_id=bond_id)
        return view

    async def validate_bond(self, bond_id: int, actor: str) -> BondView:
        """Arbiter approves a signed bond. SIGNED -> VALIDATED, exactly once."""
        bind_actor(actor)
        self._require_arbiter(actor, f"validate bond {bond_id}")
        async with self._locks.hold(bond_id), self._sessions.begin() as session:
            bond = await self._get_bond_or_raise(session, bond_id, for_update=True)
            if bond.status == BondStatus.CREATED:
                raise NotSignedError(bond_id)
            if bond.status != BondStatus.SIGNED:
                raise AlreadyValidatedError(bond_id)

            await self._transition(
                session, bond, "validate_bond", BondStatus.VALIDATED, EventType.BOND_VALIDATED, actor
            )
            view = _to_view(bond)

        logger.info("bond.validated", bond_id=bond_id)
        return view

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    async def confirm(self, bond_id: int, actor: str, tendered_value: int = 0) -> BondView:
        """Record a party's confirmation; the second party pays the exact amount in.

        Confirmations are commutative: either party may go first.
        """
        bind_actor(actor)
        async with (
            self._locks.hold(bond_id),
            self._ledger.guard(),
            self._sessions.begin() as session,
        ):
            bond = await self._get_bond_or_raise(session, bond_id, for_update=True)
            role = _role_of(bond, actor)
            if role is None:
                raise UnauthorizedError(actor, f"confirm bond {bond_id}")
            if bond.status == BondStatus.COMPLETED:
                raise AlreadyCompletedError(bond_id)
            self._require_validated(bond)

            if role is PartyRole.FIRST_PARTY:
                if bond.first_confirmation is not None:
                    raise AlreadyConfirmedError(bond_id, actor)
                if not is_integer_amount(tendered_value) or tendered_value != 0:
                    raise UnexpectedTenderError(bond_id, tendered_value)
                bond.first_confirmation = actor
                event_type = EventType.FIRST_PARTY_CONFIRMED
                metadata: dict[str, Any] = {}
            else:
                if bond.second_confirmation is not None:
                    raise AlreadyConfirmedError(bond_id, actor)
                if not is_integer_amount(tendered_value) or tendered_value != bond.amount:
                    raise WrongAmountError(bond_id, bond.amount, tendered_value)
                bond.second_confirmation = actor
                bond.escrowed = bond.amount
                reference = new_transfer_reference()
                event_type = EventType.SECOND_PARTY_CONFIRMED
                metadata = {"tendered": tendered_value, "reference": reference}

            await EventRepository(session).record(
                bond_id=bond.id,
                event_type=event_type,
                old_status=BondStatus.VALIDATED,
                new_status=BondStatus.VALIDATED,
                actor=actor,
                metadata=metadata,
            )
            if role is PartyRole.SECOND_PARTY:
                await self._ledger.collect_escrow(session, bond.id, actor, bond.amount, reference)
            view = _to_view(bond)

        logger.info("bond.confirmed", bond_id=bond_id, role=role.name, phase=view.phase.value)
        return view

    # ------------------------------------------------------------------
    # Closing / Settlement
    # ------------------------------------------------------------------

    async def close_bond(self, bond_id: int, actor: str) -> SettlementReceipt:
        """Arbiter settles a fully confirmed bond: pay the first party, keep the fee.

        The bond is marked COMPLETED, its settlement reference assigned and
        everything flushed before the payout is attempted; a failed payout
        rolls the flag and the ledger back together. A fee of 100% pays
        nothing out and the receipt carries no reference.
        """
        bind_actor(actor)
        self._require_arbiter(actor, f"close bond {bond_id}")
        async with (
            self._locks.hold(bond_id),
            self._ledger.guard(),
            self._sessions.begin() as session,
        ):
            bond = await self._get_bond_or_raise(session, bond_id, for_update=True)
            if bond.status == BondStatus.COMPLETED:
                raise AlreadyCompletedError(bond_id)
            self._require_validated(bond)
            missing = [
                role.name.lower()
                for role, slot in zip(PartyRole, (bond.first_confirmation, bond.second_confirmation))
                if slot is None
            ]
            if missing:
                raise IncompleteConfirmationsError(bond_id, missing)

            split = self._fees.split(bond.amount)
            reference = new_transfer_reference() if split.payout > 0 else None
            bond.escrowed = 0
            bond.payout = split.payout
            bond.fee = split.fee
            bond.settlement_reference = reference
            await self._transition(
                session,
                bond,
                "close_bond",
                BondStatus.COMPLETED,
                EventType.BOND_CLOSED,
                actor,
                metadata={"payout": split.payout, "fee": split.fee},
            )

            await self._ledger.settle_bond(session, bond.id, bond.creator, split, reference)
            receipt = SettlementReceipt(
                bond_id=bond.id,
                recipient=bond.creator,
                payout=split.payout,
                fee=split.fee,
                reference=reference,
            )

        logger.info("bond.closed", bond_id=bond_id, payout=split.payout, fee=split.fee)
        return receipt

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def view_bond(self, bond_id: int) -> BondView:
        """Read-only projection of a bond. Unknown ids raise BondNotFoundError."""
        async with self._sessions() as session:
            bond = await self._get_bond_or_raise(session, bond_id)
            return _to_view(bond)

    async def list_bonds(
        self, party: str | None = None, status: BondStatus | None = None
    ) -> list[BondView]:
        async with self._sessions() as session:
            bonds = await BondRepository(session).list_bonds(party=party, status=status)
            return [_to_view(b) for b in bonds]

    async def get_events(self, bond_id: int) -> list[BondEvent]:
        """Audit trail for a bond, oldest first."""
        async with self._sessions() as session:
            await self._get_bond_or_raise(session, bond_id)
            return await EventRepository(session).get_by_bond(bond_id)

    async def allowed_actions(self, bond_id: int) -> dict:
        """Current phase plus the state machine events that may fire next."""
        view = await self.view_bond(bond_id)
        sm = BondStateMachine(
            current_status=view.status.value,
            fully_confirmed=all(slot is not None for slot in view.confirmations),
        )
        return {
            "bond_id": view.id,
            "status": view.status.value,
            "phase": view.phase.value,
            "allowed_events": sm.get_allowed_events(),
            "awaiting_confirmation": [
                role.name.lower()
                for role in PartyRole
                if view.validated and not view.completed and view.confirmations[role] is None
            ],
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_bond_or_raise(
        self, session: AsyncSession, bond_id: int, for_update: bool = False
    ) -> Bond:
        bond = await BondRepository(session).get_by_id(bond_id, for_update=for_update)
        if bond is None:
            raise BondNotFoundError(bond_id)
        return bond

    def _require_arbiter(self, actor: str, action: str) -> None:
        if actor != self._arbiter:
            raise UnauthorizedError(actor, action)

    @staticmethod
    def _require_validated(bond: Bond) -> None:
        if bond.status == BondStatus.CREATED:
            raise NotSignedError(bond.id)
        if bond.status == BondStatus.SIGNED:
            raise NotValidatedError(bond.id)

    async def _transition(
        self,
        session: AsyncSession,
        bond: Bond,
        event_name: str,
        new_status: BondStatus,
        event_type: EventType,
        actor: str,
        metadata: dict | None = None,
    ) -> None:
        """Guard the transition with the state machine, persist it, and audit it."""
        old_status = BondStatus(bond.status)
        try:
            validate_transition(
                bond.status,
                event_name,
                fully_confirmed=bond.first_confirmation is not None
                and bond.second_confirmation is not None,
            )
        except TransitionNotAllowed as err:
            raise InvalidStateTransitionError(bond.status, event_name) from err

        await BondRepository(session).update_status(bond, new_status)
        await EventRepository(session).record(
            bond_id=bond.id,
            event_type=event_type,
            old_status=old_status,
            new_status=new_status,
            actor=actor,
            metadata=metadata,
        )

    async def _notify(self, created: BondCreated) -> None:
        # The bond is already committed; a failing listener must not undo it.
        for listener in self._listeners:
            try:
                result = listener(created)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("bond.listener_failed", bond_id=created.id)


def _role_of(bond: Bond, actor: str) -> PartyRole | None:
    if actor == bond.creator:
        return PartyRole.FIRST_PARTY
    if actor == bond.second_party:
        return PartyRole.SECOND_PARTY
    return None


def _to_view(bond: Bond) -> BondView:
    return BondView(
        id=bond.id,
        name=bond.name,
        amount=bond.amount,
        creator=bond.creator,
        second_party=bond.second_party,
        status=BondStatus(bond.status),
        confirmations=(bond.first_confirmation, bond.second_confirmation),
        escrowed=bond.escrowed,
        payout=bond.payout,
        fee=bond.fee,
    )
