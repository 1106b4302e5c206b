"""Tests for BondRegistry lifecycle rules.

Covers creation validation, signing, validation and confirmation ordering,
including which specific error each rejected call reports.
"""

from __future__ import annotations

import pytest

from escrow_bonds.domain.enums import BondPhase, BondStatus, EventType
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
    NotSignedError,
    NotValidatedError,
    UnauthorizedError,
    UnexpectedTenderError,
    WrongAmountError,
)
from escrow_bonds.domain.models import NULL_IDENTITY


class TestCreateBond:
    @pytest.mark.asyncio
    async def test_creates_in_created_state(self, ctx, alice, bob) -> None:
        created = await ctx.registry.create_bond("Logo design", 1000, bob, actor=alice)

        assert created.id == 1
        assert created.creator == alice
        assert created.second_party == bob

        view = await ctx.registry.view_bond(created.id)
        assert view.status is BondStatus.CREATED
        assert view.amount == 1000
        assert view.confirmations == (None, None)
        assert view.escrowed == 0

    @pytest.mark.asyncio
    async def test_ids_are_sequential(self, ctx, alice, bob) -> None:
        ids = [
            (await ctx.registry.create_bond(f"Bond {i}", 100 + i, bob, actor=alice)).id
            for i in range(3)
        ]
        assert ids == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_minimum_amount_is_inclusive(self, ctx, alice, bob) -> None:
        created = await ctx.registry.create_bond("Exactly minimum", 100, bob, actor=alice)
        assert created.id == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [99, 0, -5, True, 150.0, "1000"])
    async def test_rejects_bad_amounts(self, ctx, alice, bob, amount) -> None:
        with pytest.raises(AmountBelowMinimumError):
            await ctx.registry.create_bond("Logo design", amount, bob, actor=alice)
        assert await ctx.registry.list_bonds() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   ", None])
    async def test_rejects_empty_name(self, ctx, alice, bob, name) -> None:
        with pytest.raises(InvalidNameError):
            await ctx.registry.create_bond(name, 1000, bob, actor=alice)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("second_party", ["", NULL_IDENTITY])
    async def test_rejects_null_second_party(self, ctx, alice, second_party) -> None:
        with pytest.raises(InvalidPartyError):
            await ctx.registry.create_bond("Logo design", 1000, second_party, actor=alice)

    @pytest.mark.asyncio
    async def test_rejects_self_bond(self, ctx, alice) -> None:
        with pytest.raises(InvalidPartyError, match="differ"):
            await ctx.registry.create_bond("Logo design", 1000, alice, actor=alice)

    @pytest.mark.asyncio
    async def test_rejects_null_creator(self, ctx, bob) -> None:
        with pytest.raises(InvalidPartyError):
            await ctx.registry.create_bond("Logo design", 1000, bob, actor=NULL_IDENTITY)

    @pytest.mark.asyncio
    async def test_rejected_creation_consumes_no_id(self, ctx, alice, bob) -> None:
        with pytest.raises(AmountBelowMinimumError):
            await ctx.registry.create_bond("Too small", 1, bob, actor=alice)
        created = await ctx.registry.create_bond("Logo design", 1000, bob, actor=alice)
        assert created.id == 1


class TestCreationNotifications:
    @pytest.mark.asyncio
    async def test_listeners_receive_notification(self, ctx, alice, bob) -> None:
        received = []

        async def async_listener(created) -> None:
            received.append(("async", created.id))

        ctx.registry.subscribe(lambda created: received.append(("sync", created.id)))
        ctx.registry.subscribe(async_listener)

        created = await ctx.registry.create_bond("Logo design", 1000, bob, actor=alice)
        assert received == [("sync", created.id), ("async", created.id)]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_undo_creation(self, ctx, alice, bob) -> None:
        def broken(created) -> None:
            raise RuntimeError("listener down")

        ctx.registry.subscribe(broken)
        created = await ctx.registry.create_bond("Logo design", 1000, bob, actor=alice)
        view = await ctx.registry.view_bond(created.id)
        assert view.status is BondStatus.CREATED

    @pytest.mark.asyncio
    async def test_no_notification_on_rejection(self, ctx, alice, bob) -> None:
        received = []
        ctx.registry.subscribe(received.append)
        with pytest.raises(AmountBelowMinimumError):
            await ctx.registry.create_bond("Logo design", 10, bob, actor=alice)
        assert received == []


class TestSignBond:
    @pytest.mark.asyncio
    async def test_second_party_signs(self, ctx, created_bond, bob) -> None:
        view = await ctx.registry.sign_bond(created_bond, bob)
        assert view.status is BondStatus.SIGNED
        assert view.signed and not view.validated

    @pytest.mark.asyncio
    async def test_creator_cannot_sign(self, ctx, created_bond, alice) -> None:
        with pytest.raises(UnauthorizedError):
            await ctx.registry.sign_bond(created_bond, alice)

    @pytest.mark.asyncio
    async def test_stranger_cannot_sign(self, ctx, created_bond, mallory) -> None:
        with pytest.raises(UnauthorizedError):
            await ctx.registry.sign_bond(created_bond, mallory)

    @pytest.mark.asyncio
    async def test_cannot_sign_twice(self, ctx, created_bond, bob) -> None:
        await ctx.registry.sign_bond(created_bond, bob)
        with pytest.raises(AlreadySignedError):
            await ctx.registry.sign_bond(created_bond, bob)

    @pytest.mark.asyncio
    async def test_unknown_bond(self, ctx, bob) -> None:
        with pytest.raises(BondNotFoundError):
            await ctx.registry.sign_bond(42, bob)

    @pytest.mark.asyncio
    async def test_unknown_bonds_leave_no_locks_behind(self, ctx, bob, arbiter) -> None:
        for bond_id in range(100, 600):
            with pytest.raises(BondNotFoundError):
                await ctx.registry.sign_bond(bond_id, bob)
        with pytest.raises(BondNotFoundError):
            await ctx.registry.confirm(7, bob, tendered_value=1000)
        with pytest.raises(BondNotFoundError):
            await ctx.registry.close_bond(7, arbiter)
        assert len(ctx.locks) == 0


class TestValidateBond:
    @pytest.mark.asyncio
    async def test_arbiter_validates(self, ctx, created_bond, bob, arbiter) -> None:
        await ctx.registry.sign_bond(created_bond, bob)
        view = await ctx.registry.validate_bond(created_bond, arbiter)
        assert view.status is BondStatus.VALIDATED
        assert view.phase is BondPhase.VALIDATED

    @pytest.mark.asyncio
    async def test_requires_signature(self, ctx, created_bond, arbiter) -> None:
        with pytest.raises(NotSignedError):
            await ctx.registry.validate_bond(created_bond, arbiter)

    @pytest.mark.asyncio
    async def test_only_arbiter(self, ctx, created_bond, alice, bob) -> None:
        await ctx.registry.sign_bond(created_bond, bob)
        for actor in (alice, bob):
            with pytest.raises(UnauthorizedError):
                await ctx.registry.validate_bond(created_bond, actor)

    @pytest.mark.asyncio
    async def test_authorization_checked_before_existence(self, ctx, alice) -> None:
        with pytest.raises(UnauthorizedError):
            await ctx.registry.validate_bond(42, alice)

    @pytest.mark.asyncio
    async def test_cannot_validate_twice(self, ctx, validated_bond, arbiter) -> None:
        with pytest.raises(AlreadyValidatedError):
            await ctx.registry.validate_bond(validated_bond, arbiter)


class TestConfirm:
    @pytest.mark.asyncio
    async def test_first_party_then_second(self, ctx, validated_bond, alice, bob) -> None:
        view = await ctx.registry.confirm(validated_bond, alice)
        assert view.phase is BondPhase.PARTIALLY_CONFIRMED
        assert view.escrowed == 0

        view = await ctx.registry.confirm(validated_bond, bob, tendered_value=1000)
        assert view.phase is BondPhase.FULLY_CONFIRMED
        assert view.confirmations == (alice, bob)
        assert view.escrowed == 1000

    @pytest.mark.asyncio
    async def test_second_party_may_go_first(self, ctx, validated_bond, alice, bob) -> None:
        view = await ctx.registry.confirm(validated_bond, bob, tendered_value=1000)
        assert view.phase is BondPhase.PARTIALLY_CONFIRMED
        assert view.confirmations == (None, bob)

        view = await ctx.registry.confirm(validated_bond, alice)
        assert view.phase is BondPhase.FULLY_CONFIRMED

    @pytest.mark.asyncio
    async def test_requires_validation(self, ctx, created_bond, alice, bob) -> None:
        with pytest.raises(NotSignedError):
            await ctx.registry.confirm(created_bond, alice)
        await ctx.registry.sign_bond(created_bond, bob)
        with pytest.raises(NotValidatedError):
            await ctx.registry.confirm(created_bond, alice)

    @pytest.mark.asyncio
    async def test_stranger_cannot_confirm(self, ctx, validated_bond, mallory, arbiter) -> None:
        for actor in (mallory, arbiter):
            with pytest.raises(UnauthorizedError):
                await ctx.registry.confirm(validated_bond, actor)

    @pytest.mark.asyncio
    async def test_first_party_must_not_tender(self, ctx, rail, validated_bond, alice) -> None:
        with pytest.raises(UnexpectedTenderError):
            await ctx.registry.confirm(validated_bond, alice, tendered_value=1000)
        view = await ctx.registry.view_bond(validated_bond)
        assert view.confirmations == (None, None)
        assert rail.custody_balance == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tendered", [0, 999, 1001])
    async def test_second_party_must_tender_exact_amount(
        self, ctx, rail, validated_bond, bob, tendered
    ) -> None:
        with pytest.raises(WrongAmountError) as exc_info:
            await ctx.registry.confirm(validated_bond, bob, tendered_value=tendered)
        assert exc_info.value.expected == 1000
        view = await ctx.registry.view_bond(validated_bond)
        assert view.confirmations == (None, None)
        assert view.escrowed == 0
        assert rail.custody_balance == 0

    @pytest.mark.asyncio
    async def test_no_double_confirmation(self, ctx, validated_bond, alice, bob) -> None:
        await ctx.registry.confirm(validated_bond, alice)
        with pytest.raises(AlreadyConfirmedError):
            await ctx.registry.confirm(validated_bond, alice)

        await ctx.registry.confirm(validated_bond, bob, tendered_value=1000)
        with pytest.raises(AlreadyConfirmedError):
            await ctx.registry.confirm(validated_bond, bob, tendered_value=1000)

    @pytest.mark.asyncio
    async def test_cannot_confirm_completed_bond(
        self, ctx, confirmed_bond, alice, arbiter
    ) -> None:
        await ctx.registry.close_bond(confirmed_bond, arbiter)
        with pytest.raises(AlreadyCompletedError):
            await ctx.registry.confirm(confirmed_bond, alice)


class TestCloseBondPreconditions:
    @pytest.mark.asyncio
    async def test_only_arbiter(self, ctx, confirmed_bond, alice) -> None:
        with pytest.raises(UnauthorizedError):
            await ctx.registry.close_bond(confirmed_bond, alice)

    @pytest.mark.asyncio
    async def test_requires_validation(self, ctx, created_bond, arbiter) -> None:
        with pytest.raises(NotSignedError):
            await ctx.registry.close_bond(created_bond, arbiter)

    @pytest.mark.asyncio
    async def test_requires_both_confirmations(self, ctx, validated_bond, alice, arbiter) -> None:
        with pytest.raises(IncompleteConfirmationsError) as exc_info:
            await ctx.registry.close_bond(validated_bond, arbiter)
        assert exc_info.value.missing == ["first_party", "second_party"]

        await ctx.registry.confirm(validated_bond, alice)
        with pytest.raises(IncompleteConfirmationsError) as exc_info:
            await ctx.registry.close_bond(validated_bond, arbiter)
        assert exc_info.value.missing == ["second_party"]


class TestReads:
    @pytest.mark.asyncio
    async def test_unknown_bond(self, ctx) -> None:
        with pytest.raises(BondNotFoundError):
            await ctx.registry.view_bond(99)

    @pytest.mark.asyncio
    async def test_list_by_party_and_status(self, ctx, alice, bob, mallory) -> None:
        first = await ctx.registry.create_bond("One", 100, bob, actor=alice)
        second = await ctx.registry.create_bond("Two", 200, mallory, actor=alice)
        await ctx.registry.sign_bond(first.id, bob)

        assert [v.id for v in await ctx.registry.list_bonds()] == [first.id, second.id]
        assert [v.id for v in await ctx.registry.list_bonds(party=mallory)] == [second.id]
        signed = await ctx.registry.list_bonds(status=BondStatus.SIGNED)
        assert [v.id for v in signed] == [first.id]

    @pytest.mark.asyncio
    async def test_allowed_actions(self, ctx, validated_bond, alice, bob) -> None:
        actions = await ctx.registry.allowed_actions(validated_bond)
        assert actions["allowed_events"] == []
        assert actions["awaiting_confirmation"] == ["first_party", "second_party"]

        await ctx.registry.confirm(validated_bond, alice)
        await ctx.registry.confirm(validated_bond, bob, tendered_value=1000)
        actions = await ctx.registry.allowed_actions(validated_bond)
        assert actions["phase"] == "FULLY_CONFIRMED"
        assert actions["allowed_events"] == ["close_bond"]
        assert actions["awaiting_confirmation"] == []

    @pytest.mark.asyncio
    async def test_audit_trail(self, ctx, confirmed_bond, arbiter, alice) -> None:
        await ctx.registry.close_bond(confirmed_bond, arbiter)
        events = await ctx.registry.get_events(confirmed_bond)

        assert [e.event_type for e in events] == [
            EventType.BOND_CREATED,
            EventType.BOND_SIGNED,
            EventType.BOND_VALIDATED,
            EventType.FIRST_PARTY_CONFIRMED,
            EventType.SECOND_PARTY_CONFIRMED,
            EventType.BOND_CLOSED,
        ]
        assert events[0].old_status is None
        assert events[0].actor == alice
        assert events[-1].new_status == BondStatus.COMPLETED
        assert events[-1].metadata_json == {"payout": 900, "fee": 100}

    @pytest.mark.asyncio
    async def test_rejected_operations_leave_no_audit_rows(self, ctx, created_bond, alice) -> None:
        with pytest.raises(UnauthorizedError):
            await ctx.registry.sign_bond(created_bond, alice)
        events = await ctx.registry.get_events(created_bond)
        assert len(events) == 1
