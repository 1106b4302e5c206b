"""Tests for the BondStateMachine domain guard.

These tests verify that:
    1. The lifecycle runs CREATED -> SIGNED -> VALIDATED -> COMPLETED.
    2. Closing is guarded on both confirmation slots.
    3. Illegal transitions and unknown names are rejected.
"""

from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from escrow_bonds.domain.state_machine import (
    BOND_EVENTS,
    BondStateMachine,
    validate_transition,
)


class TestHappyPath:
    def test_full_lifecycle(self) -> None:
        sm = BondStateMachine("CREATED", fully_confirmed=True)
        assert sm.status == "CREATED"

        sm.sign_bond()
        assert sm.status == "SIGNED"

        sm.validate_bond()
        assert sm.status == "VALIDATED"

        sm.close_bond()
        assert sm.status == "COMPLETED"


class TestCloseGuard:
    def test_close_requires_both_confirmations(self) -> None:
        sm = BondStateMachine("VALIDATED", fully_confirmed=False)
        with pytest.raises(TransitionNotAllowed):
            sm.close_bond()
        assert sm.status == "VALIDATED"

    def test_close_when_fully_confirmed(self) -> None:
        sm = BondStateMachine("VALIDATED", fully_confirmed=True)
        assert sm.fully_confirmed is True
        sm.close_bond()
        assert sm.status == "COMPLETED"


class TestIllegalTransitions:
    def test_created_to_completed(self) -> None:
        sm = BondStateMachine("CREATED", fully_confirmed=True)
        with pytest.raises(TransitionNotAllowed):
            sm.close_bond()

    def test_signed_cannot_be_signed_again(self) -> None:
        sm = BondStateMachine("SIGNED")
        with pytest.raises(TransitionNotAllowed):
            sm.sign_bond()

    def test_created_cannot_be_validated(self) -> None:
        sm = BondStateMachine("CREATED")
        with pytest.raises(TransitionNotAllowed):
            sm.validate_bond()

    def test_completed_is_final(self) -> None:
        sm = BondStateMachine("COMPLETED", fully_confirmed=True)
        assert sm.get_allowed_events() == []
        with pytest.raises(TransitionNotAllowed):
            sm.close_bond()


class TestAllowedEvents:
    def test_created_allowed(self) -> None:
        assert BondStateMachine("CREATED").get_allowed_events() == ["sign_bond"]

    def test_signed_allowed(self) -> None:
        assert BondStateMachine("SIGNED").get_allowed_events() == ["validate_bond"]

    def test_validated_waiting_for_confirmations(self) -> None:
        sm = BondStateMachine("VALIDATED", fully_confirmed=False)
        assert sm.get_allowed_events() == []

    def test_validated_and_confirmed(self) -> None:
        sm = BondStateMachine("VALIDATED", fully_confirmed=True)
        assert sm.get_allowed_events() == ["close_bond"]

    def test_every_event_is_known(self) -> None:
        assert set(BOND_EVENTS) == {"sign_bond", "validate_bond", "close_bond"}


class TestValidateTransitionFunction:
    def test_valid_transition(self) -> None:
        assert validate_transition("SIGNED", "validate_bond") == "VALIDATED"

    def test_guarded_transition(self) -> None:
        assert validate_transition("VALIDATED", "close_bond", fully_confirmed=True) == "COMPLETED"
        with pytest.raises(TransitionNotAllowed):
            validate_transition("VALIDATED", "close_bond")

    def test_invalid_event_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown event"):
            validate_transition("CREATED", "nonexistent_event")

    def test_invalid_status(self) -> None:
        with pytest.raises(ValueError, match="Unknown status"):
            BondStateMachine("INVALID_STATUS")
