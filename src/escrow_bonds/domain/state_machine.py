"""Bond State Machine Guard.

Uses python-statemachine to enforce legal status transitions at the domain
level. No matter what the API or a tool does, an illegal transition (e.g.
CREATED -> COMPLETED) raises TransitionNotAllowed.

The machine is instantiated per-bond from the stored status and validates a
transition before the ORM row is updated. Confirmations are not states: they
are two orthogonal slots, and closing is guarded on both being set.

Transition table:
    CREATED    -> SIGNED      (sign_bond)       second party only
    SIGNED     -> VALIDATED   (validate_bond)   arbiter only
    VALIDATED  -> COMPLETED   (close_bond)      arbiter only, both slots confirmed
"""

from __future__ import annotations

from statemachine import State, StateMachine

BOND_EVENTS = ("sign_bond", "validate_bond", "close_bond")


class BondStateMachine(StateMachine):
    """State machine that guards bond lifecycle transitions.

    Usage:
        sm = BondStateMachine(current_status="SIGNED")
        sm.validate_bond()  # transitions to VALIDATED
        sm.status           # "VALIDATED"
    """

    # --- States ---
    CREATED = State("CREATED", initial=True)
    SIGNED = State("SIGNED")
    VALIDATED = State("VALIDATED")
    COMPLETED = State("COMPLETED", final=True)

    # --- Events / Transitions ---
    sign_bond = CREATED.to(SIGNED)
    validate_bond = SIGNED.to(VALIDATED)
    close_bond = VALIDATED.to(COMPLETED, cond="fully_confirmed")

    def __init__(self, current_status: str = "CREATED", fully_confirmed: bool = False) -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The stored BondStatus value (e.g., "SIGNED").
            fully_confirmed: Whether both confirmation slots are set.
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        self._fully_confirmed = fully_confirmed
        super().__init__(start_value=current_status)

    @property
    def fully_confirmed(self) -> bool:
        return self._fully_confirmed

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches BondStatus)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return event names that can fire given the status and confirmations."""
        if self.current_state == self.VALIDATED and not self._fully_confirmed:
            return []
        return [event.name for event in self.allowed_events]


def validate_transition(current_status: str, event_name: str, fully_confirmed: bool = False) -> str:
    """Fire a named event on a throwaway machine and return the new status.

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the status or event name is unknown.
    """
    sm = BondStateMachine(current_status=current_status, fully_confirmed=fully_confirmed)

    event_method = getattr(sm, event_name, None)
    if event_name not in BOND_EVENTS or not callable(event_method):
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status
