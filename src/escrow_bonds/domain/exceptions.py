"""Domain exceptions for the bonding engine.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware,
and to error payloads by the MCP tools. Each one carries a stable ``code`` so
callers can tell causes apart without parsing messages.
"""

from __future__ import annotations


class BondingError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "BONDING_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Lookup / Authorization ---


class BondNotFoundError(BondingError):
    """Raised when a bond identifier does not exist."""

    def __init__(self, bond_id: int) -> None:
        super().__init__(message=f"Bond not found: {bond_id}", code="NOT_FOUND")
        self.bond_id = bond_id


class UnauthorizedError(BondingError):
    """Raised when the caller is not allowed to perform an operation."""

    def __init__(self, actor: str, action: str) -> None:
        super().__init__(
            message=f"Actor {actor!r} is not authorized to {action}",
            code="UNAUTHORIZED",
        )
        self.actor = actor
        self.action = action


# --- Creation ---


class InvalidBondError(BondingError):
    """Raised when bond creation arguments are rejected."""

    def __init__(self, message: str, code: str = "INVALID_BOND") -> None:
        super().__init__(message=message, code=code)


class InvalidNameError(InvalidBondError):
    def __init__(self) -> None:
        super().__init__("Bond name must be a non-empty string", code="INVALID_NAME")


class AmountBelowMinimumError(InvalidBondError):
    def __init__(self, amount: object, minimum: int) -> None:
        super().__init__(
            f"Bond amount must be an integer >= {minimum}, got {amount!r}",
            code="AMOUNT_BELOW_MINIMUM",
        )
        self.amount = amount
        self.minimum = minimum


class InvalidPartyError(InvalidBondError):
    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_PARTY")


# --- Lifecycle ---


class BondStateError(BondingError):
    """Base for precondition failures tied to the bond's current state."""

    def __init__(self, bond_id: int, message: str, code: str) -> None:
        super().__init__(message=message, code=code)
        self.bond_id = bond_id


class NotSignedError(BondStateError):
    def __init__(self, bond_id: int) -> None:
        super().__init__(bond_id, f"Bond {bond_id} has not been signed", "NOT_SIGNED")


class NotValidatedError(BondStateError):
    def __init__(self, bond_id: int) -> None:
        super().__init__(bond_id, f"Bond {bond_id} has not been validated", "NOT_VALIDATED")


class AlreadySignedError(BondStateError):
    def __init__(self, bond_id: int) -> None:
        super().__init__(bond_id, f"Bond {bond_id} is already signed", "ALREADY_SIGNED")


class AlreadyValidatedError(BondStateError):
    def __init__(self, bond_id: int) -> None:
        super().__init__(bond_id, f"Bond {bond_id} is already validated", "ALREADY_VALIDATED")


class AlreadyConfirmedError(BondStateError):
    def __init__(self, bond_id: int, actor: str) -> None:
        super().__init__(
            bond_id,
            f"Bond {bond_id} was already confirmed by {actor!r}",
            "ALREADY_CONFIRMED",
        )
        self.actor = actor


class AlreadyCompletedError(BondStateError):
    def __init__(self, bond_id: int) -> None:
        super().__init__(bond_id, f"Bond {bond_id} is already completed", "ALREADY_COMPLETED")


class IncompleteConfirmationsError(BondStateError):
    """Raised when closing a bond whose confirmation slots are not both set."""

    def __init__(self, bond_id: int, missing: list[str]) -> None:
        super().__init__(
            bond_id,
            f"Bond {bond_id} is missing confirmations from: {', '.join(missing)}",
            "INCOMPLETE_CONFIRMATIONS",
        )
        self.missing = missing


class InvalidStateTransitionError(BondingError):
    """Raised when the state machine guard rejects a transition.

    Preconditions are checked first with specific errors, so reaching this
    means the stored state itself is inconsistent.
    """

    def __init__(self, current_state: str, attempted_event: str) -> None:
        super().__init__(
            message=f"Invalid state transition: {attempted_event} from {current_state}",
            code="INVALID_STATE_TRANSITION",
        )
        self.current_state = current_state
        self.attempted_event = attempted_event


# --- Value ---


class WrongAmountError(BondingError):
    """Raised when the second party tenders anything but the exact bond amount."""

    def __init__(self, bond_id: int, expected: int, tendered: int) -> None:
        super().__init__(
            message=f"Bond {bond_id} requires exactly {expected}, tendered {tendered}",
            code="WRONG_AMOUNT",
        )
        self.bond_id = bond_id
        self.expected = expected
        self.tendered = tendered


class UnexpectedTenderError(BondingError):
    """Raised when the first party attaches value to its confirmation."""

    def __init__(self, bond_id: int, tendered: int) -> None:
        super().__init__(
            message=f"First-party confirmation of bond {bond_id} must not carry value "
            f"(tendered {tendered})",
            code="UNEXPECTED_TENDER",
        )
        self.bond_id = bond_id
        self.tendered = tendered


class TransferError(BondingError):
    """Raised when the settlement rail rejects or fails a value transfer."""

    def __init__(self, message: str, reference: str | None = None) -> None:
        super().__init__(message=message, code="TRANSFER_FAILED")
        self.reference = reference


class InsufficientFundsError(TransferError):
    """Raised when custody holds less than the amount being sent."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            message=f"Insufficient funds: required {required}, available {available}",
        )
        self.code = "INSUFFICIENT_FUNDS"
        self.required = required
        self.available = available


class LedgerInvariantError(BondingError):
    """Raised when custody no longer equals unsettled escrow plus accrued fees."""

    def __init__(self, custodial: int, escrowed: int, accrued: int) -> None:
        super().__init__(
            message=(
                f"Ledger invariant violated: custodial {custodial} != "
                f"escrowed {escrowed} + accrued {accrued}"
            ),
            code="LEDGER_INVARIANT_VIOLATION",
        )
        self.custodial = custodial
        self.escrowed = escrowed
        self.accrued = accrued


# --- Idempotency ---


class DuplicateOperationError(BondingError):
    """Raised when a duplicate idempotency key is detected."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            message=f"Duplicate operation detected for key: {idempotency_key}",
            code="DUPLICATE_OPERATION",
        )
        self.idempotency_key = idempotency_key
