"""Payment Service — the in-process settlement rail.

Implements the TransferGateway protocol against simulated wallets: every
participant has a running balance (which may go negative, modelling value
that arrives from outside the system), and custody holds whatever has been
collected and not yet paid out. Each transfer is keyed by the reference the
ledger assigned; replaying a processed reference moves nothing.

The rail can fail the way a real one does: paying out more than custody
holds raises InsufficientFundsError, and ``set_outage(True)`` makes every
transfer raise TransferError until cleared.
"""

from __future__ import annotations

from collections import defaultdict

from escrow_bonds.domain.exceptions import InsufficientFundsError, TransferError
from escrow_bonds.logging_config import get_logger

logger = get_logger(__name__)


class PaymentService:
    """Simulated settlement rail with per-wallet balances and a custody pool."""

    def __init__(self, custody_wallet: str = "custody") -> None:
        self.custody_wallet = custody_wallet
        self._balances: defaultdict[str, int] = defaultdict(int)
        self._custody = 0
        self._outage = False
        self._processed: set[str] = set()

    # ------------------------------------------------------------------
    # TransferGateway
    # ------------------------------------------------------------------

    async def collect(self, sender: str, amount: int, reference: str, memo: str = "") -> None:
        """Move ``amount`` from the sender's wallet into custody."""
        self._check_available()
        if self._already_processed(reference):
            return
        self._balances[sender] -= amount
        self._custody += amount
        self._processed.add(reference)
        logger.info(
            "payment.collected",
            reference=reference,
            amount=amount,
            from_wallet=sender,
            memo=memo,
        )

    async def send(self, recipient: str, amount: int, reference: str, memo: str = "") -> None:
        """Pay ``amount`` out of custody to the recipient's wallet."""
        self._check_available()
        if self._already_processed(reference):
            return
        if amount > self._custody:
            raise InsufficientFundsError(required=amount, available=self._custody)
        self._custody -= amount
        self._balances[recipient] += amount
        self._processed.add(reference)
        logger.info(
            "payment.sent",
            reference=reference,
            amount=amount,
            to_wallet=recipient,
            memo=memo,
        )

    # ------------------------------------------------------------------
    # Inspection / fault injection
    # ------------------------------------------------------------------

    def balance_of(self, wallet: str) -> int:
        return self._balances.get(wallet, 0)

    @property
    def custody_balance(self) -> int:
        return self._custody

    def processed(self, reference: str) -> bool:
        return reference in self._processed

    def set_outage(self, down: bool) -> None:
        self._outage = down
        logger.warning("payment.outage", down=down)

    def _check_available(self) -> None:
        if self._outage:
            raise TransferError("Settlement rail unavailable")

    def _already_processed(self, reference: str) -> bool:
        if reference in self._processed:
            logger.warning("payment.duplicate_ignored", reference=reference)
            return True
        return False
