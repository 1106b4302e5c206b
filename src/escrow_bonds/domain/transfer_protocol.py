"""Transfer Gateway Protocol.

Defines the interface every settlement rail must implement. This is a
Protocol (structural subtyping) so concrete rails don't need to inherit from
a base class — they just need to match the shape.

The ledger assigns the transfer reference and journals it before submitting
the transfer, so the reference doubles as the rail's idempotency key: a rail
must treat a reference it has already processed as done.

Both calls may fail. Implementations signal failure by raising
TransferError (or a subclass such as InsufficientFundsError); the ledger
treats any other exception the same way and rolls the operation back.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TransferGateway(Protocol):
    """Moves value between participants and system custody.

    Concrete implementations:
        - services/payment_service.py  (in-process simulated rail)
    """

    async def collect(self, sender: str, amount: int, reference: str, memo: str = "") -> None:
        """Take ``amount`` from ``sender`` into custody under ``reference``."""
        ...

    async def send(self, recipient: str, amount: int, reference: str, memo: str = "") -> None:
        """Pay ``amount`` out of custody to ``recipient`` under ``reference``."""
        ...
