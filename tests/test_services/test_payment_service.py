"""Unit tests for the in-process PaymentService rail."""

from __future__ import annotations

import pytest

from escrow_bonds.domain.exceptions import InsufficientFundsError, TransferError
from escrow_bonds.domain.models import new_transfer_reference
from escrow_bonds.domain.transfer_protocol import TransferGateway
from escrow_bonds.services.payment_service import PaymentService


class TestPaymentService:
    def test_satisfies_gateway_protocol(self) -> None:
        assert isinstance(PaymentService(), TransferGateway)

    @pytest.mark.asyncio
    async def test_collect_then_send(self) -> None:
        rail = PaymentService()
        ref_in, ref_out = new_transfer_reference(), new_transfer_reference()
        await rail.collect("bob", 1000, ref_in, "escrow")
        await rail.send("alice", 900, ref_out, "payout")

        assert ref_in != ref_out
        assert ref_in.startswith("0x") and len(ref_in) == 66
        assert rail.processed(ref_in) and rail.processed(ref_out)
        assert rail.balance_of("bob") == -1000
        assert rail.balance_of("alice") == 900
        assert rail.custody_balance == 100

    @pytest.mark.asyncio
    async def test_replayed_reference_moves_nothing(self) -> None:
        rail = PaymentService()
        await rail.collect("bob", 1000, "0xin")
        await rail.send("alice", 900, "0xout")
        await rail.send("alice", 900, "0xout")
        await rail.collect("bob", 1000, "0xin")

        assert rail.balance_of("alice") == 900
        assert rail.balance_of("bob") == -1000
        assert rail.custody_balance == 100

    @pytest.mark.asyncio
    async def test_send_more_than_custody(self) -> None:
        rail = PaymentService()
        await rail.collect("bob", 100, "0x1")
        with pytest.raises(InsufficientFundsError) as exc_info:
            await rail.send("alice", 101, "0x2")
        assert exc_info.value.code == "INSUFFICIENT_FUNDS"
        assert exc_info.value.available == 100
        assert rail.custody_balance == 100
        assert not rail.processed("0x2")

    @pytest.mark.asyncio
    async def test_outage(self) -> None:
        rail = PaymentService()
        rail.set_outage(True)
        with pytest.raises(TransferError, match="unavailable"):
            await rail.collect("bob", 100, "0x1")
        assert rail.balance_of("bob") == 0

        rail.set_outage(False)
        await rail.collect("bob", 100, "0x1")
        assert rail.custody_balance == 100
