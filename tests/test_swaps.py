"""Tests for the dry-run swap gateway."""

import time
from decimal import Decimal

import pytest

from lnmixer.lightning.dry_run import DryRunLightningNetwork
from lnmixer.models import SwapStatus
from lnmixer.signing import DryRunSigner
from lnmixer.swaps.base import SwapError
from lnmixer.swaps.dry_run import DryRunSwapGateway


@pytest.fixture
def network():
    return DryRunLightningNetwork()


@pytest.fixture
def gateway(network):
    return DryRunSwapGateway(network, sats_rate=125)


@pytest.fixture
def signer():
    return DryRunSigner()


class TestToLightning:
    """Tests for chain to Lightning swaps."""

    @pytest.mark.asyncio
    async def test_exact_in_quote(self, gateway):
        """Test an exact-in quote converts at the configured rate."""
        swap = await gateway.get_quote("STRK", "BTC_LN", Decimal("10"))
        assert swap.get_output() == Decimal("1250")
        assert swap.status == SwapStatus.CREATED

    @pytest.mark.asyncio
    async def test_exact_in_fee_taken_from_input(self, network):
        """Test exact-in quotes spend exactly the given amount, fee included."""
        gateway = DryRunSwapGateway(network, sats_rate=125, fee_percent=Decimal("0.01"))

        swap = await gateway.get_quote("STRK", "BTC_LN", Decimal("10"))
        assert swap.quote.amount_in == Decimal("10")
        assert swap.get_fee() == Decimal("0.1")
        assert swap.get_output() == Decimal("1237")

    @pytest.mark.asyncio
    async def test_fee_added_to_input(self, network):
        """Test exact-out quotes add the fee to the input."""
        gateway = DryRunSwapGateway(network, sats_rate=100, fee_percent=Decimal("0.01"))
        invoice = network.create_invoice(1_000_000)

        swap = await gateway.get_quote("STRK", "BTC_LN", Decimal("1000"), exact_in=False, destination=invoice.invoice)
        assert swap.quote.amount_in == Decimal("10.1")
        assert swap.get_fee() == Decimal("0.1")

    @pytest.mark.asyncio
    async def test_commit_and_pay(self, gateway, network, signer):
        """Test committing a swap pays the invoice."""
        invoice = network.create_invoice(125_000)
        swap = await gateway.get_quote("STRK", "BTC_LN", Decimal("125"), exact_in=False, destination=invoice.invoice)

        await swap.commit(signer)
        assert await swap.wait_for_payment()
        assert swap.status == SwapStatus.CLAIMED
        assert network.is_paid(invoice.invoice)

    @pytest.mark.asyncio
    async def test_commit_without_invoice(self, gateway, signer):
        """Test a swap without an invoice cannot be committed."""
        swap = await gateway.get_quote("STRK", "BTC_LN", Decimal("1"))
        with pytest.raises(SwapError):
            await swap.commit(signer)

    @pytest.mark.asyncio
    async def test_expired_quote(self, network, signer):
        """Test committing an expired quote fails."""
        gateway = DryRunSwapGateway(network, quote_ttl_seconds=-1)
        invoice = network.create_invoice(125_000)
        swap = await gateway.get_quote("STRK", "BTC_LN", Decimal("125"), exact_in=False, destination=invoice.invoice)

        assert swap.quote.expiry < time.time()
        with pytest.raises(SwapError):
            await swap.commit(signer)
        assert swap.status == SwapStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_refund_after_failed_payment(self, gateway, network, signer):
        """Test a failed payment can be refunded."""
        gateway.fail_payments = True
        invoice = network.create_invoice(125_000)
        swap = await gateway.get_quote("STRK", "BTC_LN", Decimal("125"), exact_in=False, destination=invoice.invoice)
        await swap.commit(signer)

        assert not await swap.wait_for_payment()
        assert swap.is_refundable
        await swap.refund(signer)
        assert swap.status == SwapStatus.REFUNDED
        assert gateway.refunded[signer.address] == Decimal("1")

        with pytest.raises(SwapError):
            await swap.refund(signer)


class TestFromLightning:
    """Tests for Lightning to chain swaps."""

    @pytest.mark.asyncio
    async def test_deliver_after_payment(self, gateway, network, signer):
        """Test the chain asset is delivered once the invoice is paid."""
        swap = await gateway.get_quote("BTC_LN", "STRK", Decimal("625"), destination="0xA")
        assert not await swap.wait_for_payment()

        network.pay(swap.get_invoice())
        assert await swap.wait_for_payment()
        await swap.commit(signer)
        await swap.claim(signer)

        assert swap.status == SwapStatus.CLAIMED
        assert gateway.delivered["0xA"] == Decimal("5")

    @pytest.mark.asyncio
    async def test_commit_before_payment(self, gateway, signer):
        """Test committing before the invoice is paid fails."""
        swap = await gateway.get_quote("BTC_LN", "STRK", Decimal("625"), destination="0xA")
        with pytest.raises(SwapError):
            await swap.commit(signer)

    @pytest.mark.asyncio
    async def test_destination_required(self, gateway):
        """Test swaps from Lightning need a destination."""
        with pytest.raises(SwapError):
            await gateway.get_quote("BTC_LN", "STRK", Decimal("625"))

    @pytest.mark.asyncio
    async def test_rejected_destination(self, gateway):
        """Test a rejected destination fails the quote."""
        gateway.reject_destinations.add("0xBAD")
        with pytest.raises(SwapError):
            await gateway.get_quote("BTC_LN", "STRK", Decimal("625"), destination="0xBAD")

    @pytest.mark.asyncio
    async def test_unsupported_pair(self, gateway):
        """Test an unknown asset pair is rejected."""
        with pytest.raises(SwapError):
            await gateway.get_quote("ETH", "STRK", Decimal("1"), destination="0xA")
