"""Tests for Lightning clients."""

import base64
import json

import httpx
import pytest

from lnmixer.lightning.base import LightningError, PaymentStatus
from lnmixer.lightning.dry_run import DryRunLightningNetwork, DryRunLightningNode
from lnmixer.lightning.lnd import LndRestClient


def _b64(hex_value: str) -> str:
    return base64.b64encode(bytes.fromhex(hex_value)).decode()


class TestLndRestClient:
    """Tests for the LND REST client using a mock transport."""

    def _client(self, handler) -> LndRestClient:
        return LndRestClient(
            "https://lnd.test:8080/",
            macaroon="abcd",
            transport=httpx.MockTransport(handler),
        )

    @pytest.mark.asyncio
    async def test_create_invoice(self):
        """Test invoice creation posts to /v1/invoices."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["macaroon"] = request.headers.get("Grpc-Metadata-macaroon")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"payment_request": "lnbc1...", "r_hash": _b64("aa" * 32)})

        invoice = await self._client(handler).create_invoice(5000, memo="mint")

        assert seen["path"] == "/v1/invoices"
        assert seen["macaroon"] == "abcd"
        assert seen["body"]["value_msat"] == "5000"
        assert invoice.invoice == "lnbc1..."
        assert invoice.payment_hash == "aa" * 32

    @pytest.mark.asyncio
    async def test_pay_invoice_success(self):
        """Test a successful payment returns the preimage."""
        def handler(request):
            return httpx.Response(
                200,
                json={"payment_hash": _b64("bb" * 32), "payment_preimage": _b64("cc" * 32)},
            )

        payment = await self._client(handler).pay_invoice("lnbc1...")
        assert payment.succeeded
        assert payment.preimage == "cc" * 32

    @pytest.mark.asyncio
    async def test_pay_invoice_payment_error(self):
        """Test a payment error from LND yields a failed payment."""
        def handler(request):
            return httpx.Response(200, json={"payment_error": "no route"})

        payment = await self._client(handler).pay_invoice("lnbc1...")
        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "no route"

    @pytest.mark.asyncio
    async def test_decode_invoice(self):
        """Test invoice decoding reads the amount and hash."""
        def handler(request):
            assert request.url.path == "/v1/payreq/lnbc1xyz"
            return httpx.Response(
                200,
                json={
                    "num_satoshis": "625",
                    "payment_hash": "dd" * 32,
                    "timestamp": "1700000000",
                    "expiry": "600",
                },
            )

        info = await self._client(handler).decode_invoice("lnbc1xyz")
        assert info.amount_sats == 625
        assert info.expiry == 1700000600

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        """Test HTTP errors are wrapped in LightningError."""
        def handler(request):
            return httpx.Response(500, text="internal")

        with pytest.raises(LightningError):
            await self._client(handler).decode_invoice("lnbc1xyz")

    def test_requires_endpoint(self):
        """Test the client needs a URL."""
        with pytest.raises(ValueError):
            LndRestClient("")


class TestDryRunLightning:
    """Tests for the simulated Lightning network."""

    @pytest.mark.asyncio
    async def test_pay_and_decode(self):
        """Test the dry-run node pays and decodes its invoices."""
        network = DryRunLightningNetwork()
        node = DryRunLightningNode(network)

        invoice = await node.create_invoice(21_000, memo="test")
        info = await node.decode_invoice(invoice.invoice)
        assert info.amount_sats == 21

        payment = await node.pay_invoice(invoice.invoice)
        assert payment.succeeded
        assert network.is_paid(invoice.invoice)

    @pytest.mark.asyncio
    async def test_double_pay_fails(self):
        """Test an invoice cannot be paid twice."""
        network = DryRunLightningNetwork()
        node = DryRunLightningNode(network)
        invoice = await node.create_invoice(1000)

        await node.pay_invoice(invoice.invoice)
        second = await node.pay_invoice(invoice.invoice)
        assert second.status == PaymentStatus.FAILED

    def test_unknown_invoice(self):
        """Test decoding an unknown invoice fails."""
        with pytest.raises(LightningError):
            DryRunLightningNetwork().decode("lnbcrt1n1pnothing")
