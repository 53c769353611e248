"""LND REST API client."""

import base64
import logging
import time
from typing import Any, Optional

import httpx

from lnmixer.lightning.base import (
    Invoice,
    InvoiceInfo,
    LightningClient,
    LightningError,
    Payment,
    PaymentStatus,
)

logger = logging.getLogger(__name__)


def _b64_to_hex(value: Optional[str]) -> str:
    """LND returns byte fields as base64 in JSON responses."""
    if not value:
        return ""
    return base64.b64decode(value).hex()


class LndRestClient(LightningClient):
    """Lightning client for an LND node's REST interface.

    Args:
        base_url: REST endpoint, e.g. https://localhost:8080
        macaroon: Hex-encoded macaroon sent in Grpc-Metadata-macaroon
        tls_cert: Path to the node's TLS certificate (verification is
            enabled against it when given)
        timeout: Request timeout in seconds
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        base_url: str,
        macaroon: str = "",
        tls_cert: str = "",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ValueError("LND endpoint not configured")
        self.base_url = base_url.rstrip("/")
        self.macaroon = macaroon
        self.tls_cert = tls_cert
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self.macaroon:
            headers["Grpc-Metadata-macaroon"] = self.macaroon
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            verify=self.tls_cert or True,
            transport=self._transport,
        )

    async def _call(self, method: str, path: str, data: Optional[dict] = None) -> dict[str, Any]:
        async with self._client() as client:
            try:
                response = await client.request(method, path, json=data)
            except httpx.HTTPError as e:
                raise LightningError(f"LND request {method} {path} failed: {e}") from e

        if response.status_code != 200:
            raise LightningError(
                f"LND API error: {response.status_code} {response.text[:200]}"
            )
        return response.json()

    async def create_invoice(
        self, amount_msat: int, memo: Optional[str] = None, expiry: int = 3600
    ) -> Invoice:
        result = await self._call(
            "POST",
            "/v1/invoices",
            {"value_msat": str(amount_msat), "memo": memo or "", "expiry": str(expiry)},
        )
        invoice = Invoice(
            invoice=result["payment_request"],
            payment_hash=_b64_to_hex(result.get("r_hash")),
            amount_msat=amount_msat,
            expiry=int(time.time()) + expiry,
            memo=memo,
        )
        logger.info(f"Created invoice for {amount_msat} msat (hash {invoice.payment_hash[:16]}...)")
        return invoice

    async def pay_invoice(self, invoice: str) -> Payment:
        result = await self._call(
            "POST", "/v1/channels/transactions", {"payment_request": invoice}
        )
        payment_hash = _b64_to_hex(result.get("payment_hash"))
        error = result.get("payment_error")
        if error:
            logger.warning(f"Lightning payment failed: {error}")
            return Payment(
                status=PaymentStatus.FAILED,
                payment_hash=payment_hash,
                failure_reason=error,
            )

        return Payment(
            status=PaymentStatus.SUCCEEDED,
            payment_hash=payment_hash,
            preimage=_b64_to_hex(result.get("payment_preimage")),
        )

    async def decode_invoice(self, invoice: str) -> InvoiceInfo:
        result = await self._call("GET", f"/v1/payreq/{invoice}")
        amount_msat = int(result.get("num_msat") or 0)
        if not amount_msat and result.get("num_satoshis"):
            amount_msat = int(result["num_satoshis"]) * 1000

        expiry = None
        if result.get("timestamp"):
            expiry = int(result["timestamp"]) + int(result.get("expiry") or 3600)

        return InvoiceInfo(
            amount_msat=amount_msat,
            payment_hash=result.get("payment_hash", ""),
            expiry=expiry,
            description=result.get("description") or None,
        )
