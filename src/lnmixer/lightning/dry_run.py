"""Dry-run Lightning network for simulated mixes.

A single DryRunLightningNetwork is shared by the simulated node, mints
and swap provider so an invoice created by one can be paid by another.
"""

import hashlib
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from lnmixer.lightning.base import (
    Invoice,
    InvoiceInfo,
    LightningClient,
    LightningError,
    Payment,
    PaymentStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class _InvoiceRecord:
    invoice: str
    payment_hash: str
    preimage: str
    amount_msat: int
    expires_at: int
    memo: Optional[str] = None
    paid: bool = False


class DryRunLightningNetwork:
    """Shared invoice registry standing in for the Lightning network."""

    def __init__(self, prefix: str = "lnbcrt"):
        self.prefix = prefix
        self._invoices: dict[str, _InvoiceRecord] = {}

    def create_invoice(
        self, amount_msat: int, memo: Optional[str] = None, expiry: int = 3600
    ) -> Invoice:
        if amount_msat <= 0:
            raise LightningError(f"Invoice amount must be positive, got {amount_msat} msat")

        preimage = secrets.token_hex(32)
        payment_hash = hashlib.sha256(bytes.fromhex(preimage)).hexdigest()
        invoice = f"{self.prefix}{amount_msat // 1000}n1p{payment_hash}"
        record = _InvoiceRecord(
            invoice=invoice,
            payment_hash=payment_hash,
            preimage=preimage,
            amount_msat=amount_msat,
            expires_at=int(time.time()) + expiry,
            memo=memo,
        )
        self._invoices[invoice] = record
        return Invoice(
            invoice=invoice,
            payment_hash=payment_hash,
            amount_msat=amount_msat,
            expiry=record.expires_at,
            memo=memo,
        )

    def _get(self, invoice: str) -> _InvoiceRecord:
        record = self._invoices.get(invoice)
        if record is None:
            raise LightningError(f"Unknown invoice {invoice[:24]}...")
        return record

    def decode(self, invoice: str) -> InvoiceInfo:
        record = self._get(invoice)
        return InvoiceInfo(
            amount_msat=record.amount_msat,
            payment_hash=record.payment_hash,
            expiry=record.expires_at,
            description=record.memo,
        )

    def pay(self, invoice: str) -> str:
        """Settle an invoice, returning its preimage."""
        record = self._get(invoice)
        if record.paid:
            raise LightningError(f"Invoice {record.payment_hash[:16]}... already paid")
        if time.time() > record.expires_at:
            raise LightningError(f"Invoice {record.payment_hash[:16]}... expired")
        record.paid = True
        logger.debug(f"[DRY RUN] Settled invoice {record.payment_hash[:16]}... ({record.amount_msat} msat)")
        return record.preimage

    def is_paid(self, invoice: str) -> bool:
        return self._get(invoice).paid


class DryRunLightningNode(LightningClient):
    """Lightning client backed by a DryRunLightningNetwork."""

    def __init__(self, network: DryRunLightningNetwork):
        self.network = network

    async def create_invoice(
        self, amount_msat: int, memo: Optional[str] = None, expiry: int = 3600
    ) -> Invoice:
        return self.network.create_invoice(amount_msat, memo, expiry)

    async def pay_invoice(self, invoice: str) -> Payment:
        try:
            info = self.network.decode(invoice)
            preimage = self.network.pay(invoice)
        except LightningError as e:
            return Payment(status=PaymentStatus.FAILED, failure_reason=str(e))
        return Payment(
            status=PaymentStatus.SUCCEEDED,
            payment_hash=info.payment_hash,
            preimage=preimage,
        )

    async def decode_invoice(self, invoice: str) -> InvoiceInfo:
        return self.network.decode(invoice)
