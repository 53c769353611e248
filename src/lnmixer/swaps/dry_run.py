"""Dry-run swap provider for simulated mixes."""

import logging
import secrets
import time
from decimal import ROUND_FLOOR, Decimal
from typing import Optional

from lnmixer.lightning.base import LightningError
from lnmixer.lightning.dry_run import DryRunLightningNetwork
from lnmixer.models import SwapQuote, SwapStatus
from lnmixer.signing import SwapSigner
from lnmixer.swaps.base import Swap, SwapError, SwapGateway

logger = logging.getLogger(__name__)


def _tx_id() -> str:
    return "0x" + secrets.token_hex(32)


class _DryRunSwap(Swap):
    def __init__(self, gateway: "DryRunSwapGateway", quote: SwapQuote, invoice: str):
        super().__init__(quote)
        self.gateway = gateway
        self.invoice = invoice

    def get_invoice(self) -> str:
        return self.invoice

    async def refund(self, signer: SwapSigner) -> str:
        if not self.is_refundable:
            raise SwapError(f"Swap {self.id} is {self.status.value}, not refundable")
        if self.status != SwapStatus.REFUNDABLE:
            self.execution.transition(SwapStatus.REFUNDABLE)
        tx_id = _tx_id()
        self.execution.transition(SwapStatus.REFUNDED, tx_id)
        self.gateway.refunded[signer.address] = (
            self.gateway.refunded.get(signer.address, Decimal("0")) + self.quote.amount_in
        )
        logger.info(f"[DRY RUN] Refunded swap {self.id}: {self.quote.amount_in} {self.quote.from_asset}")
        return tx_id


class _ToLightningSwap(_DryRunSwap):
    """Chain asset in, Lightning invoice paid out."""

    async def commit(self, signer: SwapSigner) -> str:
        if not self.invoice:
            raise SwapError(f"Swap {self.id} has no Lightning invoice to pay")
        if self.quote.is_expired:
            self.execution.transition(SwapStatus.EXPIRED)
            raise SwapError(f"Quote {self.id} expired before commit")
        tx_id = _tx_id()
        self.execution.transition(SwapStatus.COMMITED, tx_id)
        logger.info(f"[DRY RUN] Committed {self.quote.amount_in} {self.quote.from_asset} from {signer.address}")
        return tx_id

    async def wait_for_payment(self) -> bool:
        if self.status != SwapStatus.COMMITED:
            raise SwapError(f"Swap {self.id} is {self.status.value}, expected COMMITED")
        if self.gateway.fail_payments:
            self.execution.transition(SwapStatus.REFUNDABLE)
            return False
        try:
            self.gateway.network.pay(self.invoice)
        except LightningError as e:
            logger.warning(f"[DRY RUN] Swap {self.id} could not pay invoice: {e}")
            self.execution.transition(SwapStatus.REFUNDABLE)
            return False
        self.execution.transition(SwapStatus.CLAIMED)
        self.execution.amount_out = self.quote.amount_out
        return True

    async def claim(self, signer: SwapSigner) -> str:
        # The provider claims the locked funds itself once it has paid
        if self.status != SwapStatus.CLAIMED:
            raise SwapError(f"Swap {self.id} is {self.status.value}, provider has not claimed")
        return self.execution.tx_id or ""


class _FromLightningSwap(_DryRunSwap):
    """Lightning invoice paid in, chain asset delivered out."""

    def __init__(self, gateway: "DryRunSwapGateway", quote: SwapQuote, invoice: str, destination: str):
        super().__init__(gateway, quote, invoice)
        self.destination = destination

    async def wait_for_payment(self) -> bool:
        return self.gateway.network.is_paid(self.invoice)

    async def commit(self, signer: SwapSigner) -> str:
        if not self.gateway.network.is_paid(self.invoice):
            raise SwapError(f"Swap {self.id}: invoice not paid, cannot commit")
        tx_id = _tx_id()
        self.execution.transition(SwapStatus.COMMITED, tx_id)
        return tx_id

    async def claim(self, signer: SwapSigner) -> str:
        if self.status != SwapStatus.COMMITED:
            raise SwapError(f"Swap {self.id} is {self.status.value}, expected COMMITED")
        tx_id = _tx_id()
        self.execution.transition(SwapStatus.CLAIMED, tx_id)
        self.execution.amount_out = self.quote.amount_out
        self.gateway.delivered[self.destination] = (
            self.gateway.delivered.get(self.destination, Decimal("0")) + self.quote.amount_out
        )
        logger.info(
            f"[DRY RUN] Delivered {self.quote.amount_out} {self.quote.to_asset} to {self.destination}"
        )
        return tx_id


class DryRunSwapGateway(SwapGateway):
    """
    Simulated swap provider for PoC testing.

    Converts between the chain asset and Lightning at a fixed sats rate
    with a configurable fee, settling invoices on a DryRunLightningNetwork.
    """

    def __init__(
        self,
        network: DryRunLightningNetwork,
        sats_rate: int = 125,
        source_asset: str = "STRK",
        bridge_asset: str = "BTC_LN",
        fee_percent: Decimal = Decimal("0"),
        quote_ttl_seconds: int = 60,
    ):
        self.network = network
        self.sats_rate = Decimal(sats_rate)
        self.source_asset = source_asset.upper()
        self.bridge_asset = bridge_asset.upper()
        self.fee_percent = fee_percent
        self.quote_ttl_seconds = quote_ttl_seconds
        self.fail_payments = False
        self.reject_destinations: set[str] = set()
        self.delivered: dict[str, Decimal] = {}
        self.refunded: dict[str, Decimal] = {}

    @property
    def name(self) -> str:
        return "dry_run"

    def _quote(self, from_asset: str, to_asset: str, amount_in: Decimal, amount_out: Decimal, fee: Decimal) -> SwapQuote:
        return SwapQuote(
            id=f"dryrun_{secrets.token_hex(8)}",
            from_asset=from_asset,
            to_asset=to_asset,
            amount_in=amount_in,
            amount_out=amount_out,
            fee=fee,
            expiry=time.time() + self.quote_ttl_seconds,
            price_info={"sats_per_unit": str(self.sats_rate), "simulated": True},
        )

    async def get_quote(
        self,
        from_asset: str,
        to_asset: str,
        amount: Decimal,
        exact_in: bool = True,
        destination: Optional[str] = None,
    ) -> Swap:
        from_asset = from_asset.upper()
        to_asset = to_asset.upper()
        amount = Decimal(amount)
        if amount <= 0:
            raise SwapError(f"Swap amount must be positive, got {amount}")
        if destination and destination in self.reject_destinations:
            raise SwapError(f"Provider rejected swap to {destination}")

        if from_asset == self.source_asset and to_asset == self.bridge_asset:
            if exact_in:
                # Fee comes out of the input, output rounds down to whole sats
                fee = amount * self.fee_percent
                sats = ((amount - fee) * self.sats_rate).to_integral_value(rounding=ROUND_FLOOR)
                quote = self._quote(from_asset, to_asset, amount, sats, fee)
            else:
                sats = amount
                base_in = sats / self.sats_rate
                fee = base_in * self.fee_percent
                quote = self._quote(from_asset, to_asset, base_in + fee, sats, fee)
            return _ToLightningSwap(self, quote, destination or "")

        if from_asset == self.bridge_asset and to_asset == self.source_asset:
            if not destination:
                raise SwapError("Destination address required for swaps from Lightning")
            if not exact_in:
                raise SwapError("Lightning -> chain swaps are quoted exact-in")
            sats = int(amount)
            gross_out = Decimal(sats) / self.sats_rate
            fee = gross_out * self.fee_percent
            quote = self._quote(from_asset, to_asset, Decimal(sats), gross_out - fee, fee)
            invoice = self.network.create_invoice(sats * 1000, memo=f"swap {quote.id}")
            return _FromLightningSwap(self, quote, invoice.invoice, destination)

        raise SwapError(f"Unsupported pair {from_asset} -> {to_asset}")
