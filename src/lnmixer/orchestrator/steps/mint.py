"""Fund a mint quote by swapping the withdrawn chain asset to Lightning."""

import logging
from decimal import Decimal

from lnmixer.ecash.base import EcashClient, MintQuote
from lnmixer.errors import InvariantViolation, MixError, SwapFailed
from lnmixer.lightning.base import LightningClient
from lnmixer.models import EventType, SwapExecution
from lnmixer.orchestrator.events import ProgressEmitter
from lnmixer.orchestrator.steps.common import refund_once
from lnmixer.signing import SwapSigner
from lnmixer.swaps.base import SwapGateway

logger = logging.getLogger(__name__)


async def step_create_mint_invoice(ecash: EcashClient, sats: int, emit: ProgressEmitter) -> MintQuote:
    try:
        quote = await ecash.create_mint_quote(sats)
    except MixError:
        raise
    except Exception as e:
        raise InvariantViolation(f"Mint {ecash.mint_url} refused a quote for {sats} sats: {e}") from e

    if not quote.request:
        raise InvariantViolation(f"Mint quote {quote.quote} carries no Lightning invoice")

    emit.emit(
        EventType.LIGHTNING_INVOICE_CREATED,
        f"Mint invoice created for {sats} sats",
        progress=25,
        details={"quote_id": quote.quote, "mint_url": ecash.mint_url},
    )
    return quote


async def step_swap_to_lightning(
    gateway: SwapGateway,
    signer: SwapSigner,
    lightning: LightningClient,
    mint_quote: MintQuote,
    available: Decimal,
    source_asset: str,
    bridge_asset: str,
    emit: ProgressEmitter,
) -> SwapExecution:
    """Pay the mint invoice from the controlling account via the provider.

    A swap that fails after commit is refunded once. Either way the step
    raises SwapFailed, recording whether the refund went through.
    """
    invoice = mint_quote.request
    try:
        info = await lightning.decode_invoice(invoice)
    except Exception as e:
        raise SwapFailed(f"Cannot decode mint invoice: {e}") from e
    if info.amount_sats != mint_quote.amount:
        raise InvariantViolation(
            f"Mint invoice is for {info.amount_sats} sats, quote was {mint_quote.amount}",
            {"quote_id": mint_quote.quote},
        )

    try:
        swap = await gateway.get_quote(
            source_asset, bridge_asset, Decimal(mint_quote.amount), exact_in=False, destination=invoice
        )
    except MixError:
        raise
    except Exception as e:
        raise SwapFailed(f"Swap quote {source_asset} -> {bridge_asset} failed: {e}") from e

    if swap.quote.amount_in > available:
        raise SwapFailed(
            f"Swap needs {swap.quote.amount_in} {source_asset}, only {available} withdrawn",
            swap_id=swap.id,
        )

    logger.info(f"Committing swap {swap.id}: {swap.quote.amount_in} {source_asset} -> {mint_quote.amount} sats")
    try:
        await swap.commit(signer)
    except Exception as e:
        raise SwapFailed(f"Swap commit failed: {e}", swap_id=swap.id) from e

    cause = None
    try:
        paid = await swap.wait_for_payment()
    except Exception as e:
        paid, cause = False, e

    if not paid:
        refunded = await refund_once(swap, signer)
        reason = f": {cause}" if cause else ""
        raise SwapFailed(
            f"Swap {swap.id} did not pay the mint invoice{reason}",
            swap_id=swap.id,
            refunded=refunded,
        ) from cause

    emit.emit(
        EventType.LIGHTNING_PAID,
        f"Lightning invoice paid ({mint_quote.amount} sats)",
        progress=35,
        details={"swap_id": swap.id, "tx_id": swap.execution.tx_id},
    )
    return swap.execution
