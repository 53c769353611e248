"""Claim ecash proofs once the mint has seen the Lightning payment."""

import asyncio
import logging

from lnmixer.ecash.base import EcashClient, MintQuote, MintQuoteState
from lnmixer.errors import InvariantViolation, MixError, PaymentNotConfirmed
from lnmixer.models import EcashProof, EventType, total_amount
from lnmixer.orchestrator.events import ProgressEmitter
from lnmixer.orchestrator.timing import Sleeper

logger = logging.getLogger(__name__)

MINT_AMOUNT_TOLERANCE = 1  # sats


async def _check_paid(ecash: EcashClient, quote_id: str) -> MintQuoteState:
    try:
        status = await ecash.check_mint_quote(quote_id)
    except MixError:
        raise
    except Exception as e:
        raise PaymentNotConfirmed(f"Could not check mint quote {quote_id}: {e}") from e
    return status.state


async def step_claim_proofs(
    ecash: EcashClient,
    mint_quote: MintQuote,
    emit: ProgressEmitter,
    sleep: Sleeper = asyncio.sleep,
    retry_delay: float = 2.0,
) -> list[EcashProof]:
    state = await _check_paid(ecash, mint_quote.quote)
    if state != MintQuoteState.PAID:
        logger.info(f"Mint quote {mint_quote.quote} is {state.value}, rechecking in {retry_delay}s")
        await sleep(retry_delay)
        state = await _check_paid(ecash, mint_quote.quote)
        if state != MintQuoteState.PAID:
            raise PaymentNotConfirmed(
                f"Mint quote {mint_quote.quote} not paid (state {state.value})",
                {"quote_id": mint_quote.quote, "state": state.value},
            )

    try:
        proofs = await ecash.mint_proofs(mint_quote.amount, mint_quote.quote)
    except MixError:
        raise
    except Exception as e:
        raise PaymentNotConfirmed(f"Mint refused to issue proofs for paid quote: {e}") from e

    if not proofs:
        raise InvariantViolation(f"Mint issued no proofs for quote {mint_quote.quote}")

    minted = total_amount(proofs)
    if abs(minted - mint_quote.amount) > MINT_AMOUNT_TOLERANCE:
        logger.warning(f"Minted {minted} sats but quote was for {mint_quote.amount}")

    emit.emit(
        EventType.CASHU_MINTED,
        f"Minted {len(proofs)} ecash proofs ({minted} sats)",
        progress=45,
        details={"proof_count": len(proofs), "sats": minted, "mint_url": ecash.mint_url},
    )
    return proofs
