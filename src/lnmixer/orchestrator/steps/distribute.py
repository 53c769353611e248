"""Redeem proofs over Lightning and deliver the chain asset to each destination.

Destinations are served one at a time, in order, each with an equal
floor share of the pool. Melt change is carried forward to the next
destination. The first failure ends the run; the proofs still held at
that point travel on the raised error as unspent_proofs.

When proofs are spread over several mints and none of them holds enough
for the next invoice, value is first moved into the largest holding over
Lightning (see MultiMintRouter.transfer) and melted from there.

Known limitation: the share is the pool total divided by the number of
destinations, but every melt needs the share plus the mint's fee
reserve. With a non-zero reserve the first destinations are paid from
principal and the last ones rely on returned change and the rounding
remainder. A mint that keeps its reserve leaves the last destination
short and the run fails with InsufficientProofs.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from lnmixer.ecash.base import EcashClient, MeltQuote
from lnmixer.ecash.router import MultiMintRouter, ProofTracker
from lnmixer.errors import InsufficientProofs, InvariantViolation, MixError, PaymentNotConfirmed, SwapFailed
from lnmixer.lightning.base import LightningClient
from lnmixer.models import DistributionResult, EcashProof, EventType, total_amount
from lnmixer.orchestrator.events import ProgressEmitter
from lnmixer.orchestrator.selection import ProofSelection, select_proofs
from lnmixer.orchestrator.steps.common import ClientResolver, client_resolver, group_by_mint, refund_once
from lnmixer.signing import SwapSigner
from lnmixer.swaps.base import Swap, SwapGateway

logger = logging.getLogger(__name__)


@dataclass
class DistributionOutcome:
    results: list[DistributionResult]
    remaining: list[EcashProof]


async def _melt_quote(client: EcashClient, invoice: str) -> MeltQuote:
    try:
        return await client.create_melt_quote(invoice)
    except Exception as e:
        raise PaymentNotConfirmed(f"Mint {client.mint_url} cannot quote the swap invoice: {e}") from e


def _select(
    client: EcashClient, quote: MeltQuote, group: list[EcashProof], pool: list[EcashProof]
) -> tuple[EcashClient, MeltQuote, ProofSelection]:
    picked = select_proofs(group, quote.total_required)
    chosen = {p.secret for p in picked.selected}
    remaining = [p for p in pool if p.secret not in chosen]
    return client, quote, ProofSelection(selected=picked.selected, remaining=remaining)


async def _consolidate(
    pool: list[EcashProof],
    target_url: str,
    needed: int,
    router: MultiMintRouter,
    track: ProofTracker,
) -> list[EcashProof]:
    """Move needed sats from the other mints into target_url.

    Returns the new pool. Donors are drained largest first. A donor that
    cannot also pay its own fee reserve on the full move is retried once
    with the move cut down to what it can afford.
    """
    groups = group_by_mint(pool)
    donors = sorted(
        ((url, g) for url, g in groups.items() if url != target_url),
        key=lambda item: total_amount(item[1]),
        reverse=True,
    )
    held = {url: list(g) for url, g in groups.items()}

    for donor_url, group in donors:
        if needed <= 0:
            break
        move = min(needed, total_amount(group))
        others = [p for url, g in held.items() if url != donor_url for p in g]

        def report(live: list[EcashProof], others=others) -> None:
            track(others + live)

        try:
            try:
                left, minted = await router.transfer(donor_url, target_url, move, group, on_update=report)
            except InsufficientProofs as e:
                move -= e.required - e.available
                if move <= 0:
                    logger.warning(f"Mint {donor_url} cannot cover its own fee reserve, skipping")
                    continue
                left, minted = await router.transfer(donor_url, target_url, move, group, on_update=report)
        except MixError:
            raise
        except Exception as e:
            raise PaymentNotConfirmed(f"Moving {move} sats from {donor_url} to {target_url} failed: {e}") from e

        held[donor_url] = left
        held[target_url] = held.get(target_url, []) + minted
        needed -= move

    return [p for g in held.values() for p in g]


async def _plan_melt(
    pool: list[EcashProof],
    invoice: str,
    amount: int,
    resolve: ClientResolver,
    router: Optional[MultiMintRouter],
    track: ProofTracker,
) -> tuple[EcashClient, MeltQuote, ProofSelection]:
    """Find a mint whose proofs cover the invoice and select from them.

    Mints holding the most value are tried first, and only mints holding
    at least the invoice amount are asked for a quote. If none covers the
    invoice plus its fee reserve, value is consolidated into the largest
    holding through the router. The returned selection's remaining list
    covers the whole pool, not just the chosen mint.
    """
    ordered = sorted(group_by_mint(pool).items(), key=lambda item: total_amount(item[1]), reverse=True)
    if not ordered:
        raise InsufficientProofs(amount, 0)

    quotes: dict[str, MeltQuote] = {}
    for mint_url, group in ordered:
        if total_amount(group) < amount:
            break
        client = resolve(mint_url)
        quote = quotes[mint_url] = await _melt_quote(client, invoice)
        if total_amount(group) >= quote.total_required:
            return _select(client, quote, group, pool)

    target_url, target_group = ordered[0]
    if router is None or len(ordered) < 2 or target_url not in router:
        required = quotes[target_url].total_required if target_url in quotes else amount
        raise InsufficientProofs(required, total_amount(target_group))

    client = resolve(target_url)
    quote = quotes.get(target_url) or await _melt_quote(client, invoice)

    needed = quote.total_required - total_amount(target_group)
    logger.info(f"No single mint covers {quote.total_required} sats, moving {needed} sats into {target_url}")
    pool = await _consolidate(pool, target_url, needed, router, track)
    track(pool)

    target_group = group_by_mint(pool).get(target_url, [])
    if total_amount(target_group) < quote.total_required:
        raise InsufficientProofs(quote.total_required, total_amount(target_group))
    return _select(client, quote, target_group, pool)


async def _deliver(
    swap: Swap,
    signer: SwapSigner,
    destination: str,
) -> None:
    try:
        paid = await swap.wait_for_payment()
    except Exception as e:
        raise SwapFailed(f"Swap {swap.id} payment check failed: {e}", swap_id=swap.id) from e
    if not paid:
        raise SwapFailed(f"Swap {swap.id} did not observe the Lightning payment", swap_id=swap.id)

    try:
        await swap.commit(signer)
        await swap.claim(signer)
    except Exception as e:
        refunded = await refund_once(swap, signer)
        raise SwapFailed(
            f"Swap {swap.id} to {destination} failed after payment: {e}",
            swap_id=swap.id,
            refunded=refunded,
        ) from e


async def step_swap_back_and_distribute(
    proofs: list[EcashProof],
    destinations: list[str],
    gateway: SwapGateway,
    lightning: LightningClient,
    ecash: EcashClient,
    signer: SwapSigner,
    emit: ProgressEmitter,
    router: Optional[MultiMintRouter] = None,
    source_asset: str = "STRK",
    bridge_asset: str = "BTC_LN",
    on_update: Optional[ProofTracker] = None,
) -> DistributionOutcome:
    """Pay every destination an equal share of proofs.

    on_update, when given, is called with the full set of proofs still
    held after every melt and every cross-mint move.
    """
    total = total_amount(proofs)
    count = len(destinations)
    share = total // count
    if share == 0:
        raise InsufficientProofs(count, total, f"Cannot split {total} sats across {count} destinations")

    resolve = client_resolver(ecash, router)
    pool = list(proofs)
    held = pool
    results: list[DistributionResult] = []

    def track(live: list[EcashProof]) -> None:
        nonlocal held
        held = live
        if on_update is not None:
            on_update(live)

    try:
        for index, destination in enumerate(destinations):
            try:
                swap = await gateway.get_quote(
                    bridge_asset, source_asset, Decimal(share), exact_in=True, destination=destination
                )
            except MixError:
                raise
            except Exception as e:
                raise SwapFailed(f"Swap to {destination} was rejected: {e}") from e

            invoice = swap.get_invoice()
            try:
                info = await lightning.decode_invoice(invoice)
            except Exception as e:
                raise SwapFailed(f"Cannot decode swap invoice: {e}", swap_id=swap.id) from e
            if info.amount_sats != share:
                raise InvariantViolation(
                    f"Swap invoice is for {info.amount_sats} sats, expected {share}",
                    {"swap_id": swap.id, "destination": destination},
                )

            client, melt_quote, selection = await _plan_melt(pool, invoice, share, resolve, router, track)
            try:
                melt = await client.melt_proofs(melt_quote, selection.selected)
            except Exception as e:
                raise PaymentNotConfirmed(f"Melt at {client.mint_url} failed: {e}", {"swap_id": swap.id}) from e
            pool = selection.remaining + list(melt.change)
            track(pool)
            if not melt.paid:
                raise PaymentNotConfirmed(f"Mint {client.mint_url} did not pay swap invoice", {"swap_id": swap.id})

            await _deliver(swap, signer, destination)

            result = DistributionResult(
                destination=destination,
                sats_redeemed=share,
                amount_sent=swap.execution.amount_out or swap.get_output(),
                tx_id=swap.execution.tx_id,
                status=swap.status,
            )
            results.append(result)
            logger.info(f"Delivered {result.amount_sent} {source_asset} to {destination}")
            emit.emit(
                EventType.CASHU_REDEEMED,
                f"Sent {result.amount_sent} {source_asset} to destination {index + 1}/{count}",
                progress=80 + 15 * (index + 1) // count,
                details=result.to_dict(),
            )
    except MixError as e:
        e.unspent_proofs = held
        raise

    return DistributionOutcome(results=results, remaining=pool)
