"""Privacy transforms applied to freshly minted proofs.

Sub-transforms run in a fixed order, each gated by its request flag:
multi-mint distribution, output splitting, time delays, then amount
obfuscation and decoy delays. With every flag off the input list is
returned untouched. Any failure aborts the whole transform.
"""

import asyncio
import logging
import random
from typing import Optional

from lnmixer.ecash.base import EcashClient
from lnmixer.ecash.router import MultiMintRouter, ProofTracker
from lnmixer.models import EcashProof, EventType, MixRequest, total_amount
from lnmixer.orchestrator.events import ProgressEmitter
from lnmixer.orchestrator.steps.common import ClientResolver, client_resolver, group_by_mint
from lnmixer.orchestrator.timing import PrivacyTimings, Sleeper, privacy_delay

logger = logging.getLogger(__name__)

DISTRIBUTION_MINTS = 2


async def split_outputs(
    proofs: list[EcashProof],
    split_count: int,
    resolve: ClientResolver,
    on_update: Optional[ProofTracker] = None,
) -> list[EcashProof]:
    """Split each mint's holdings into split_count disjoint parts.

    on_update is called with every proof held after each swap, so a
    failure part way through still leaves a spendable set behind.
    """
    result: list[EcashProof] = []
    groups = list(group_by_mint(proofs).items())
    for index, (mint_url, group) in enumerate(groups):
        per_part = total_amount(group) // split_count
        if per_part == 0:
            logger.warning(f"Not splitting {total_amount(group)} sats at {mint_url or 'default mint'} into {split_count}")
            result.extend(group)
            continue

        client = resolve(mint_url)
        pending = [p for _, g in groups[index + 1 :] for p in g]
        pool = group
        for _ in range(split_count - 1):
            sent = await client.send(per_part, pool)
            result.extend(sent.send)
            pool = sent.keep
            if on_update is not None:
                on_update(result + pool + pending)
        result.extend(pool)
    return result


async def apply_privacy(
    request: MixRequest,
    proofs: list[EcashProof],
    ecash: EcashClient,
    router: Optional[MultiMintRouter] = None,
    emit: Optional[ProgressEmitter] = None,
    timings: Optional[PrivacyTimings] = None,
    sleep: Sleeper = asyncio.sleep,
    rng: Optional[random.Random] = None,
    on_update: Optional[ProofTracker] = None,
) -> list[EcashProof]:
    timings = timings or PrivacyTimings()
    resolve = client_resolver(ecash, router)
    working = proofs
    applied: list[str] = []

    if request.enable_randomized_mints:
        if router is None or len(router) < 2:
            logger.warning("Randomized mints requested but fewer than two mints are configured")
        else:
            distributions = await router.distribute_send(
                total_amount(working), working, number_of_mints=DISTRIBUTION_MINTS, on_update=on_update
            )
            working = [p for d in distributions for p in d.proofs]
            applied.append("multi-mint")
            if emit is not None:
                emit.emit(
                    EventType.CASHU_ROUTED,
                    f"Distributed proofs across {len(distributions)} mints",
                    progress=60,
                    details={"mints": {d.mint_url: d.amount for d in distributions}},
                )
            await privacy_delay(timings.distribution_ms, timings.variance, sleep, rng, "distribution")

    if request.enable_split_outputs and request.split_count > 1:
        working = await split_outputs(working, request.split_count, resolve, on_update=on_update)
        applied.append("split-outputs")

    if request.enable_time_delays:
        await privacy_delay(timings.time_delay_ms, timings.variance, sleep, rng, "time")
        applied.append("time-delays")

    if request.enable_amount_obfuscation:
        await privacy_delay(timings.obfuscation_ms, timings.variance, sleep, rng, "obfuscation")
        applied.append("amount-obfuscation")

    if request.enable_decoy_tx:
        await privacy_delay(timings.decoy_ms, timings.variance, sleep, rng, "decoy")
        applied.append("decoy-tx")

    if applied:
        logger.info(f"Privacy applied: {', '.join(applied)} ({len(working)} proofs, {total_amount(working)} sats)")
    if emit is not None:
        emit.emit(
            EventType.MIX_PROGRESS,
            "Privacy features applied" if applied else "No privacy features enabled",
            progress=80,
            details={"features": applied},
        )
    return working
