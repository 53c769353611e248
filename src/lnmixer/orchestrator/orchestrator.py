"""Mix orchestrator.

Runs the pipeline steps strictly in sequence for one MixRequest:

    deposit -> withdraw -> estimate -> mint invoice -> chain->LN swap
    -> claim proofs -> privacy -> LN->chain swap and distribute

Each step retries on its own terms; the orchestrator never does. The first
failure becomes a single mix:error event and is re-raised. Abandoning a run
(cancelling its task) does not unwind swaps or deposits already committed.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from decimal import Decimal
from typing import AsyncIterator, Optional

from lnmixer.config import Settings, get_settings
from lnmixer.custody.base import CustodyClient
from lnmixer.ecash.base import EcashClient
from lnmixer.ecash.router import MultiMintRouter
from lnmixer.errors import ConfigurationError
from lnmixer.lightning.base import LightningClient
from lnmixer.models import EcashProof, EventType, MixReport, MixRequest, OrchestratorEvent, total_amount
from lnmixer.orchestrator.events import EventChannel, EventSink, ProgressEmitter
from lnmixer.orchestrator.metrics import anonymity_set_size, privacy_score
from lnmixer.orchestrator.steps import (
    EstimationStrategy,
    FallbackEstimator,
    LiveQuoteStrategy,
    StaticRateStrategy,
    apply_privacy,
    step_claim_proofs,
    step_create_mint_invoice,
    step_deposit,
    step_estimate_sats,
    step_swap_back_and_distribute,
    step_swap_to_lightning,
    step_withdraw_for_mixing,
)
from lnmixer.orchestrator.timing import PrivacyTimings, Sleeper
from lnmixer.signing import SwapSigner
from lnmixer.swaps.base import SwapGateway
from lnmixer.utils.locks import signer_lock

logger = logging.getLogger(__name__)


@dataclass
class _RunState:
    """Proofs held by the current run, for recovery on failure."""

    ecash: Optional[EcashClient] = None
    proofs: list[EcashProof] = field(default_factory=list)

    def track(self, proofs: list[EcashProof]) -> None:
        self.proofs = proofs


def default_estimator(gateway: SwapGateway, settings: Settings) -> EstimationStrategy:
    """Live provider quote with the configured static rate as fallback."""
    live = None
    if not settings.disable_live_price_fetch:
        live = LiveQuoteStrategy(gateway, settings.source_asset, settings.bridge_asset)
    return FallbackEstimator(live, StaticRateStrategy(settings.fallback_sats_rate))


class MixOrchestrator:
    """Sequences one mix run against injected collaborators."""

    def __init__(
        self,
        custody: CustodyClient,
        lightning: LightningClient,
        ecash: EcashClient,
        gateway: SwapGateway,
        signer: SwapSigner,
        router: Optional[MultiMintRouter] = None,
        estimator: Optional[EstimationStrategy] = None,
        settings: Optional[Settings] = None,
        sleep: Sleeper = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or get_settings()
        self.custody = custody
        self.lightning = lightning
        self.ecash = ecash
        self.gateway = gateway
        self.signer = signer
        self.router = router
        self.estimator = estimator or default_estimator(gateway, self.settings)
        self.timings = PrivacyTimings.from_settings(self.settings)
        self.sleep = sleep
        self.rng = rng

    def _preflight(self, request: MixRequest) -> None:
        minimum = Decimal(str(self.settings.min_mix_amount))
        maximum = Decimal(str(self.settings.max_mix_amount))
        if request.amount < minimum or request.amount > maximum:
            raise ConfigurationError(
                f"Amount {request.amount} outside allowed range [{minimum}, {maximum}]",
                {"amount": str(request.amount)},
            )
        if request.enable_split_outputs and request.split_count > self.settings.max_split_parts:
            raise ConfigurationError(
                f"split_count {request.split_count} exceeds maximum {self.settings.max_split_parts}"
            )
        if request.amount * self.settings.fallback_sats_rate < len(request.destinations):
            raise ConfigurationError(
                f"{request.amount} {self.settings.source_asset} is too small to split across "
                f"{len(request.destinations)} destinations"
            )
        if request.enable_randomized_mints and (self.router is None or len(self.router) < 2):
            logger.warning("Randomized mints enabled without a multi-mint router; routing will be skipped")

    def _mint_client(self) -> EcashClient:
        if self.router is not None and len(self.router) > 0:
            return self.router.select_mint()
        return self.ecash

    async def run_mix(self, request: MixRequest, emit: EventSink) -> MixReport:
        """Run one mix, reporting progress through emit.

        Raises the first step failure after emitting exactly one mix:error.
        When ecash proofs were in hand at that point, the raised exception
        carries them as a cashuA recovery_token attribute, whatever its type.
        """
        emitter = ProgressEmitter(emit)
        state = _RunState()
        try:
            async with signer_lock(self.signer.address, operation="mix"):
                return await self._run(request, emitter, state)
        except Exception as e:
            self._report_failure(e, emitter, state)
            raise

    def _report_failure(self, error: Exception, emitter: ProgressEmitter, state: _RunState) -> None:
        unspent = getattr(error, "unspent_proofs", None)
        if unspent is None:
            unspent = state.proofs
        if unspent and state.ecash is not None:
            error.recovery_token = state.ecash.create_token(unspent)
            logger.warning(f"Mix failed holding {sum(p.amount for p in unspent)} sats of unspent proofs")
        has_token = getattr(error, "recovery_token", None) is not None

        logger.error(f"Mix failed: {type(error).__name__}: {error}")
        emitter.emit(
            EventType.MIX_ERROR,
            str(error),
            progress=0,
            details={"error_type": type(error).__name__, "has_recovery_token": has_token},
        )

    async def _run(self, request: MixRequest, emit: ProgressEmitter, state: _RunState) -> MixReport:
        self._preflight(request)
        settings = self.settings
        logger.info(
            f"Starting mix: {request.amount} {settings.source_asset} -> {len(request.destinations)} destination(s), "
            f"{request.privacy_level.value}, features={request.enabled_features()}"
        )

        deposit = await step_deposit(self.custody, request.amount, emit)
        withdrawal = await step_withdraw_for_mixing(self.custody, deposit, emit)
        estimate = await step_estimate_sats(self.estimator, withdrawal.amount, emit)

        ecash = self._mint_client()
        state.ecash = ecash
        mint_quote = await step_create_mint_invoice(ecash, estimate.sats, emit)
        await step_swap_to_lightning(
            self.gateway,
            self.signer,
            self.lightning,
            mint_quote,
            withdrawal.amount,
            settings.source_asset,
            settings.bridge_asset,
            emit,
        )

        claimed = await step_claim_proofs(
            ecash, mint_quote, emit, sleep=self.sleep, retry_delay=settings.claim_retry_delay
        )
        state.proofs = claimed
        state.proofs = await apply_privacy(
            request,
            claimed,
            ecash,
            router=self.router,
            emit=emit,
            timings=self.timings,
            sleep=self.sleep,
            rng=self.rng,
            on_update=state.track,
        )

        outcome = await step_swap_back_and_distribute(
            state.proofs,
            request.destinations,
            self.gateway,
            self.lightning,
            ecash,
            self.signer,
            emit,
            router=self.router,
            source_asset=settings.source_asset,
            bridge_asset=settings.bridge_asset,
            on_update=state.track,
        )
        state.proofs = outcome.remaining
        emit.emit(
            EventType.MIX_PROGRESS,
            f"Distributed to {len(outcome.results)} destination(s)",
            progress=95,
        )

        leftover_token = ecash.create_token(outcome.remaining) if outcome.remaining else None
        set_size = anonymity_set_size(request)
        score = privacy_score(request, set_size)
        emit.emit(
            EventType.MIX_COMPLETE,
            "Mix complete",
            progress=100,
            anonymity_set_size=set_size,
            privacy_score=score,
            estimated_time=request.preset.estimated_time,
            details={
                "distributions": [r.to_dict() for r in outcome.results],
                "estimate_source": estimate.source,
            },
        )
        logger.info(f"Mix complete: anonymity set {set_size}, privacy score {score}")

        return MixReport(
            request=request,
            commitment_id=deposit.commitment_id,
            sats_minted=total_amount(claimed),
            estimate_source=estimate.source,
            distributions=outcome.results,
            anonymity_set_size=set_size,
            privacy_score=score,
            leftover_token=leftover_token,
        )

    async def stream_mix(self, request: MixRequest) -> AsyncIterator[OrchestratorEvent]:
        """Run a mix in the background and yield its events as they arrive.

        The run's failure, if any, is re-raised after the error event has
        been yielded. Closing the iterator early cancels the run.
        """
        channel = EventChannel(self.settings.event_buffer_size)

        async def _runner() -> MixReport:
            try:
                return await self.run_mix(request, channel.emit)
            finally:
                channel.close()

        task = asyncio.create_task(_runner())
        try:
            async for event in channel:
                yield event
            await task
        finally:
            if not task.done():
                task.cancel()
