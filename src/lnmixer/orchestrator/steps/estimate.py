"""Estimate how many sats the withdrawn amount will convert to.

A live provider quote is preferred. When it is unavailable, disabled or
fails for any reason, a static rate is used instead and the estimate is
marked as a fallback.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import Optional

from lnmixer.models import EventType
from lnmixer.orchestrator.events import ProgressEmitter
from lnmixer.swaps.base import SwapGateway

logger = logging.getLogger(__name__)

SOURCE_REALTIME = "realtime"
SOURCE_FALLBACK = "fallback"


@dataclass(frozen=True)
class SatsEstimate:
    sats: int
    rate: Decimal  # sats per unit of source asset
    source: str
    quote_id: Optional[str] = None


class EstimationStrategy(ABC):
    """One way of turning a source amount into a sats estimate."""

    source: str = SOURCE_FALLBACK

    @abstractmethod
    async def estimate(self, amount: Decimal) -> SatsEstimate:
        pass


class LiveQuoteStrategy(EstimationStrategy):
    """Asks the swap provider for an exact-in quote."""

    source = SOURCE_REALTIME

    def __init__(self, gateway: SwapGateway, source_asset: str, bridge_asset: str):
        self.gateway = gateway
        self.source_asset = source_asset
        self.bridge_asset = bridge_asset

    async def estimate(self, amount: Decimal) -> SatsEstimate:
        swap = await self.gateway.get_quote(self.source_asset, self.bridge_asset, amount, exact_in=True)
        sats = int(swap.get_output())
        if sats <= 0:
            raise ValueError(f"Provider quoted {sats} sats for {amount} {self.source_asset}")
        return SatsEstimate(sats=sats, rate=Decimal(sats) / amount, source=self.source, quote_id=swap.id)


class StaticRateStrategy(EstimationStrategy):
    """Fixed sats-per-unit conversion."""

    source = SOURCE_FALLBACK

    def __init__(self, sats_per_unit: int):
        if sats_per_unit <= 0:
            raise ValueError("Static sats rate must be positive")
        self.rate = Decimal(sats_per_unit)

    async def estimate(self, amount: Decimal) -> SatsEstimate:
        sats = int((amount * self.rate).to_integral_value(rounding=ROUND_FLOOR))
        return SatsEstimate(sats=max(1, sats), rate=self.rate, source=self.source)


class FallbackEstimator(EstimationStrategy):
    """Try the primary strategy, fall back on any failure."""

    def __init__(self, primary: Optional[EstimationStrategy], fallback: EstimationStrategy):
        self.primary = primary
        self.fallback = fallback

    async def estimate(self, amount: Decimal) -> SatsEstimate:
        if self.primary is not None:
            try:
                return await self.primary.estimate(amount)
            except Exception as e:
                logger.warning(f"Live sats estimate failed, using static rate: {e}")
        return await self.fallback.estimate(amount)


async def step_estimate_sats(
    estimator: EstimationStrategy, amount: Decimal, emit: ProgressEmitter
) -> SatsEstimate:
    estimate = await estimator.estimate(amount)
    logger.info(f"Estimated {estimate.sats} sats for {amount} ({estimate.source}, rate {estimate.rate})")
    emit.emit(
        EventType.MIX_PROGRESS,
        f"Estimated {estimate.sats} sats ({estimate.source} rate)",
        progress=20,
        details={"sats": estimate.sats, "rate": str(estimate.rate), "source": estimate.source},
    )
    return estimate
