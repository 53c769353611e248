"""Mix pipeline steps, one module per stage."""

from lnmixer.orchestrator.steps.claim import step_claim_proofs
from lnmixer.orchestrator.steps.deposit import step_deposit, step_withdraw_for_mixing
from lnmixer.orchestrator.steps.distribute import DistributionOutcome, step_swap_back_and_distribute
from lnmixer.orchestrator.steps.estimate import (
    EstimationStrategy,
    FallbackEstimator,
    LiveQuoteStrategy,
    SatsEstimate,
    StaticRateStrategy,
    step_estimate_sats,
)
from lnmixer.orchestrator.steps.mint import step_create_mint_invoice, step_swap_to_lightning
from lnmixer.orchestrator.steps.privacy import apply_privacy

__all__ = [
    "step_claim_proofs",
    "step_deposit",
    "step_withdraw_for_mixing",
    "DistributionOutcome",
    "step_swap_back_and_distribute",
    "EstimationStrategy",
    "FallbackEstimator",
    "LiveQuoteStrategy",
    "SatsEstimate",
    "StaticRateStrategy",
    "step_estimate_sats",
    "step_create_mint_invoice",
    "step_swap_to_lightning",
    "apply_privacy",
]
