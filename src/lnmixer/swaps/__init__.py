"""Atomic swap provider interfaces."""

from lnmixer.swaps.base import REFUNDABLE_STATES, Swap, SwapError, SwapGateway
from lnmixer.swaps.dry_run import DryRunSwapGateway

__all__ = [
    "REFUNDABLE_STATES",
    "Swap",
    "SwapError",
    "SwapGateway",
    "DryRunSwapGateway",
]
