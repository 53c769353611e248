"""Ecash mint clients, routing and token encoding."""

from lnmixer.ecash.base import (
    EcashClient,
    EcashError,
    MeltQuote,
    MeltResult,
    MintQuote,
    MintQuoteState,
    SendResult,
)
from lnmixer.ecash.dry_run import DryRunMint, split_amount
from lnmixer.ecash.router import MintDistribution, MultiMintRouter, ProofTracker
from lnmixer.ecash.token import decode_token, encode_token

__all__ = [
    "EcashClient",
    "EcashError",
    "MeltQuote",
    "MeltResult",
    "MintQuote",
    "MintQuoteState",
    "SendResult",
    "DryRunMint",
    "split_amount",
    "MintDistribution",
    "MultiMintRouter",
    "ProofTracker",
    "decode_token",
    "encode_token",
]
