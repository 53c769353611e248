"""Helpers shared by pipeline steps."""

import logging
from collections import OrderedDict
from typing import Callable, Optional

from lnmixer.ecash.base import EcashClient
from lnmixer.ecash.router import MultiMintRouter
from lnmixer.models import EcashProof
from lnmixer.signing import SwapSigner
from lnmixer.swaps.base import Swap

logger = logging.getLogger(__name__)

ClientResolver = Callable[[str], EcashClient]


def client_resolver(ecash: EcashClient, router: Optional[MultiMintRouter] = None) -> ClientResolver:
    """Map a proof's mint URL to the client that can spend it."""

    def resolve(mint_url: str) -> EcashClient:
        if router is not None and mint_url in router:
            return router.client_for(mint_url)
        return ecash

    return resolve


def group_by_mint(proofs: list[EcashProof]) -> "OrderedDict[str, list[EcashProof]]":
    """Group proofs by issuing mint, keeping first-seen mint order."""
    groups: OrderedDict[str, list[EcashProof]] = OrderedDict()
    for proof in proofs:
        groups.setdefault(proof.mint_url, []).append(proof)
    return groups


async def refund_once(swap: Swap, signer: SwapSigner) -> bool:
    """Attempt a single refund. Returns whether the refund went through."""
    if not swap.is_refundable:
        logger.warning(f"Swap {swap.id} is {swap.status.value}, nothing to refund")
        return False
    try:
        tx_id = await swap.refund(signer)
    except Exception as e:
        logger.error(f"Refund of swap {swap.id} failed: {e}")
        return False
    logger.info(f"Refunded swap {swap.id}: {tx_id}")
    return True
