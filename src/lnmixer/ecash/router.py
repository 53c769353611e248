"""Multi-mint routing for ecash custody diversification."""

import logging
import random
from dataclasses import dataclass
from typing import Callable, Optional

from lnmixer.ecash.base import EcashClient, EcashError, MintQuoteState
from lnmixer.errors import InsufficientProofs
from lnmixer.models import EcashProof, total_amount

logger = logging.getLogger(__name__)

ProofTracker = Callable[[list[EcashProof]], None]


@dataclass(frozen=True)
class MintDistribution:
    """Proofs held at one mint after distribution."""

    mint_url: str
    proofs: list[EcashProof]

    @property
    def amount(self) -> int:
        return total_amount(self.proofs)


class MultiMintRouter:
    """Fronts several mint clients and spreads value across them.

    Value moves between mints over Lightning: the target mint quotes an
    invoice, the source mint melts proofs to pay it, and the target mint
    issues fresh proofs once it sees the payment.
    """

    def __init__(self, clients: list[EcashClient], rng: Optional[random.Random] = None):
        if not clients:
            raise ValueError("MultiMintRouter needs at least one mint client")
        self._clients: dict[str, EcashClient] = {c.mint_url: c for c in clients}
        self._rng = rng or random.Random()

    @property
    def mint_urls(self) -> list[str]:
        return list(self._clients.keys())

    def __contains__(self, mint_url: str) -> bool:
        return mint_url in self._clients

    def __len__(self) -> int:
        return len(self._clients)

    def select_mint(self) -> EcashClient:
        """Pick a mint at random."""
        url = self._rng.choice(self.mint_urls)
        logger.debug(f"Selected mint {url}")
        return self._clients[url]

    def get_all_mints(self) -> list[EcashClient]:
        return list(self._clients.values())

    def client_for(self, mint_url: str) -> EcashClient:
        """Get the client for a mint URL."""
        client = self._clients.get(mint_url)
        if client is None:
            raise EcashError(f"No client configured for mint {mint_url}")
        return client


    async def transfer(
        self,
        source_url: str,
        target_url: str,
        amount: int,
        proofs: list[EcashProof],
        on_update: Optional[ProofTracker] = None,
    ) -> tuple[list[EcashProof], list[EcashProof]]:
        """Move amount sats from source_url to target_url over Lightning.

        proofs must all belong to the source mint. The source pays the
        target's invoice plus its own fee reserve from proofs.

        Args:
            on_update: Called with every proof still held out of proofs plus
                anything already minted at the target, after each mint call

        Returns:
            (proofs left at the source, proofs minted at the target)

        Raises:
            InsufficientProofs: If proofs cannot cover amount plus fee reserve
            EcashError: If either mint rejects an operation
        """
        source = self.client_for(source_url)
        target = self.client_for(target_url)

        mint_quote = await target.create_mint_quote(amount)
        melt_quote = await source.create_melt_quote(mint_quote.request)
        available = total_amount(proofs)
        if available < melt_quote.total_required:
            raise InsufficientProofs(melt_quote.total_required, available)

        sent = await source.send(melt_quote.total_required, proofs)
        if on_update is not None:
            on_update(sent.keep + sent.send)

        result = await source.melt_proofs(melt_quote, sent.send)
        if not result.paid:
            raise EcashError(f"Melt at {source_url} did not pay {target_url}")
        pool = sent.keep + result.change
        if on_update is not None:
            on_update(pool)

        status = await target.check_mint_quote(mint_quote.quote)
        if status.state != MintQuoteState.PAID:
            raise EcashError(f"Mint quote at {target_url} is {status.state.value} after payment")
        minted = await target.mint_proofs(amount, mint_quote.quote)
        if on_update is not None:
            on_update(pool + minted)

        logger.info(f"Moved {amount} sats from {source_url} to {target_url}")
        return pool, minted

    async def distribute_send(
        self,
        amount: int,
        proofs: list[EcashProof],
        number_of_mints: int = 2,
        on_update: Optional[ProofTracker] = None,
    ) -> list[MintDistribution]:
        """Spread amount sats of one mint's proofs over number_of_mints mints.

        The source mint keeps the first share and pays fee reserves, the
        other mints each receive an equal share. Returns one entry per
        mint, the source first.

        Raises:
            EcashError: If proofs come from more than one mint
            InsufficientProofs: If the source cannot cover a transfer
        """
        urls = {p.mint_url for p in proofs}
        if len(urls) != 1:
            raise EcashError(f"distribute_send needs proofs from one mint, got {len(urls)}")
        source_url = urls.pop()

        targets = [u for u in self.mint_urls if u != source_url][: max(0, number_of_mints - 1)]
        if not targets:
            return [MintDistribution(source_url, proofs)]

        share = amount // (len(targets) + 1)
        pool = proofs
        moved: list[MintDistribution] = []

        for target_url in targets:
            already = [p for d in moved for p in d.proofs]

            def report(live: list[EcashProof], already=already) -> None:
                if on_update is not None:
                    on_update(live + already)

            pool, minted = await self.transfer(source_url, target_url, share, pool, on_update=report)
            moved.append(MintDistribution(target_url, minted))

        return [MintDistribution(source_url, pool)] + moved
