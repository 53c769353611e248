"""Dry-run ecash mint for simulated mixes.

Issues proofs in power-of-two denominations and tracks spent secrets.
Signatures are keyed digests, not blind signatures: the sandbox checks
custody accounting, not cryptography.
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass

from lnmixer.ecash.base import (
    EcashClient,
    EcashError,
    MeltQuote,
    MeltResult,
    MintQuote,
    MintQuoteState,
    SendResult,
)
from lnmixer.ecash.token import decode_token
from lnmixer.lightning.base import LightningError
from lnmixer.lightning.dry_run import DryRunLightningNetwork
from lnmixer.models import EcashProof, total_amount

logger = logging.getLogger(__name__)


def split_amount(amount: int) -> list[int]:
    """Power-of-two denominations summing to amount, ascending."""
    parts = []
    bit = 1
    while amount:
        if amount & 1:
            parts.append(bit)
        amount >>= 1
        bit <<= 1
    return parts


@dataclass
class _MintQuoteRecord:
    amount: int
    invoice: str
    issued: bool = False


class DryRunMint(EcashClient):
    """In-memory mint attached to a DryRunLightningNetwork."""

    def __init__(
        self,
        network: DryRunLightningNetwork,
        mint_url: str = "https://mint.dry-run.local",
        fee_reserve: int = 0,
    ):
        self.network = network
        self._mint_url = mint_url
        self.fee_reserve = fee_reserve
        self.keyset_id = "00" + hashlib.sha256(mint_url.encode()).hexdigest()[:14]
        self._key = secrets.token_bytes(32)
        self._mint_quotes: dict[str, _MintQuoteRecord] = {}
        self._melt_quotes: dict[str, MeltQuote] = {}
        self._outstanding: dict[str, int] = {}  # secret -> amount
        self._spent: set[str] = set()

    @property
    def mint_url(self) -> str:
        return self._mint_url

    @property
    def outstanding_balance(self) -> int:
        """Total value of issued, unspent proofs."""
        return sum(self._outstanding.values())

    @property
    def pending_melt_quotes(self) -> int:
        """Melt quotes created but not yet melted."""
        return len(self._melt_quotes)

    def _sign(self, secret: str, amount: int) -> str:
        return hashlib.sha256(self._key + f"{secret}:{amount}".encode()).hexdigest()

    def _issue(self, amount: int) -> list[EcashProof]:
        proofs = []
        for denomination in split_amount(amount):
            secret = secrets.token_hex(32)
            self._outstanding[secret] = denomination
            proofs.append(
                EcashProof(
                    secret=secret,
                    signature=self._sign(secret, denomination),
                    amount=denomination,
                    keyset_id=self.keyset_id,
                    mint_url=self._mint_url,
                )
            )
        return proofs

    def _verify(self, proofs: list[EcashProof]) -> int:
        """Check proofs are unspent and issued here, returning their total value."""
        seen = set()
        for proof in proofs:
            if proof.secret in self._spent:
                raise EcashError(f"Proof already spent ({proof.secret[:10]}...)")
            if proof.secret in seen or self._outstanding.get(proof.secret) != proof.amount:
                raise EcashError(f"Proof not issued by {self._mint_url} ({proof.secret[:10]}...)")
            if proof.signature != self._sign(proof.secret, proof.amount):
                raise EcashError(f"Invalid proof signature ({proof.secret[:10]}...)")
            seen.add(proof.secret)
        return total_amount(proofs)

    def _burn(self, proofs: list[EcashProof]) -> None:
        for proof in proofs:
            del self._outstanding[proof.secret]
            self._spent.add(proof.secret)

    async def create_mint_quote(self, amount: int) -> MintQuote:
        if amount <= 0:
            raise EcashError(f"Mint amount must be positive, got {amount}")
        invoice = self.network.create_invoice(amount * 1000, memo=f"mint {amount} sats")
        quote_id = secrets.token_hex(16)
        self._mint_quotes[quote_id] = _MintQuoteRecord(amount=amount, invoice=invoice.invoice)
        return MintQuote(
            quote=quote_id, amount=amount, state=MintQuoteState.CREATED, request=invoice.invoice
        )

    async def check_mint_quote(self, quote: str) -> MintQuote:
        record = self._mint_quotes.get(quote)
        if record is None:
            raise EcashError(f"Unknown mint quote {quote}")

        if record.issued:
            state = MintQuoteState.ISSUED
        elif self.network.is_paid(record.invoice):
            state = MintQuoteState.PAID
        else:
            state = MintQuoteState.CREATED
        return MintQuote(quote=quote, amount=record.amount, state=state, request=record.invoice)

    async def mint_proofs(self, amount: int, quote: str) -> list[EcashProof]:
        status = await self.check_mint_quote(quote)
        if status.state != MintQuoteState.PAID:
            raise EcashError(f"Mint quote {quote} is {status.state.value}, not PAID")
        if amount > status.amount:
            raise EcashError(f"Requested {amount} sats exceeds quote amount {status.amount}")

        self._mint_quotes[quote].issued = True
        proofs = self._issue(amount)
        logger.debug(f"[DRY RUN] {self._mint_url} minted {len(proofs)} proofs for {amount} sats")
        return proofs

    async def create_melt_quote(self, invoice: str) -> MeltQuote:
        try:
            info = self.network.decode(invoice)
        except LightningError as e:
            raise EcashError(f"Cannot quote invoice: {e}") from e

        quote = MeltQuote(
            quote=secrets.token_hex(16),
            amount=info.amount_sats,
            fee_reserve=self.fee_reserve,
            request=invoice,
        )
        self._melt_quotes[quote.quote] = quote
        return quote

    async def melt_proofs(self, quote: MeltQuote, proofs: list[EcashProof]) -> MeltResult:
        stored = self._melt_quotes.pop(quote.quote, None)
        if stored is None:
            raise EcashError(f"Unknown or used melt quote {quote.quote}")

        available = self._verify(proofs)
        if available < stored.total_required:
            raise EcashError(
                f"Melt needs {stored.total_required} sats, proofs cover {available}"
            )

        try:
            preimage = self.network.pay(stored.request)
        except LightningError as e:
            raise EcashError(f"Lightning payment failed: {e}") from e

        self._burn(proofs)
        # The simulated route costs nothing, so the whole reserve comes back
        change = self._issue(available - stored.amount)
        logger.debug(
            f"[DRY RUN] {self._mint_url} melted {available} sats for {stored.amount} sat invoice, "
            f"change {total_amount(change)}"
        )
        return MeltResult(paid=True, change=change, preimage=preimage)

    async def send(self, amount: int, proofs: list[EcashProof]) -> SendResult:
        available = self._verify(proofs)
        if amount <= 0 or amount > available:
            raise EcashError(f"Cannot send {amount} sats from {available} sats of proofs")

        self._burn(proofs)
        return SendResult(keep=self._issue(available - amount), send=self._issue(amount))

    async def receive(self, token: str) -> list[EcashProof]:
        try:
            proofs = decode_token(token)
        except ValueError as e:
            raise EcashError(str(e)) from e

        foreign = [p for p in proofs if p.mint_url and p.mint_url != self._mint_url]
        if foreign:
            raise EcashError(f"Token contains proofs from another mint ({foreign[0].mint_url})")
        total = self._verify(proofs)
        self._burn(proofs)
        return self._issue(total)

    def issue_unbacked(self, amount: int) -> list[EcashProof]:
        """Issue proofs without a paid quote (sandbox seeding)."""
        if amount <= 0:
            raise EcashError(f"Issue amount must be positive, got {amount}")
        return self._issue(amount)
