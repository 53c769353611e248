"""Base interface for ecash mint clients.

Proofs are bearer tokens. Every operation that consumes proofs returns
new proofs that replace the inputs; no proof is modified in place.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from lnmixer.ecash.token import encode_token
from lnmixer.models import EcashProof, total_amount


class MintQuoteState(str, Enum):
    """State of a mint quote's Lightning invoice."""

    CREATED = "CREATED"
    PAID = "PAID"
    ISSUED = "ISSUED"


@dataclass(frozen=True)
class MintQuote:
    """A mint's request to be paid before proofs are issued."""

    quote: str
    amount: int
    state: MintQuoteState
    request: Optional[str] = None  # Lightning invoice


@dataclass(frozen=True)
class MeltQuote:
    """A mint's offer to pay a Lightning invoice from proofs."""

    quote: str
    amount: int
    fee_reserve: int
    request: Optional[str] = None

    @property
    def total_required(self) -> int:
        return self.amount + self.fee_reserve


@dataclass(frozen=True)
class MeltResult:
    """Outcome of melting proofs."""

    paid: bool
    change: list[EcashProof] = field(default_factory=list)
    preimage: Optional[str] = None


@dataclass(frozen=True)
class SendResult:
    """Proofs split into a kept part and a part sized for sending."""

    keep: list[EcashProof]
    send: list[EcashProof]


class EcashClient(ABC):
    """Abstract client for one ecash mint."""

    @property
    @abstractmethod
    def mint_url(self) -> str:
        """URL identifying the mint."""
        pass

    @abstractmethod
    async def create_mint_quote(self, amount: int) -> MintQuote:
        """Request a Lightning invoice for minting amount sats."""
        pass

    @abstractmethod
    async def check_mint_quote(self, quote: str) -> MintQuote:
        """Fetch the current state of a mint quote."""
        pass

    @abstractmethod
    async def mint_proofs(self, amount: int, quote: str) -> list[EcashProof]:
        """Issue proofs for a paid mint quote."""
        pass

    @abstractmethod
    async def create_melt_quote(self, invoice: str) -> MeltQuote:
        """Quote paying a Lightning invoice from proofs."""
        pass

    @abstractmethod
    async def melt_proofs(self, quote: MeltQuote, proofs: list[EcashProof]) -> MeltResult:
        """Spend proofs to pay the quoted invoice."""
        pass

    @abstractmethod
    async def send(self, amount: int, proofs: list[EcashProof]) -> SendResult:
        """Swap proofs into a part worth exactly amount and the rest."""
        pass

    @abstractmethod
    async def receive(self, token: str) -> list[EcashProof]:
        """Redeem a token's proofs for fresh ones."""
        pass

    def create_token(self, proofs: list[EcashProof]) -> str:
        """Encode proofs from this mint as a transferable token."""
        return encode_token(
            [p if p.mint_url else _with_mint(p, self.mint_url) for p in proofs]
        )

    def get_balance(self, proofs: list[EcashProof]) -> int:
        return total_amount(proofs)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(mint_url={self.mint_url})"


def _with_mint(proof: EcashProof, mint_url: str) -> EcashProof:
    return EcashProof(
        secret=proof.secret,
        signature=proof.signature,
        amount=proof.amount,
        currency=proof.currency,
        keyset_id=proof.keyset_id,
        mint_url=mint_url,
    )


class EcashError(Exception):
    """Raised when a mint rejects an operation."""

    pass
