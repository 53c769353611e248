"""Abstract interface for the atomic swap provider.

Chain -> Lightning swaps are committed on-chain first; the provider then
pays the Lightning invoice and claims the locked funds. Lightning ->
chain swaps expose an invoice; once it is paid the swap is committed
and claimed to the destination.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from lnmixer.models import SwapExecution, SwapQuote, SwapStatus
from lnmixer.signing import SwapSigner

REFUNDABLE_STATES = frozenset({SwapStatus.COMMITED, SwapStatus.SOFT_CLAIMED, SwapStatus.REFUNDABLE})


class Swap(ABC):
    """A single swap created from a provider quote."""

    def __init__(self, quote: SwapQuote):
        self.quote = quote
        self.execution = SwapExecution(id=quote.id)

    @property
    def id(self) -> str:
        return self.quote.id

    @property
    def status(self) -> SwapStatus:
        return self.execution.status

    @property
    def is_refundable(self) -> bool:
        return self.execution.status in REFUNDABLE_STATES

    @abstractmethod
    async def commit(self, signer: SwapSigner) -> str:
        """Lock funds on-chain. Returns the commit transaction id."""
        pass

    @abstractmethod
    async def claim(self, signer: SwapSigner) -> str:
        """Release locked funds to the counterparty. Returns the claim tx id."""
        pass

    @abstractmethod
    async def refund(self, signer: SwapSigner) -> str:
        """Return locked funds to the signer. Returns the refund tx id."""
        pass

    @abstractmethod
    async def wait_for_payment(self) -> bool:
        """Wait for the Lightning leg to settle. False if it did not."""
        pass

    @abstractmethod
    def get_invoice(self) -> str:
        """The Lightning invoice this swap pays or expects to be paid."""
        pass

    def get_output(self) -> Decimal:
        return self.quote.amount_out

    def get_fee(self) -> Decimal:
        return self.quote.fee

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(id={self.id}, {self.quote.from_asset}->{self.quote.to_asset}, "
            f"status={self.status.value})"
        )


class SwapGateway(ABC):
    """Abstract swap provider."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        pass

    @abstractmethod
    async def get_quote(
        self,
        from_asset: str,
        to_asset: str,
        amount: Decimal,
        exact_in: bool = True,
        destination: Optional[str] = None,
    ) -> Swap:
        """
        Quote a swap and return a handle for executing it.

        Args:
            from_asset: Source asset symbol (e.g., "STRK", "BTC_LN")
            to_asset: Destination asset symbol
            amount: Input amount when exact_in, otherwise the required output
            exact_in: Whether amount is the input side
            destination: Invoice to pay (to Lightning) or address to deliver to

        Returns:
            Swap handle in CREATED state
        """
        pass


class SwapError(Exception):
    """Raised when the swap provider rejects an operation."""

    pass
