"""Base interface for Lightning node clients."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PaymentStatus(str, Enum):
    """Outcome of an outgoing Lightning payment."""

    IN_FLIGHT = "IN_FLIGHT"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class Invoice:
    """A BOLT11 invoice created by the node."""

    invoice: str
    payment_hash: str
    amount_msat: int
    expiry: Optional[int] = None  # unix timestamp
    memo: Optional[str] = None


@dataclass(frozen=True)
class InvoiceInfo:
    """Decoded invoice fields."""

    amount_msat: int
    payment_hash: str
    expiry: Optional[int] = None  # unix timestamp
    description: Optional[str] = None

    @property
    def amount_sats(self) -> int:
        return self.amount_msat // 1000


@dataclass(frozen=True)
class Payment:
    """Result of paying an invoice."""

    status: PaymentStatus
    payment_hash: str = ""
    preimage: Optional[str] = None
    failure_reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == PaymentStatus.SUCCEEDED


class LightningClient(ABC):
    """Abstract Lightning node client."""

    @abstractmethod
    async def create_invoice(
        self, amount_msat: int, memo: Optional[str] = None, expiry: int = 3600
    ) -> Invoice:
        """Create an invoice for amount_msat."""
        pass

    @abstractmethod
    async def pay_invoice(self, invoice: str) -> Payment:
        """Pay a BOLT11 invoice."""
        pass

    @abstractmethod
    async def decode_invoice(self, invoice: str) -> InvoiceInfo:
        """Decode a BOLT11 invoice."""
        pass


class LightningError(Exception):
    """Raised when the Lightning node rejects a request."""

    pass
