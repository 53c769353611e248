"""Base interface for the chain custody contract.

Custody flow:
1. Deposit the mix amount into the custody contract (commitment)
2. Withdraw it back out to the orchestrator-controlled account
3. Convert to Lightning from that account
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class DepositReceipt:
    """Funds locked in the custody contract."""

    commitment_id: str
    amount: Decimal
    tx_hash: str = ""


@dataclass(frozen=True)
class WithdrawalReceipt:
    """Funds released from the custody contract."""

    tx_hash: str
    amount: Decimal
    controlling_address: str


class CustodyClient(ABC):
    """Abstract chain custody contract client."""

    @property
    @abstractmethod
    def asset(self) -> str:
        """Asset symbol held in custody."""
        pass

    @abstractmethod
    async def deposit(self, amount: Decimal) -> DepositReceipt:
        """Move amount of the source asset into the custody contract."""
        pass

    @abstractmethod
    async def withdraw(self, commitment: DepositReceipt) -> WithdrawalReceipt:
        """Withdraw a committed deposit to the controlling account."""
        pass
