"""Dry-run custody contract for simulated mixes."""

import hashlib
import logging
import secrets
from decimal import Decimal

from lnmixer.custody.base import CustodyClient, DepositReceipt, WithdrawalReceipt

logger = logging.getLogger(__name__)


class DryRunCustodyContract(CustodyClient):
    """In-memory custody contract.

    Commitments are sha256 digests of a random nonce and the amount.
    Each commitment can be withdrawn once.
    """

    def __init__(self, controlling_address: str, asset: str = "STRK"):
        self.controlling_address = controlling_address
        self._asset = asset
        self.commitments: dict[str, Decimal] = {}
        self.withdrawn: set[str] = set()

    @property
    def asset(self) -> str:
        return self._asset

    async def deposit(self, amount: Decimal) -> DepositReceipt:
        if amount <= 0:
            raise ValueError(f"Deposit amount must be positive, got {amount}")

        nonce = secrets.token_hex(16)
        commitment = "0x" + hashlib.sha256(f"{nonce}:{amount}".encode()).hexdigest()
        self.commitments[commitment] = amount
        logger.info(f"[DRY RUN] Deposited {amount} {self._asset}, commitment {commitment[:18]}...")
        return DepositReceipt(
            commitment_id=commitment,
            amount=amount,
            tx_hash="0x" + secrets.token_hex(32),
        )

    async def withdraw(self, commitment: DepositReceipt) -> WithdrawalReceipt:
        amount = self.commitments.get(commitment.commitment_id)
        if amount is None:
            raise ValueError(f"Unknown commitment {commitment.commitment_id}")
        if commitment.commitment_id in self.withdrawn:
            raise ValueError(f"Commitment {commitment.commitment_id} already withdrawn")

        self.withdrawn.add(commitment.commitment_id)
        logger.info(f"[DRY RUN] Withdrew {amount} {self._asset} to {self.controlling_address}")
        return WithdrawalReceipt(
            tx_hash="0x" + secrets.token_hex(32),
            amount=amount,
            controlling_address=self.controlling_address,
        )
