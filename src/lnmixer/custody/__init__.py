"""Chain custody clients."""

from lnmixer.custody.base import CustodyClient, DepositReceipt, WithdrawalReceipt
from lnmixer.custody.dry_run import DryRunCustodyContract

__all__ = [
    "CustodyClient",
    "DepositReceipt",
    "WithdrawalReceipt",
    "DryRunCustodyContract",
]
