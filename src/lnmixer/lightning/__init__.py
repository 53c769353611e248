"""Lightning node clients."""

from lnmixer.lightning.base import (
    Invoice,
    InvoiceInfo,
    LightningClient,
    LightningError,
    Payment,
    PaymentStatus,
)
from lnmixer.lightning.dry_run import DryRunLightningNetwork, DryRunLightningNode
from lnmixer.lightning.lnd import LndRestClient

__all__ = [
    "Invoice",
    "InvoiceInfo",
    "LightningClient",
    "LightningError",
    "Payment",
    "PaymentStatus",
    "DryRunLightningNetwork",
    "DryRunLightningNode",
    "LndRestClient",
]
