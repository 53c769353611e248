"""Swap signer handles.

The signer that commits, claims and refunds swaps is passed explicitly
into the orchestrator. Nothing here is cached at module level, so two
orchestrators with distinct signers can run side by side.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from lnmixer.config import Settings
from lnmixer.errors import ConfigurationError

logger = logging.getLogger(__name__)

_PRIVATE_KEY_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


class SwapSigner(ABC):
    """Account handle handed to swap commit/claim/refund calls."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Chain address controlled by this signer."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(address={self.address})"


class LocalSwapSigner(SwapSigner):
    """Signer backed by a private key held in memory (hot wallet)."""

    def __init__(self, address: str, private_key: str):
        if not address:
            raise ConfigurationError("Swap signer address is required")
        key = private_key if private_key.startswith("0x") else f"0x{private_key}"
        if not _PRIVATE_KEY_RE.match(key):
            logger.warning("Shared swap account private key format unexpected")
        self._address = address.lower()
        self._private_key = key

    @property
    def address(self) -> str:
        return self._address

    @property
    def private_key(self) -> str:
        return self._private_key


class DryRunSigner(SwapSigner):
    """Signer for the dry-run sandbox. Holds no key material."""

    def __init__(self, address: str = "0xdry_run_signer"):
        self._address = address

    @property
    def address(self) -> str:
        return self._address


def load_signer(settings: Settings, address: Optional[str] = None) -> SwapSigner:
    """Build the swap signer described by settings.

    Raises:
        ConfigurationError: If no private key or address is configured
    """
    if settings.dry_run and not settings.has_signer:
        return DryRunSigner(address or "0xdry_run_signer")

    if not settings.shared_swap_account_private_key:
        raise ConfigurationError(
            "Shared swap account not configured. Set SHARED_SWAP_ACCOUNT_PRIVATE_KEY"
        )
    signer_address = address or settings.shared_swap_account_address
    if not signer_address:
        raise ConfigurationError(
            "Shared swap account address not configured. Set SHARED_SWAP_ACCOUNT_ADDRESS"
        )
    signer = LocalSwapSigner(signer_address, settings.shared_swap_account_private_key)
    logger.info(f"Loaded swap signer {signer.address[:10]}...")
    return signer
