"""Utility modules for lnmixer."""

from lnmixer.utils.locks import LockTimeoutError, get_signer_lock, signer_lock

__all__ = ["LockTimeoutError", "get_signer_lock", "signer_lock"]
