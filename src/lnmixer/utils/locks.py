"""Concurrency control for swap signers.

A signer's account nonce is not safe to share between concurrent mix
runs, so runs using the same signer address are serialized here.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

# Global lock registry: signer address -> asyncio.Lock
_signer_locks: dict[str, asyncio.Lock] = {}


def get_signer_lock(address: str) -> asyncio.Lock:
    """Get or create the lock for a signer address.

    Args:
        address: Signer account address (case-insensitive)

    Returns:
        asyncio.Lock for the signer
    """
    key = address.lower()
    lock = _signer_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _signer_locks[key] = lock
    return lock


class LockTimeoutError(Exception):
    """Raised when a signer lock cannot be acquired within the timeout period."""

    pass


@asynccontextmanager
async def signer_lock(
    address: str,
    timeout: Optional[float] = None,
    operation: str = "mix",
):
    """Hold exclusive use of a signer for the duration of the block.

    Args:
        address: Signer account address
        timeout: Maximum time to wait for the lock (None = wait forever)
        operation: Description for logging

    Example:
        async with signer_lock(signer.address, operation="mix"):
            await run_pipeline()
    """
    lock = get_signer_lock(address)

    try:
        if timeout:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        else:
            await lock.acquire()
    except asyncio.TimeoutError:
        logger.warning(f"Signer lock timeout for {address} after {timeout}s: {operation}")
        raise LockTimeoutError(
            f"Could not acquire signer lock for {address} within {timeout}s"
        )

    logger.debug(f"Signer lock acquired for {address}: {operation}")
    try:
        yield
    finally:
        lock.release()
        logger.debug(f"Signer lock released for {address}: {operation}")


def clear_signer_locks() -> None:
    """Clear all signer locks (useful for testing)."""
    _signer_locks.clear()
