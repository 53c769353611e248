"""Error kinds raised by mix pipeline steps.

Every step either returns valid output or raises one of these. The
orchestrator never retries; it reports the first failure and re-raises.
"""

from typing import Optional


class MixError(Exception):
    """Base class for all mix pipeline failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        # Set by the orchestrator when unspent ecash proofs remain in hand
        self.recovery_token: Optional[str] = None
        # Proofs still held when the failing step gave up
        self.unspent_proofs: Optional[list] = None


class ConfigurationError(MixError):
    """Caller or environment misconfiguration, raised before funds move."""

    pass


class CustodyError(MixError):
    """A chain custody call failed."""

    pass


class PaymentNotConfirmed(MixError):
    """Lightning settlement was not observed after the bounded retry."""

    pass


class InsufficientProofs(MixError):
    """The proof pool cannot cover a required redemption."""

    def __init__(self, required: int, available: int, message: Optional[str] = None):
        super().__init__(
            message or f"Insufficient proofs: need {required} sats, have {available} sats",
            {"required": required, "available": available},
        )
        self.required = required
        self.available = available


class SwapFailed(MixError):
    """The swap provider rejected or timed out a swap."""

    def __init__(
        self,
        message: str,
        swap_id: Optional[str] = None,
        refunded: bool = False,
    ):
        super().__init__(message, {"swap_id": swap_id, "refunded": refunded})
        self.swap_id = swap_id
        self.refunded = refunded


class InvariantViolation(MixError):
    """An internal consistency check failed."""

    pass
