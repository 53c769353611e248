"""lnmixer - chain to Lightning to ecash mixing pipeline."""

from lnmixer.errors import (
    ConfigurationError,
    CustodyError,
    InsufficientProofs,
    InvariantViolation,
    MixError,
    PaymentNotConfirmed,
    SwapFailed,
)
from lnmixer.factory import create_dry_run_sandbox, create_orchestrator
from lnmixer.models import (
    DistributionResult,
    EcashProof,
    EventType,
    MixReport,
    MixRequest,
    OrchestratorEvent,
    PrivacyLevel,
)
from lnmixer.orchestrator import EventChannel, MixOrchestrator

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "CustodyError",
    "InsufficientProofs",
    "InvariantViolation",
    "MixError",
    "PaymentNotConfirmed",
    "SwapFailed",
    "create_dry_run_sandbox",
    "create_orchestrator",
    "DistributionResult",
    "EcashProof",
    "EventType",
    "MixReport",
    "MixRequest",
    "OrchestratorEvent",
    "PrivacyLevel",
    "EventChannel",
    "MixOrchestrator",
]
