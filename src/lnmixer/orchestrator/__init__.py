"""Mix orchestration: pipeline steps, privacy transforms and event delivery."""

from lnmixer.orchestrator.events import EventChannel, EventSink, ProgressEmitter
from lnmixer.orchestrator.metrics import anonymity_set_size, privacy_score
from lnmixer.orchestrator.orchestrator import MixOrchestrator, default_estimator
from lnmixer.orchestrator.selection import ProofSelection, select_proofs
from lnmixer.orchestrator.timing import PrivacyTimings, jittered

__all__ = [
    "EventChannel",
    "EventSink",
    "ProgressEmitter",
    "anonymity_set_size",
    "privacy_score",
    "MixOrchestrator",
    "default_estimator",
    "ProofSelection",
    "select_proofs",
    "PrivacyTimings",
    "jittered",
]
