"""Core data model for mix runs."""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lnmixer.errors import InvariantViolation


class PrivacyLevel(str, Enum):
    """Mix privacy presets."""

    STANDARD = "standard"
    ENHANCED = "enhanced"
    MAXIMUM = "maximum"


@dataclass(frozen=True)
class PrivacyPreset:
    """Display and timing information for a privacy level."""

    name: str
    description: str
    min_participants: int
    estimated_time: int  # minutes
    fee_bps: int  # basis points, 20 = 0.2%


PRIVACY_PRESETS: dict[PrivacyLevel, PrivacyPreset] = {
    PrivacyLevel.STANDARD: PrivacyPreset("Standard", "10+ participants", 10, 5, 10),
    PrivacyLevel.ENHANCED: PrivacyPreset("Enhanced", "50+ participants", 50, 15, 20),
    PrivacyLevel.MAXIMUM: PrivacyPreset("Maximum", "100+ participants", 100, 30, 30),
}


class MixRequest(BaseModel):
    """A single mix run requested by the caller. Immutable for the run."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(..., gt=0, description="Amount of source asset to mix")
    destinations: list[str] = Field(..., min_length=1, description="Ordered destination addresses")
    privacy_level: PrivacyLevel = Field(default=PrivacyLevel.STANDARD)
    enable_time_delays: bool = False
    enable_split_outputs: bool = False
    enable_randomized_mints: bool = False
    enable_amount_obfuscation: bool = False
    enable_decoy_tx: bool = False
    split_count: int = Field(default=1, ge=1, description="Number of outputs when splitting")

    @field_validator("destinations")
    @classmethod
    def _check_destinations(cls, value: list[str]) -> list[str]:
        cleaned = [d.strip() for d in value]
        if any(not d for d in cleaned):
            raise ValueError("destination addresses must be non-empty")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("destination addresses must be distinct")
        return cleaned

    @property
    def effective_split_count(self) -> int:
        """Split count, or 1 when output splitting is disabled."""
        return self.split_count if self.enable_split_outputs else 1

    @property
    def preset(self) -> PrivacyPreset:
        return PRIVACY_PRESETS[self.privacy_level]

    def enabled_features(self) -> list[str]:
        """Names of the privacy features switched on for this run."""
        flags = [
            ("multi-mint", self.enable_randomized_mints),
            ("split-outputs", self.enable_split_outputs),
            ("time-delays", self.enable_time_delays),
            ("amount-obfuscation", self.enable_amount_obfuscation),
            ("decoy-tx", self.enable_decoy_tx),
        ]
        return [name for name, enabled in flags if enabled]


@dataclass(frozen=True)
class EcashProof:
    """A bearer ecash token worth a fixed amount at one mint."""

    secret: str
    signature: str
    amount: int  # minor units (sats)
    currency: str = "SAT"
    keyset_id: str = ""
    mint_url: str = ""

    def to_wire(self) -> dict:
        """Serialize using the mint protocol field names."""
        return {
            "id": self.keyset_id,
            "amount": self.amount,
            "secret": self.secret,
            "C": self.signature,
        }

    @classmethod
    def from_wire(cls, data: dict, mint_url: str = "", currency: str = "SAT") -> "EcashProof":
        return cls(
            secret=data["secret"],
            signature=data["C"],
            amount=int(data["amount"]),
            currency=currency,
            keyset_id=data.get("id", ""),
            mint_url=mint_url,
        )


def total_amount(proofs: Iterable[EcashProof]) -> int:
    """Sum of proof amounts."""
    return sum(p.amount for p in proofs)


class SwapStatus(str, Enum):
    """Atomic swap lifecycle states."""

    CREATED = "CREATED"
    COMMITED = "COMMITED"
    SOFT_CLAIMED = "SOFT_CLAIMED"
    CLAIMED = "CLAIMED"
    REFUNDABLE = "REFUNDABLE"
    REFUNDED = "REFUNDED"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_SWAP_STATES

    @classmethod
    def from_provider_state(cls, state: Any) -> "SwapStatus":
        """Map a provider's numeric or string state onto a SwapStatus."""
        if isinstance(state, int):
            numeric = {
                0: cls.CREATED,
                1: cls.COMMITED,
                2: cls.SOFT_CLAIMED,
                3: cls.CLAIMED,
                4: cls.REFUNDABLE,
                -1: cls.EXPIRED,  # quote soft-expired
                -2: cls.EXPIRED,
                -3: cls.REFUNDED,
            }
            return numeric.get(state, cls.FAILED)
        if isinstance(state, str):
            try:
                return cls(state.upper())
            except ValueError:
                return cls.FAILED
        return cls.CREATED


TERMINAL_SWAP_STATES = frozenset(
    {SwapStatus.CLAIMED, SwapStatus.REFUNDED, SwapStatus.FAILED, SwapStatus.EXPIRED}
)

ALLOWED_SWAP_TRANSITIONS: dict[SwapStatus, frozenset] = {
    SwapStatus.CREATED: frozenset({SwapStatus.COMMITED, SwapStatus.EXPIRED, SwapStatus.FAILED}),
    SwapStatus.COMMITED: frozenset(
        {SwapStatus.SOFT_CLAIMED, SwapStatus.CLAIMED, SwapStatus.REFUNDABLE, SwapStatus.FAILED}
    ),
    SwapStatus.SOFT_CLAIMED: frozenset(
        {SwapStatus.CLAIMED, SwapStatus.REFUNDABLE, SwapStatus.FAILED}
    ),
    SwapStatus.REFUNDABLE: frozenset({SwapStatus.REFUNDED, SwapStatus.FAILED}),
}


@dataclass(frozen=True)
class SwapQuote:
    """An immutable quote from the swap provider."""

    id: str
    from_asset: str
    to_asset: str
    amount_in: Decimal
    amount_out: Decimal
    fee: Decimal
    expiry: float  # unix timestamp
    price_info: dict = field(default_factory=dict)

    @property
    def is_expired(self) -> bool:
        return time.time() > self.expiry

    @property
    def seconds_until_expiry(self) -> float:
        """Seconds until quote expires (negative if expired)."""
        return self.expiry - time.time()


@dataclass
class SwapExecution:
    """Tracks a committed swap until it reaches a terminal state."""

    id: str
    status: SwapStatus = SwapStatus.CREATED
    tx_id: Optional[str] = None
    amount_out: Optional[Decimal] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transition(self, new_status: SwapStatus, tx_id: Optional[str] = None) -> None:
        """Move to new_status, refusing to leave a terminal state."""
        allowed = ALLOWED_SWAP_TRANSITIONS.get(self.status, frozenset())
        if new_status not in allowed:
            raise InvariantViolation(
                f"Swap {self.id}: illegal transition {self.status.value} -> {new_status.value}",
                {"swap_id": self.id, "from": self.status.value, "to": new_status.value},
            )
        self.status = new_status
        if tx_id:
            self.tx_id = tx_id


@dataclass(frozen=True)
class DistributionResult:
    """Outcome of delivering one destination's share."""

    destination: str
    sats_redeemed: int
    amount_sent: Decimal
    tx_id: Optional[str]
    status: SwapStatus

    def to_dict(self) -> dict:
        return {
            "destination": self.destination,
            "sats_redeemed": self.sats_redeemed,
            "amount_sent": str(self.amount_sent),
            "tx_id": self.tx_id,
            "status": self.status.value,
        }


class EventType(str, Enum):
    """Orchestrator event tags."""

    DEPOSIT_INITIATED = "deposit:initiated"
    DEPOSIT_CONFIRMED = "deposit:confirmed"
    LIGHTNING_INVOICE_CREATED = "lightning:invoice_created"
    LIGHTNING_PAID = "lightning:paid"
    CASHU_MINTED = "cashu:minted"
    CASHU_ROUTED = "cashu:routed"
    CASHU_REDEEMED = "cashu:redeemed"
    MIX_PROGRESS = "mix:progress"
    MIX_COMPLETE = "mix:complete"
    MIX_ERROR = "mix:error"

    @property
    def is_terminal(self) -> bool:
        return self in (EventType.MIX_COMPLETE, EventType.MIX_ERROR)


@dataclass(frozen=True)
class OrchestratorEvent:
    """A progress notification for an external observer."""

    type: EventType
    message: Optional[str] = None
    progress: Optional[int] = None
    anonymity_set_size: Optional[int] = None
    privacy_score: Optional[int] = None
    estimated_time: Optional[int] = None
    details: dict = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"type": self.type.value}
        for key in ("message", "progress", "anonymity_set_size", "privacy_score", "estimated_time"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.details:
            data["details"] = self.details
        return data


@dataclass
class MixReport:
    """Summary of a completed mix run."""

    request: MixRequest
    commitment_id: str
    sats_minted: int  # value of the proofs actually claimed
    estimate_source: str
    distributions: list[DistributionResult]
    anonymity_set_size: int
    privacy_score: int
    leftover_token: Optional[str] = None  # rounding dust and change left after distribution

    @property
    def total_sent(self) -> Decimal:
        return sum((d.amount_sent for d in self.distributions), Decimal("0"))
