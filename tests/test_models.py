"""Tests for the mix data model."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from lnmixer.errors import InvariantViolation
from lnmixer.models import (
    DistributionResult,
    EcashProof,
    EventType,
    MixRequest,
    OrchestratorEvent,
    PrivacyLevel,
    SwapExecution,
    SwapStatus,
)


class TestMixRequest:
    """Tests for MixRequest validation."""

    def test_defaults(self):
        """Test request defaults."""
        request = MixRequest(amount=Decimal("10"), destinations=["0xA"])
        assert request.privacy_level == PrivacyLevel.STANDARD
        assert request.split_count == 1
        assert request.enabled_features() == []

    def test_amount_must_be_positive(self):
        """Test a zero amount is rejected."""
        with pytest.raises(ValidationError):
            MixRequest(amount=Decimal("0"), destinations=["0xA"])

    def test_destinations_required(self):
        """Test at least one destination is required."""
        with pytest.raises(ValidationError):
            MixRequest(amount=Decimal("1"), destinations=[])

    def test_blank_destination_rejected(self):
        """Test blank destinations are rejected."""
        with pytest.raises(ValidationError):
            MixRequest(amount=Decimal("1"), destinations=["0xA", "  "])

    def test_duplicate_destinations_rejected(self):
        """Test duplicate destinations are rejected after stripping."""
        with pytest.raises(ValidationError):
            MixRequest(amount=Decimal("1"), destinations=["0xA", " 0xA"])

    def test_destinations_are_stripped(self):
        """Test destinations are stripped of whitespace."""
        request = MixRequest(amount=Decimal("1"), destinations=[" 0xA ", "0xB"])
        assert request.destinations == ["0xA", "0xB"]

    def test_request_is_immutable(self):
        """Test a request cannot be modified after creation."""
        request = MixRequest(amount=Decimal("1"), destinations=["0xA"])
        with pytest.raises(ValidationError):
            request.amount = Decimal("2")

    def test_effective_split_count_ignored_when_disabled(self):
        """Test the effective split count is 1 unless splitting is enabled."""
        request = MixRequest(amount=Decimal("1"), destinations=["0xA"], split_count=4)
        assert request.effective_split_count == 1

        enabled = MixRequest(
            amount=Decimal("1"), destinations=["0xA"], split_count=4, enable_split_outputs=True
        )
        assert enabled.effective_split_count == 4

    def test_preset_lookup(self):
        """Test the preset matches the privacy level."""
        request = MixRequest(
            amount=Decimal("1"), destinations=["0xA"], privacy_level=PrivacyLevel.MAXIMUM
        )
        assert request.preset.estimated_time == 30
        assert request.preset.fee_bps == 30


class TestSwapStatus:
    """Tests for provider state mapping."""

    @pytest.mark.parametrize(
        "state,expected",
        [
            (0, SwapStatus.CREATED),
            (1, SwapStatus.COMMITED),
            (2, SwapStatus.SOFT_CLAIMED),
            (3, SwapStatus.CLAIMED),
            (4, SwapStatus.REFUNDABLE),
            (-1, SwapStatus.EXPIRED),
            (-2, SwapStatus.EXPIRED),
            (-3, SwapStatus.REFUNDED),
            (99, SwapStatus.FAILED),
            ("claimed", SwapStatus.CLAIMED),
            ("bogus", SwapStatus.FAILED),
        ],
    )
    def test_from_provider_state(self, state, expected):
        """Test provider state codes map to swap statuses."""
        assert SwapStatus.from_provider_state(state) == expected

    def test_terminal_states(self):
        """Test which swap statuses are terminal."""
        assert SwapStatus.CLAIMED.is_terminal
        assert SwapStatus.REFUNDED.is_terminal
        assert not SwapStatus.COMMITED.is_terminal
        assert not SwapStatus.REFUNDABLE.is_terminal


class TestSwapExecution:
    """Tests for the swap state machine."""

    def test_happy_path(self):
        """Test a swap moving from commit to claim."""
        execution = SwapExecution(id="s1")
        execution.transition(SwapStatus.COMMITED, "0xcommit")
        execution.transition(SwapStatus.CLAIMED, "0xclaim")

        assert execution.is_terminal
        assert execution.tx_id == "0xclaim"

    def test_refund_path(self):
        """Test a swap moving from commit to refund."""
        execution = SwapExecution(id="s1")
        execution.transition(SwapStatus.COMMITED)
        execution.transition(SwapStatus.REFUNDABLE)
        execution.transition(SwapStatus.REFUNDED, "0xrefund")
        assert execution.status == SwapStatus.REFUNDED

    def test_terminal_state_is_final(self):
        """Test no transition leaves a terminal state."""
        execution = SwapExecution(id="s1")
        execution.transition(SwapStatus.COMMITED)
        execution.transition(SwapStatus.CLAIMED)

        with pytest.raises(InvariantViolation):
            execution.transition(SwapStatus.REFUNDABLE)
        with pytest.raises(InvariantViolation):
            execution.transition(SwapStatus.CLAIMED)

    def test_cannot_skip_commit(self):
        """Test a swap cannot be claimed before it is committed."""
        execution = SwapExecution(id="s1")
        with pytest.raises(InvariantViolation):
            execution.transition(SwapStatus.CLAIMED)


class TestProofsAndEvents:
    """Tests for wire formats and event serialization."""

    def test_proof_wire_format(self):
        """Test proofs convert to and from the wire format."""
        proof = EcashProof(secret="s", signature="c", amount=8, keyset_id="00ab")
        wire = proof.to_wire()
        assert wire == {"id": "00ab", "amount": 8, "secret": "s", "C": "c"}

        restored = EcashProof.from_wire(wire, mint_url="https://m")
        assert restored.amount == 8
        assert restored.mint_url == "https://m"

    def test_distribution_result_to_dict(self):
        """Test distribution results serialize amounts as strings."""
        result = DistributionResult("0xA", 625, Decimal("5"), "0xtx", SwapStatus.CLAIMED)
        assert result.to_dict() == {
            "destination": "0xA",
            "sats_redeemed": 625,
            "amount_sent": "5",
            "tx_id": "0xtx",
            "status": "CLAIMED",
        }

    def test_event_to_dict_omits_empty_fields(self):
        """Test unset event fields are left out of the dict."""
        event = OrchestratorEvent(type=EventType.MIX_PROGRESS, progress=20)
        assert event.to_dict() == {"type": "mix:progress", "progress": 20}

    def test_terminal_event_types(self):
        """Test which event types end a run."""
        assert EventType.MIX_COMPLETE.is_terminal
        assert EventType.MIX_ERROR.is_terminal
        assert not EventType.CASHU_MINTED.is_terminal
