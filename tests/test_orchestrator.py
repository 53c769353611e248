"""End-to-end tests for the mix orchestrator against the dry-run sandbox."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from lnmixer.ecash.base import EcashError
from lnmixer.ecash.token import decode_token
from lnmixer.errors import ConfigurationError, InvariantViolation, MixError, SwapFailed
from lnmixer.factory import create_dry_run_sandbox
from lnmixer.models import EventType, MixRequest, PrivacyLevel, total_amount
from lnmixer.orchestrator.steps import StaticRateStrategy
from lnmixer.utils.locks import get_signer_lock

from conftest import build_orchestrator, make_settings


def _request(**kwargs) -> MixRequest:
    values = {"amount": Decimal("10"), "destinations": ["A", "B"]}
    values.update(kwargs)
    return MixRequest(**values)


def _types(events):
    return [e.type for e in events]


class TestRunMix:
    """Tests for a full mix run."""

    @pytest.mark.asyncio
    async def test_two_destinations(self, orchestrator, sandbox):
        """Test a standard mix to two destinations."""
        events = []
        report = await orchestrator.run_mix(_request(), events.append)

        types = _types(events)
        assert types.count(EventType.DEPOSIT_CONFIRMED) == 1
        assert types.count(EventType.LIGHTNING_PAID) == 1
        assert types.count(EventType.CASHU_MINTED) == 1
        assert types.count(EventType.MIX_ERROR) == 0
        assert types[-1] == EventType.MIX_COMPLETE

        assert len(report.distributions) == 2
        assert all(d.amount_sent == Decimal("5") for d in report.distributions)
        assert report.total_sent == Decimal("10")
        assert 20 <= report.anonymity_set_size <= 30
        assert report.estimate_source == "realtime"
        assert report.leftover_token is None
        assert sandbox.gateway.delivered == {"A": Decimal("5"), "B": Decimal("5")}

    @pytest.mark.asyncio
    async def test_progress_is_monotonic_and_ends_at_100(self, orchestrator):
        """Test progress only rises and finishes at 100."""
        events = []
        await orchestrator.run_mix(_request(), events.append)

        progress = [e.progress for e in events if e.progress is not None]
        assert progress == sorted(progress)
        assert progress[-1] == 100
        assert events[-1].type == EventType.MIX_COMPLETE

    @pytest.mark.asyncio
    async def test_complete_event_carries_metrics(self, orchestrator):
        """Test the complete event carries privacy metrics."""
        events = []
        await orchestrator.run_mix(_request(), events.append)

        complete = events[-1]
        assert complete.anonymity_set_size == 20
        assert complete.privacy_score == 55
        assert complete.estimated_time == 5
        assert len(complete.details["distributions"]) == 2

    @pytest.mark.asyncio
    async def test_all_privacy_features(self, multi_mint_sandbox, multi_mint_settings, no_sleep):
        """Test a mix with every privacy feature enabled."""
        orchestrator = build_orchestrator(multi_mint_sandbox, multi_mint_settings, no_sleep)
        events = []
        request = _request(
            privacy_level=PrivacyLevel.ENHANCED,
            enable_time_delays=True,
            enable_split_outputs=True,
            enable_randomized_mints=True,
            enable_amount_obfuscation=True,
            enable_decoy_tx=True,
            split_count=3,
        )

        report = await orchestrator.run_mix(request, events.append)

        assert EventType.CASHU_ROUTED in _types(events)
        assert report.anonymity_set_size == 60 + 3 + 10
        assert len(report.distributions) == 2
        assert no_sleep.await_count == 4

    @pytest.mark.asyncio
    async def test_randomized_mints_single_destination(self, multi_mint_sandbox, multi_mint_settings, no_sleep):
        """Test a lone destination is paid after value is split across two mints."""
        orchestrator = build_orchestrator(multi_mint_sandbox, multi_mint_settings, no_sleep)

        report = await orchestrator.run_mix(
            _request(destinations=["A"], enable_randomized_mints=True), lambda event: None
        )

        assert report.total_sent == Decimal("10")
        assert report.leftover_token is None
        assert multi_mint_sandbox.gateway.delivered == {"A": Decimal("10")}
        assert all(m.outstanding_balance == 0 for m in multi_mint_sandbox.mints)

    @pytest.mark.asyncio
    async def test_randomized_mints_three_destinations(self, multi_mint_sandbox, multi_mint_settings, no_sleep):
        """Test the last share is consolidated from both mints before melting."""
        orchestrator = build_orchestrator(multi_mint_sandbox, multi_mint_settings, no_sleep)

        report = await orchestrator.run_mix(
            _request(destinations=["A", "B", "C"], enable_randomized_mints=True), lambda event: None
        )

        assert [d.destination for d in report.distributions] == ["A", "B", "C"]
        assert all(d.sats_redeemed == 416 for d in report.distributions)
        assert all(d.amount_sent == Decimal("3.328") for d in report.distributions)
        assert total_amount(decode_token(report.leftover_token)) == 2

    @pytest.mark.asyncio
    async def test_swap_fee_taken_from_withdrawal(self, no_sleep):
        """Test a non-zero swap fee fits inside the withdrawn amount."""
        settings = make_settings(dry_run_swap_fee_percent=0.01)
        sandbox = create_dry_run_sandbox(settings)
        orchestrator = build_orchestrator(sandbox, settings, no_sleep)

        report = await orchestrator.run_mix(_request(destinations=["A"]), lambda event: None)

        assert report.sats_minted == 1237
        assert report.distributions[0].sats_redeemed == 1237
        assert sandbox.gateway.delivered["A"] == Decimal("9.79704")

    @pytest.mark.asyncio
    async def test_static_rate_estimate(self, sandbox, no_sleep):
        """Test the static rate is used when live prices are disabled."""
        settings = make_settings(disable_live_price_fetch=True, strk_sats_rate=100)
        orchestrator = build_orchestrator(sandbox, settings, no_sleep)

        report = await orchestrator.run_mix(_request(), lambda event: None)

        assert report.estimate_source == "fallback"
        assert report.sats_minted == 1000

    @pytest.mark.asyncio
    async def test_explicit_estimator(self, sandbox, settings, no_sleep):
        """Test an injected estimator replaces the default."""
        orchestrator = build_orchestrator(sandbox, settings, no_sleep, estimator=StaticRateStrategy(125))
        report = await orchestrator.run_mix(_request(), lambda event: None)
        assert report.sats_minted == 1250


class TestRunMixFailures:
    """Tests for failure reporting."""

    @pytest.mark.asyncio
    async def test_second_destination_fails(self, orchestrator, sandbox):
        """Test a failed destination reports once with a recovery token."""
        sandbox.gateway.reject_destinations.add("B")
        events = []

        with pytest.raises(SwapFailed) as exc_info:
            await orchestrator.run_mix(_request(amount=Decimal("12"), destinations=["A", "B", "C"]), events.append)

        errors = [e for e in events if e.type == EventType.MIX_ERROR]
        assert len(errors) == 1
        assert errors[0].progress == 0
        assert errors[0].details["has_recovery_token"] is True
        assert events[-1].type == EventType.MIX_ERROR

        redeemed = [e.details["destination"] for e in events if e.type == EventType.CASHU_REDEEMED]
        assert redeemed == ["A"]
        assert "C" not in sandbox.gateway.delivered

        recovered = decode_token(exc_info.value.recovery_token)
        assert total_amount(recovered) == 1000

    @pytest.mark.asyncio
    async def test_swap_failure_refunds_without_token(self, orchestrator, sandbox):
        """Test a failed chain swap is refunded and holds no proofs."""
        sandbox.gateway.fail_payments = True
        events = []

        with pytest.raises(SwapFailed) as exc_info:
            await orchestrator.run_mix(_request(), events.append)

        assert exc_info.value.refunded
        assert exc_info.value.recovery_token is None
        assert _types(events).count(EventType.MIX_ERROR) == 1

    @pytest.mark.asyncio
    async def test_amount_above_limit(self, orchestrator, sandbox):
        """Test an amount over the limit fails before any deposit."""
        events = []
        with pytest.raises(ConfigurationError):
            await orchestrator.run_mix(_request(amount=Decimal("20000")), events.append)

        assert _types(events) == [EventType.MIX_ERROR]
        assert sandbox.custody.commitments == {}

    @pytest.mark.asyncio
    async def test_split_count_above_limit(self, orchestrator):
        """Test a split count over the limit is rejected."""
        with pytest.raises(ConfigurationError):
            await orchestrator.run_mix(
                _request(enable_split_outputs=True, split_count=9), lambda event: None
            )

    @pytest.mark.asyncio
    async def test_share_rounds_to_zero(self, sandbox, no_sleep):
        """Test an amount too small to share fails before any deposit."""
        orchestrator = build_orchestrator(sandbox, make_settings(min_mix_amount=0.001), no_sleep)

        with pytest.raises(ConfigurationError):
            await orchestrator.run_mix(_request(amount=Decimal("0.01")), lambda event: None)
        assert sandbox.custody.commitments == {}

    @pytest.mark.asyncio
    async def test_unexpected_error_still_reported(self, orchestrator):
        """Test an estimator failure is reported as an error event."""
        orchestrator.estimator = AsyncMock()
        orchestrator.estimator.estimate.side_effect = InvariantViolation("bad estimate")
        events = []

        with pytest.raises(MixError):
            await orchestrator.run_mix(_request(), events.append)
        assert events[-1].type == EventType.MIX_ERROR
        assert events[-1].details["error_type"] == "InvariantViolation"


    @pytest.mark.asyncio
    async def test_failed_split_returns_live_proofs(self, orchestrator, sandbox):
        """Test a failure mid-split hands back the proofs that replaced the burned ones."""
        original_send = sandbox.ecash.send
        calls = []

        async def flaky_send(amount, proofs):
            calls.append(amount)
            if len(calls) > 1:
                raise EcashError("mint unavailable")
            return await original_send(amount, proofs)

        sandbox.ecash.send = flaky_send
        events = []

        with pytest.raises(EcashError) as exc_info:
            await orchestrator.run_mix(
                _request(enable_split_outputs=True, split_count=3), events.append
            )

        assert _types(events).count(EventType.MIX_ERROR) == 1
        assert events[-1].details["has_recovery_token"] is True
        redeemed = await sandbox.ecash.receive(exc_info.value.recovery_token)
        assert total_amount(redeemed) == 1250


class TestStreamMix:
    """Tests for consuming events as an async iterator."""

    @pytest.mark.asyncio
    async def test_stream_ends_with_complete(self, orchestrator):
        """Test the stream runs from deposit to completion."""
        events = [event async for event in orchestrator.stream_mix(_request())]

        assert events[0].type == EventType.DEPOSIT_INITIATED
        assert events[-1].type == EventType.MIX_COMPLETE

    @pytest.mark.asyncio
    async def test_stream_reraises_after_error_event(self, orchestrator, sandbox):
        """Test the stream yields the error event then raises."""
        sandbox.gateway.reject_destinations.add("B")
        events = []

        with pytest.raises(SwapFailed):
            async for event in orchestrator.stream_mix(_request()):
                events.append(event)

        assert events[-1].type == EventType.MIX_ERROR

    @pytest.mark.asyncio
    async def test_small_buffer_keeps_terminal_event(self, sandbox, no_sleep):
        """Test a tiny buffer still delivers the terminal event."""
        settings = make_settings(event_buffer_size=1)
        orchestrator = build_orchestrator(sandbox, settings, no_sleep)

        events = [event async for event in orchestrator.stream_mix(_request())]
        assert events[-1].type == EventType.MIX_COMPLETE


class TestSignerSerialization:
    """Runs sharing a signer do not overlap."""

    @pytest.mark.asyncio
    async def test_lock_held_during_run(self, orchestrator, sandbox):
        """Test the signer lock is held for the whole run."""
        observed = []

        def sink(event):
            observed.append(get_signer_lock(sandbox.signer.address).locked())

        await orchestrator.run_mix(_request(), sink)

        assert all(observed[:-1])
        assert not get_signer_lock(sandbox.signer.address).locked()

    @pytest.mark.asyncio
    async def test_concurrent_runs_serialize(self, sandbox, settings):
        """Test runs sharing a signer do not interleave."""
        order = []

        async def slow_sleep(seconds):
            await asyncio.sleep(0)

        orchestrator = build_orchestrator(sandbox, settings, slow_sleep)

        async def run(tag, destinations):
            def sink(event):
                if event.type in (EventType.DEPOSIT_INITIATED, EventType.MIX_COMPLETE):
                    order.append((tag, event.type))

            await orchestrator.run_mix(_request(destinations=destinations, enable_time_delays=True), sink)

        await asyncio.gather(run("first", ["A", "B"]), run("second", ["C", "D"]))

        assert order[0][0] == order[1][0]
        assert order[2][0] == order[3][0]
