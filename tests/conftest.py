"""Pytest configuration and fixtures."""

import os
from unittest.mock import AsyncMock

import pytest

# Keep the host environment from leaking into tests
os.environ["DRY_RUN"] = "true"
os.environ.pop("SHARED_SWAP_ACCOUNT_PRIVATE_KEY", None)
os.environ.pop("CASHU_MINTS", None)

from lnmixer.config import Settings, get_settings
from lnmixer.factory import create_dry_run_sandbox
from lnmixer.orchestrator import MixOrchestrator
from lnmixer.utils.locks import clear_signer_locks

MINT_A = "https://mint-a.test"
MINT_B = "https://mint-b.test"


def make_settings(**overrides) -> Settings:
    values = {
        "dry_run": True,
        "cashu_default_mint": MINT_A,
        "cashu_mints": "",
        "claim_retry_delay": 0.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def reset_state():
    """Clear cached settings and signer locks between tests."""
    get_settings.cache_clear()
    clear_signer_locks()
    yield
    clear_signer_locks()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def multi_mint_settings() -> Settings:
    return make_settings(cashu_mints=f"{MINT_A},{MINT_B}")


@pytest.fixture
def no_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def sandbox(settings):
    return create_dry_run_sandbox(settings)


@pytest.fixture
def multi_mint_sandbox(multi_mint_settings):
    return create_dry_run_sandbox(multi_mint_settings)


def build_orchestrator(sandbox, settings, sleep, **kwargs) -> MixOrchestrator:
    return MixOrchestrator(
        custody=sandbox.custody,
        lightning=sandbox.lightning,
        ecash=sandbox.ecash,
        gateway=sandbox.gateway,
        signer=sandbox.signer,
        router=sandbox.router,
        settings=settings,
        sleep=sleep,
        **kwargs,
    )


@pytest.fixture
def orchestrator(sandbox, settings, no_sleep) -> MixOrchestrator:
    return build_orchestrator(sandbox, settings, no_sleep)
