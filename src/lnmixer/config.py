"""Application configuration using pydantic-settings.

Covers the chain, Lightning node, ecash mints, rate fallbacks and the
privacy timing knobs used by the mix pipeline.
"""

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_SATS_RATE = 125
SATS_PER_BTC = 100_000_000


@dataclass
class ConfigStatus:
    """Result of validating the loaded settings."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    network: str = Field(default="TESTNET", description="MAINNET or TESTNET")
    dry_run: bool = Field(default=True, description="Use in-memory collaborators (no real funds)")
    debug: bool = Field(default=False, description="Enable debug logging")

    source_asset: str = Field(default="STRK", description="Chain asset being mixed")
    bridge_asset: str = Field(default="BTC_LN", description="Lightning asset used as bridge")

    # ======================
    # Chain
    # ======================
    starknet_rpc_url: str = Field(default="", description="Starknet RPC URL")
    mixer_contract_address: str = Field(default="", description="Custody contract address")
    shared_swap_account_address: str = Field(default="", description="Swap signer account address")
    shared_swap_account_private_key: Optional[str] = Field(
        default=None, description="Swap signer private key (hex)"
    )

    # ======================
    # Lightning (LND REST)
    # ======================
    lnd_url: str = Field(default="", description="LND REST endpoint")
    lnd_macaroon: str = Field(default="", description="Hex-encoded admin macaroon")
    lnd_tls_cert: str = Field(default="", description="Path to LND TLS certificate")
    lnd_timeout: float = Field(default=60.0, description="LND request timeout in seconds")

    # ======================
    # Ecash mints
    # ======================
    cashu_mints: str = Field(default="", description="Comma-separated mint URLs for multi-mint routing")
    cashu_default_mint: str = Field(
        default="https://mint.minibits.cash", description="Mint used when no list is configured"
    )

    # ======================
    # Rates
    # ======================
    strk_sats_rate: Optional[int] = Field(default=None, description="Explicit sats per source unit")
    strk_btc_rate: float = Field(default=0.0, description="BTC per source unit (converted to sats)")
    disable_live_price_fetch: bool = Field(
        default=False, description="Skip the swap provider quote and use the static rate"
    )

    # ======================
    # Limits
    # ======================
    min_mix_amount: float = Field(default=1, description="Minimum mix amount in source units")
    max_mix_amount: float = Field(default=10000, description="Maximum mix amount in source units")
    max_split_parts: int = Field(default=8, description="Upper bound on split_count")

    # ======================
    # Timing
    # ======================
    claim_retry_delay: float = Field(default=2.0, description="Seconds before rechecking a mint quote")
    distribution_delay_ms: int = Field(default=2000, description="Base delay after multi-mint routing")
    time_delay_ms: int = Field(default=3000, description="Base delay for the time-delay feature")
    obfuscation_delay_ms: int = Field(default=1500, description="Base delay for amount obfuscation")
    decoy_delay_ms: int = Field(default=1000, description="Base delay for decoy transactions")
    jitter_variance: float = Field(default=0.3, description="Relative jitter applied to delays")

    event_buffer_size: int = Field(default=100, description="Max buffered events per mix stream")

    # ======================
    # Dry-run sandbox
    # ======================
    dry_run_mint_fee_reserve: int = Field(default=0, description="Simulated melt fee reserve in sats")
    dry_run_swap_fee_percent: float = Field(default=0.0, description="Simulated swap fee (0.01 = 1%)")

    @property
    def mint_urls(self) -> list[str]:
        """Parse configured mint URLs into a list."""
        return [url.strip() for url in self.cashu_mints.split(",") if url.strip()]

    @property
    def fallback_sats_rate(self) -> int:
        """Static sats-per-unit rate used when no live quote is available."""
        if self.strk_sats_rate:
            return self.strk_sats_rate
        if self.strk_btc_rate > 0:
            return round(self.strk_btc_rate * SATS_PER_BTC)
        return DEFAULT_SATS_RATE

    @property
    def is_mainnet(self) -> bool:
        return self.network.upper() == "MAINNET"

    @property
    def has_signer(self) -> bool:
        return bool(self.shared_swap_account_private_key)

    def validate_config(self) -> ConfigStatus:
        """Check settings for fatal errors and readiness warnings."""
        status = ConfigStatus()

        if self.network.upper() not in ("MAINNET", "TESTNET"):
            status.errors.append(f"Invalid network configuration: {self.network}")
        if not self.cashu_default_mint and not self.mint_urls:
            status.errors.append("No Cashu mint configured")
        if self.min_mix_amount > self.max_mix_amount:
            status.errors.append("min_mix_amount exceeds max_mix_amount")

        if not self.starknet_rpc_url:
            status.warnings.append(
                f"Using default {self.network} Starknet RPC - configure STARKNET_RPC_URL for better reliability"
            )
        if not self.lnd_url:
            status.warnings.append("Lightning node URL not configured")
        if len(self.mint_urls) < 2:
            status.warnings.append("Fewer than two mints configured - multi-mint routing disabled")
        if not self.has_signer:
            status.warnings.append(
                "Shared swap account private key not set (SHARED_SWAP_ACCOUNT_PRIVATE_KEY) - swaps cannot be signed"
            )

        for warning in status.warnings:
            logger.warning(warning)
        for error in status.errors:
            logger.error(error)
        return status

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "network": self.network,
            "dry_run": self.dry_run,
            "debug": self.debug,
            "assets": {"source": self.source_asset, "bridge": self.bridge_asset},
            "chain": {
                "rpc": self.starknet_rpc_url or "(default)",
                "mixer_contract": self.mixer_contract_address or "(not set)",
                "signer_address": self.shared_swap_account_address or "(not set)",
                "signer_key": "***" if self.shared_swap_account_private_key else "(not set)",
            },
            "lightning": {
                "lnd_url": self.lnd_url or "(not set)",
                "macaroon": "***" if self.lnd_macaroon else "(not set)",
            },
            "ecash": {
                "mints": self.mint_urls,
                "default_mint": self.cashu_default_mint,
            },
            "rates": {
                "fallback_sats_rate": self.fallback_sats_rate,
                "live_price_fetch": not self.disable_live_price_fetch,
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
