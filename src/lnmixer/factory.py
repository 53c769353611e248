"""Factory for building a MixOrchestrator from settings."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from lnmixer.config import Settings, get_settings
from lnmixer.custody.base import CustodyClient
from lnmixer.custody.dry_run import DryRunCustodyContract
from lnmixer.ecash.base import EcashClient
from lnmixer.ecash.dry_run import DryRunMint
from lnmixer.ecash.router import MultiMintRouter
from lnmixer.errors import ConfigurationError
from lnmixer.lightning.base import LightningClient
from lnmixer.lightning.dry_run import DryRunLightningNetwork, DryRunLightningNode
from lnmixer.lightning.lnd import LndRestClient
from lnmixer.orchestrator import MixOrchestrator
from lnmixer.signing import SwapSigner, load_signer
from lnmixer.swaps.base import SwapGateway
from lnmixer.swaps.dry_run import DryRunSwapGateway

logger = logging.getLogger(__name__)


@dataclass
class DryRunSandbox:
    """In-memory collaborators sharing one simulated Lightning network."""

    network: DryRunLightningNetwork
    custody: DryRunCustodyContract
    lightning: DryRunLightningNode
    mints: list[DryRunMint]
    router: Optional[MultiMintRouter]
    gateway: DryRunSwapGateway
    signer: SwapSigner

    @property
    def ecash(self) -> DryRunMint:
        return self.mints[0]


def create_dry_run_sandbox(settings: Optional[Settings] = None) -> DryRunSandbox:
    """Build simulated collaborators from settings.

    One dry-run mint is created per configured mint URL (or the default
    mint). A router is only built when there are at least two mints.
    """
    settings = settings or get_settings()
    network = DryRunLightningNetwork()
    signer = load_signer(settings)

    urls = settings.mint_urls or [settings.cashu_default_mint]
    mints = [DryRunMint(network, url, fee_reserve=settings.dry_run_mint_fee_reserve) for url in urls]
    router = MultiMintRouter(mints) if len(mints) >= 2 else None

    gateway = DryRunSwapGateway(
        network,
        sats_rate=settings.fallback_sats_rate,
        source_asset=settings.source_asset,
        bridge_asset=settings.bridge_asset,
        fee_percent=Decimal(str(settings.dry_run_swap_fee_percent)),
    )
    logger.info(f"[DRY RUN] Sandbox with {len(mints)} mint(s), rate {settings.fallback_sats_rate} sats/unit")
    return DryRunSandbox(
        network=network,
        custody=DryRunCustodyContract(signer.address, asset=settings.source_asset),
        lightning=DryRunLightningNode(network),
        mints=mints,
        router=router,
        gateway=gateway,
        signer=signer,
    )


def create_lightning_client(settings: Settings) -> LightningClient:
    """LND REST client from settings."""
    if not settings.lnd_url:
        raise ConfigurationError("Lightning node not configured. Set LND_URL")
    return LndRestClient(
        settings.lnd_url,
        settings.lnd_macaroon,
        tls_cert=settings.lnd_tls_cert,
        timeout=settings.lnd_timeout,
    )


def create_orchestrator(
    settings: Optional[Settings] = None,
    custody: Optional[CustodyClient] = None,
    lightning: Optional[LightningClient] = None,
    ecash: Optional[EcashClient] = None,
    gateway: Optional[SwapGateway] = None,
    signer: Optional[SwapSigner] = None,
    router: Optional[MultiMintRouter] = None,
    **kwargs,
) -> MixOrchestrator:
    """Create an orchestrator, filling unspecified collaborators.

    In dry-run mode missing collaborators come from a fresh sandbox. In live
    mode the Lightning client is built from LND settings and the signer from
    the shared swap account; custody, ecash and swap clients must be given.

    Raises:
        ConfigurationError: If a live collaborator is missing
    """
    settings = settings or get_settings()

    if settings.dry_run:
        sandbox = create_dry_run_sandbox(settings)
        if router is None and ecash is None:
            router = sandbox.router
        return MixOrchestrator(
            custody=custody or sandbox.custody,
            lightning=lightning or sandbox.lightning,
            ecash=ecash or sandbox.ecash,
            gateway=gateway or sandbox.gateway,
            signer=signer or sandbox.signer,
            router=router,
            settings=settings,
            **kwargs,
        )

    missing = [
        name
        for name, value in (("custody", custody), ("ecash", ecash), ("gateway", gateway))
        if value is None
    ]
    if missing:
        raise ConfigurationError(
            f"Live mode needs explicit {', '.join(missing)} client(s); set DRY_RUN=true to simulate"
        )

    return MixOrchestrator(
        custody=custody,
        lightning=lightning or create_lightning_client(settings),
        ecash=ecash,
        gateway=gateway,
        signer=signer or load_signer(settings),
        router=router,
        settings=settings,
        **kwargs,
    )
