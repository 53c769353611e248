"""Command line entry point: python -m lnmixer"""

# Load .env file before importing anything else
from dotenv import load_dotenv
load_dotenv()

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal

from pydantic import ValidationError

from lnmixer.config import get_settings
from lnmixer.errors import ConfigurationError, MixError
from lnmixer.factory import create_orchestrator
from lnmixer.models import MixRequest, PrivacyLevel

logger = logging.getLogger("lnmixer")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lnmixer", description="Run a chain -> Lightning -> ecash mix")
    parser.add_argument("--amount", type=Decimal, help="Amount of source asset to mix")
    parser.add_argument(
        "--dest",
        dest="destinations",
        action="append",
        default=[],
        help="Destination address (repeat for several, delivered in order)",
    )
    parser.add_argument(
        "--privacy-level",
        choices=[level.value for level in PrivacyLevel],
        default=PrivacyLevel.STANDARD.value,
    )
    parser.add_argument("--time-delays", action="store_true", help="Add randomized delays")
    parser.add_argument("--split-outputs", type=int, default=0, metavar="N", help="Split outputs into N parts")
    parser.add_argument("--randomized-mints", action="store_true", help="Route proofs across several mints")
    parser.add_argument("--obfuscate", action="store_true", help="Enable amount obfuscation delay")
    parser.add_argument("--decoy", action="store_true", help="Enable decoy transaction delay")
    parser.add_argument("--check-config", action="store_true", help="Validate settings and exit")
    return parser


def _print_recovery(error: Exception) -> None:
    token = getattr(error, "recovery_token", None)
    if token:
        print(json.dumps({"recovery_token": token}), flush=True)


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    status = settings.validate_config()
    if args.check_config:
        print(json.dumps(settings.get_safe_dict(), indent=2))
        return 0 if status.valid else 1
    if not status.valid:
        return 1
    if args.amount is None or not args.destinations:
        logger.error("--amount and at least one --dest are required")
        return 2

    try:
        request = MixRequest(
            amount=args.amount,
            destinations=args.destinations,
            privacy_level=PrivacyLevel(args.privacy_level),
            enable_time_delays=args.time_delays,
            enable_split_outputs=args.split_outputs > 1,
            enable_randomized_mints=args.randomized_mints,
            enable_amount_obfuscation=args.obfuscate,
            enable_decoy_tx=args.decoy,
            split_count=max(1, args.split_outputs),
        )
    except ValidationError as e:
        logger.error(f"Invalid mix request: {e}")
        return 2

    try:
        orchestrator = create_orchestrator(settings)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    try:
        async for event in orchestrator.stream_mix(request):
            print(json.dumps(event.to_dict()), flush=True)
    except MixError as e:
        _print_recovery(e)
        return 1
    except Exception as e:
        logger.exception(f"Mix aborted by unexpected error: {e}")
        _print_recovery(e)
        return 1
    return 0


def main() -> None:
    args = build_parser().parse_args()
    settings = get_settings()

    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
