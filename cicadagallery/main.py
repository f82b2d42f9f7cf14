"""
Entry point of the CicadaGallery licensing subsystem.

The application calls startup() before showing its window: it configures
logging and resolves the feature gate from the locally stored license, with
no network access. The `cicadagallery-license` command exposes the same
operations the license dialog uses.
"""

import argparse
import asyncio
import logging
import sys

from cicadagallery import __version__
from cicadagallery.config.config import get_log_format
from cicadagallery.licensing.edition import EDITION_NAME, PREMIUM_BUILD
from cicadagallery.licensing.feature_gate import get_feature_gate
from cicadagallery.utils.logging_formatter import UTCTimestampFormatter
from cicadagallery.utils.verbosity_logger import get_logger

logger = get_logger("cicadagallery.main")


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging with the UTC timestamp formatter."""
    handler = logging.StreamHandler()
    handler.setFormatter(UTCTimestampFormatter(get_log_format()))
    logging.basicConfig(level=level, handlers=[handler])


def startup():
    """
    Resolve premium status for this process.

    Returns:
        The initialized feature gate
    """
    logger.info("CicadaGallery %s (%s edition) starting", __version__, EDITION_NAME)
    gate = get_feature_gate()
    gate.initialize()
    return gate


def build_coordinator(gate):
    """Create the activation coordinator for the premium edition."""
    from cicadagallery.licensing.activation import ActivationCoordinator

    return ActivationCoordinator(gate.store, gate)


def cmd_status(gate, args) -> int:
    """Print the current license status."""
    print(f"Edition: {EDITION_NAME}")
    print(f"Premium: {'yes' if gate.is_premium() else 'no'}")
    info = gate.license_info()
    if info:
        print(f"Issued to: {info['email']}")
        print(f"Order: {info['order_id']}")
        print(f"Issued: {info['issued_at']}")
        print(f"Expires: {info['expires_at']}")
        if not info["valid"]:
            print(f"License problem: {info['reason']}")
    return 0


def _report(result) -> int:
    print(result.message)
    return 0 if result.success else 1


def cmd_activate(gate, args) -> int:
    """Activate with an order id and e-mail address."""
    coordinator = build_coordinator(gate)
    result = asyncio.run(coordinator.activate(args.order_id, args.email, args.lang))
    return _report(result)


def cmd_enter_key(gate, args) -> int:
    """Activate with a license key pasted by the user."""
    return _report(build_coordinator(gate).activate_key(args.license_key))


def cmd_deactivate(gate, args) -> int:
    """Remove the stored license."""
    return _report(build_coordinator(gate).deactivate())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cicadagallery-license",
        description="CicadaGallery license management",
    )
    parser.add_argument("--version", action="version", version=__version__)
    subparsers = parser.add_subparsers(dest="command", required=True)

    status = subparsers.add_parser("status", help="show the license status")
    status.set_defaults(func=cmd_status)

    activate = subparsers.add_parser("activate", help="activate with an order")
    activate.add_argument("--order-id", required=True)
    activate.add_argument("--email", required=True)
    activate.add_argument("--lang")
    activate.set_defaults(func=cmd_activate, needs_premium_build=True)

    enter_key = subparsers.add_parser("enter-key", help="activate with a license key")
    enter_key.add_argument("license_key")
    enter_key.set_defaults(func=cmd_enter_key, needs_premium_build=True)

    deactivate = subparsers.add_parser("deactivate", help="remove the license")
    deactivate.set_defaults(func=cmd_deactivate, needs_premium_build=True)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    gate = startup()
    if getattr(args, "needs_premium_build", False) and not PREMIUM_BUILD:
        print("License activation is not available in the free edition.")
        return 1
    return args.func(gate, args)


if __name__ == "__main__":
    sys.exit(main())
