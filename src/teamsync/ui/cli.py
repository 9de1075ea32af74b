from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from teamsync.app import SyncMode, SyncRequest, format_causal_chain, synchronize
from teamsync.config import ConfigurationError, configure_logging
from teamsync.domain.model import Platform

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="teamsync",
        description="Reconcile GitHub and Zulip with the team definitions",
    )
    parser.add_argument(
        "services",
        nargs="*",
        metavar="SERVICE",
        help="Services to synchronise: github, zulip (default: all)",
    )
    parser.add_argument(
        "--live",
        action="store_true",
        help="Apply the changes instead of only logging what would be done",
    )
    parser.add_argument(
        "--team-repo",
        type=str,
        help="Path or URL of the team definitions (default: $TEAMSYNC_TEAM_SOURCE)",
    )
    modes = parser.add_mutually_exclusive_group()
    modes.add_argument(
        "--only-print-plan",
        action="store_true",
        help="Print the plan and exit without applying anything",
    )
    modes.add_argument(
        "--require-confirmation",
        action="store_true",
        help="Publish the plan for approval and apply it only once approved",
    )
    args = parser.parse_args(list(argv))
    known = {str(platform) for platform in Platform}
    unknown = sorted(set(args.services) - known)
    if unknown:
        parser.error(f"unknown service(s): {', '.join(unknown)}")
    return args


def _build_request(args: argparse.Namespace) -> SyncRequest:
    mode = SyncMode.APPLY
    if args.only_print_plan:
        mode = SyncMode.PRINT_PLAN
    elif args.require_confirmation:
        mode = SyncMode.CONFIRM
    selected = {Platform(name) for name in args.services}
    services = tuple(platform for platform in Platform if not selected or platform in selected)
    return SyncRequest(
        services=services,
        live=args.live,
        mode=mode,
        team_source=args.team_repo,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    request = _build_request(_parse_args(args_list))

    if not request.live:
        log.info("running in dry mode, no changes will be applied (pass --live to apply)")

    try:
        report = synchronize(request)
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)
    except Exception as exc:
        log.exception("Fatal error during sync: %s", format_causal_chain(exc))
        sys.exit(1)

    if not report.ok:
        failed = [str(outcome.platform) for outcome in report.outcomes if not outcome.ok]
        log.error("sync failed for: %s", ", ".join(failed))
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
