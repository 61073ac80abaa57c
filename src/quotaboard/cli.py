from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from . import __version__
from .config import Settings
from .console import ConsoleDashboard
from .fetcher import SnapshotFetcher
from .logging_utils import ensure_rich_logging, set_debug
from .scheduler import RefreshScheduler
from .state import QuotaState

logger = logging.getLogger("quotaboard.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quotaboard",
        description="Display account usage and per-model quotas from an account-limits endpoint.",
    )
    parser.add_argument(
        "-u",
        "--url",
        default=None,
        help="API URL to fetch account data from (default: $QUOTABOARD_URL or http://localhost:8040/account-limits)",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=float,
        default=None,
        help="Refresh interval in seconds; 0 disables auto-refresh (default: 5)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="HTTP timeout in seconds (default: 10)",
    )
    parser.add_argument(
        "-o",
        "--once",
        action="store_true",
        help="Fetch and print once, then exit (console mode)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging; show raw response bodies on decode errors",
    )
    parser.add_argument(
        "--ui",
        choices=["textual", "console"],
        default="textual",
        help="Interactive Textual screen or the scrolling console printout.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    args = build_parser().parse_args(argv)

    settings = Settings.from_env().with_overrides(
        url=args.url,
        interval=args.interval,
        timeout=args.timeout,
        debug=args.debug or None,
    )
    if settings.interval < 0:
        print("--interval must not be negative", file=sys.stderr)
        return 1

    if args.ui == "textual" and not args.once:
        from .textual_dashboard import run_textual_dashboard

        return run_textual_dashboard(settings)

    ensure_rich_logging()
    set_debug(settings.debug)
    fetcher = SnapshotFetcher(
        settings.url, timeout=settings.timeout, debug=settings.debug
    )
    try:
        state = QuotaState()
        scheduler = RefreshScheduler(fetcher, state, interval=settings.interval)
        dashboard = ConsoleDashboard(scheduler, state, url=settings.url)
        return dashboard.run(once=args.once)
    finally:
        fetcher.close()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
