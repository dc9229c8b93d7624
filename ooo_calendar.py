#!/usr/bin/env python3
"""Show a week-by-week out-of-office grid for the members of a Google group.

Usage:
    python ooo_calendar.py team@example.com
    python ooo_calendar.py --weeks 4 --min-duration 48h team@example.com
    python ooo_calendar.py --timezone Europe/Berlin team@example.com
    python ooo_calendar.py --reset-token

The OAuth client secret and token are kept in the system keyring. On first
run you are asked to paste your client_secret.json, then a browser window
opens for consent.
"""

import argparse
import asyncio
import logging
import re
import sys
from datetime import datetime, timedelta, timezone

from calendar_provider import GoogleCalendarProvider
from loopback_auth import LoopbackAuthFlow
from ooo_aggregator import collect_ooo
from ooo_errors import OOOCalendarError, SecretStoreError
from ooo_logging import setup_logging
from ooo_models import QueryWindow
from ooo_settings import (
    DEFAULT_MIN_DURATION,
    DEFAULT_WEEKS,
    SECRET_NAMES,
    TIMEZONE_ENV,
    default_timezone_name,
    resolve_timezone,
)
from secret_store import KeyringStore, load_client_config, reset_client_secret, reset_token
from week_grid import render

logger = logging.getLogger(__name__)

GROUP_RE = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")
DURATION_RE = re.compile(r"(?:\d+(?:\.\d+)?(?:ms|s|m|h|d))+")
DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")
DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}


def parse_duration(text: str) -> timedelta:
    """Parse a duration like "24h", "1h30m", "90m" or "2d"."""
    text = text.strip()
    if text == "0":
        return timedelta(0)
    if not DURATION_RE.fullmatch(text):
        raise ValueError(f"invalid duration {text!r}")
    return sum(
        (float(amount) * DURATION_UNITS[unit] for amount, unit in DURATION_PART_RE.findall(text)),
        timedelta(0),
    )


def _duration_arg(text: str) -> timedelta:
    try:
        return parse_duration(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid duration {text!r} (e.g. 24h, 48h, 72h)")


def _weeks_arg(text: str) -> int:
    try:
        weeks = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid week count {text!r}")
    if weeks < 0:
        raise argparse.ArgumentTypeError("week count must not be negative")
    return weeks


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ooo-calendar",
        description="Show a weekly out-of-office grid for the members of a Google group.",
        epilog="Example:\n  ooo-calendar --weeks 8 group-id@example.com",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("group", nargs="?", help="Group email address")
    parser.add_argument("--weeks", type=_weeks_arg, default=DEFAULT_WEEKS,
                        help=f"Number of weeks ahead to check (default {DEFAULT_WEEKS})")
    parser.add_argument("--min-duration", type=_duration_arg, default=DEFAULT_MIN_DURATION,
                        help="Minimum duration of out-of-office events to show (e.g. 24h, 48h, 72h)")
    parser.add_argument("--timezone",
                        help=f"Time zone for calendar display (default: ${TIMEZONE_ENV} or the system zone)")
    parser.add_argument("--reset-secret", action="store_true",
                        help="Reset stored client secret (also resets the OAuth token)")
    parser.add_argument("--reset-token", action="store_true", help="Reset stored OAuth token")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    return parser


async def fetch_calendar(args, store, names=SECRET_NAMES, provider_factory=GoogleCalendarProvider, now=None):
    """Authorize, expand the group and collect OOO events.

    Returns (window, AggregationResult). Raises OOOCalendarError subclasses
    for anything that should end the run.
    """
    tz = resolve_timezone(args.timezone or default_timezone_name())
    window = QueryWindow.weeks_ahead(now or datetime.now(timezone.utc), args.weeks, tz)
    logger.info("query window %s .. %s (%s)", window.start, window.end, window.timezone_name)

    client_config = await load_client_config(store, names)
    creds = await LoopbackAuthFlow(store, client_config, names).obtain_token()

    provider = provider_factory(creds)
    result = await collect_ooo(provider, args.group, window, args.min_duration)
    return window, result


def main(argv=None, store=None, provider_factory=GoogleCalendarProvider) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging("INFO" if args.verbose else None)

    if args.group is not None and not GROUP_RE.fullmatch(args.group):
        parser.error(f"invalid group email address {args.group!r}")

    if store is None:
        store = KeyringStore()
    try:
        if args.reset_secret:
            reset_client_secret(store)
        elif args.reset_token:
            reset_token(store)
    except SecretStoreError as e:
        print(f"Error (config): {e}", file=sys.stderr)
        return 1

    if args.group is None:
        if args.reset_secret or args.reset_token:
            return 0
        parser.error("missing group email address")

    try:
        window, result = asyncio.run(fetch_calendar(args, store, provider_factory=provider_factory))
    except OOOCalendarError as e:
        print(f"Error ({e.stage}): {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nShutting down gracefully...", file=sys.stderr)
        return 130

    for block in render(result.events_by_person, window):
        print(block)
    print()

    for calendar_id, reason in sorted(result.failures.items()):
        print(f"Warning: could not read OOO events for {calendar_id}: {reason}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
