"""Configuration constants and environment setup."""

import os
from dataclasses import dataclass
from datetime import timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import tzlocal
from dotenv import load_dotenv

from ooo_errors import ConfigError

load_dotenv()

SCOPES = ['https://www.googleapis.com/auth/calendar.readonly']

# CLI defaults
DEFAULT_WEEKS = 8
DEFAULT_MIN_DURATION = timedelta(hours=24)
TIMEZONE_ENV = "CALENDAR_TIMEZONE"

# Loopback authorization
LOOPBACK_HOST = "127.0.0.1"
AUTH_TIMEOUT_SECONDS = float(os.environ.get("OOO_AUTH_TIMEOUT", "300"))

# Calendar API fan-out caps
GROUP_EXPANSION_MAX = 100
CALENDAR_EXPANSION_MAX = 50
EVENTS_PAGE_SIZE = 250
HTTP_TIMEOUT_SECONDS = 30


@dataclass(frozen=True)
class SecretNames:
    """Where the client registration and the OAuth token live in the secret store."""

    service: str = "ooo-calendar"
    client_secret_key: str = "client-secret"
    token_key: str = "oauth-token"


SECRET_NAMES = SecretNames()


def default_timezone_name() -> str:
    """Timezone from $CALENDAR_TIMEZONE, falling back to the system zone, then UTC."""
    return os.environ.get(TIMEZONE_ENV) or tzlocal.get_localzone_name() or "UTC"


def resolve_timezone(name: str) -> ZoneInfo:
    """Load an IANA timezone, raising ConfigError for unknown names."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, TypeError, ValueError) as e:
        raise ConfigError(f"invalid timezone {name!r}: {e}") from e
