"""Error types shared by the OOO calendar modules.

Every fatal error carries the stage it came from so the CLI can say which
part of the run failed (config, auth or provider).
"""

from enum import Enum


class OOOCalendarError(Exception):
    """Base class for errors that end a run."""

    stage = "ooo-calendar"


class ConfigError(OOOCalendarError):
    """Malformed or rejected configuration (client secret, timezone...)."""

    stage = "config"


class AuthErrorKind(Enum):
    CANCELLED = "cancelled"
    STATE_MISMATCH = "state mismatch"
    NO_CODE = "no code received"
    EXCHANGE_FAILED = "token exchange failed"
    STORE_FAILED = "token store failed"


class AuthError(OOOCalendarError):
    """The authorization flow could not produce a usable credential."""

    stage = "auth"

    def __init__(self, kind: AuthErrorKind, message: str = ""):
        self.kind = kind
        super().__init__(f"{kind.value}: {message}" if message else kind.value)


class ProviderErrorKind(Enum):
    GROUP_NOT_FOUND = "group not found"
    NO_CALENDARS_VISIBLE = "no calendars visible"
    TRANSPORT = "calendar API request failed"


class ProviderError(OOOCalendarError):
    """The calendar API refused or failed a request."""

    stage = "provider"

    def __init__(self, kind: ProviderErrorKind, message: str = ""):
        self.kind = kind
        super().__init__(message or kind.value)

    @classmethod
    def group_not_found(cls, group: str) -> "ProviderError":
        return cls(
            ProviderErrorKind.GROUP_NOT_FOUND,
            f"group '{group}' not found or you don't have access to it. "
            "Please check if the email address is correct",
        )

    @classmethod
    def no_calendars_visible(cls, group: str) -> "ProviderError":
        return cls(
            ProviderErrorKind.NO_CALENDARS_VISIBLE,
            f"no calendars found for group '{group}'. "
            "You might not have access to view the group's calendars",
        )


class SecretStoreError(Exception):
    """The secret backend rejected a read or write."""
