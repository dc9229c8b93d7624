"""Shared fixtures for the OOO calendar tests.

Provides:
- An in-memory secret store
- A fake calendar provider driven by canned free/busy and event payloads
- A fixed two-week query window in Europe/Berlin
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from google.oauth2.credentials import Credentials

from ooo_models import QueryWindow
from ooo_settings import SCOPES
from secret_store import MemoryStore


# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────

BERLIN = ZoneInfo("Europe/Berlin")

# Wednesday 2026-10-21; the window runs Mon 2026-10-19 .. Sun 2026-11-01.
NOW = datetime(2026, 10, 21, 12, 0, tzinfo=timezone.utc)

CLIENT_CONFIG = {
    "installed": {
        "client_id": "1234.apps.googleusercontent.com",
        "project_id": "ooo-calendar-tests",
        "auth_uri": "https://accounts.google.com/o/oauth2/auth",
        "token_uri": "https://oauth2.googleapis.com/token",
        "client_secret": "not-a-real-secret",
        "redirect_uris": ["http://localhost"],
    }
}


# ─────────────────────────────────────────────────────────────────────────────
# Raw event helpers
# ─────────────────────────────────────────────────────────────────────────────


def all_day(start: str, end: str, summary: str = "Out of office") -> dict:
    return {"eventType": "outOfOffice", "summary": summary, "start": {"date": start}, "end": {"date": end}}


def timed(start: str, end: str, summary: str = "Out of office") -> dict:
    return {"eventType": "outOfOffice", "summary": summary, "start": {"dateTime": start}, "end": {"dateTime": end}}


def make_credentials(expires_in: timedelta, token: str = "cached-access") -> Credentials:
    """An OAuth token that expires expires_in from now."""
    return Credentials(
        token=token,
        refresh_token="refresh",
        token_uri="https://oauth2.googleapis.com/token",
        client_id="1234.apps.googleusercontent.com",
        client_secret="not-a-real-secret",
        scopes=SCOPES,
        expiry=datetime.now(timezone.utc).replace(tzinfo=None) + expires_in,
    )


class FakeProvider:
    """Stands in for GoogleCalendarProvider.

    events maps calendar id to a list of raw events, or to an exception to
    raise for that calendar.
    """

    def __init__(self, events: dict | None = None, freebusy=None, barrier=None):
        self.events = events or {}
        if freebusy is None:
            freebusy = {"calendars": {calendar_id: {"busy": []} for calendar_id in self.events}}
        self.freebusy = freebusy
        self.barrier = barrier
        self.fetched = []

    def query_freebusy(self, group, window):
        if isinstance(self.freebusy, Exception):
            raise self.freebusy
        return self.freebusy

    def list_ooo_events(self, calendar_id, window):
        self.fetched.append(calendar_id)
        if self.barrier is not None:
            self.barrier.wait()
        outcome = self.events.get(calendar_id, [])
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def window() -> QueryWindow:
    return QueryWindow.weeks_ahead(NOW, 1, BERLIN)


@pytest.fixture
def client_config() -> dict:
    return {key: dict(value) for key, value in CLIENT_CONFIG.items()}
