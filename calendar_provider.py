"""Google Calendar API calls used by the OOO aggregator.

Only two read-only calls are made: a free/busy query that expands a group
into member calendars, and an events listing filtered to out-of-office
entries. Both are blocking; callers run them in worker threads.
"""

import logging

import google_auth_httplib2
import httplib2
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ooo_errors import ProviderError, ProviderErrorKind
from ooo_settings import CALENDAR_EXPANSION_MAX, EVENTS_PAGE_SIZE, GROUP_EXPANSION_MAX, HTTP_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (httplib2.HttpLib2Error, RefreshError, TransportError, OSError)


class GoogleCalendarProvider:
    """Thin wrapper over the Calendar v3 service.

    httplib2.Http is not thread-safe, so every request executes over its own
    authorized connection from http_factory.
    """

    def __init__(self, credentials, http_factory=None):
        self.credentials = credentials
        self._http_factory = http_factory or self._authorized_http
        self._service = build('calendar', 'v3', credentials=credentials, cache_discovery=False)

    def _authorized_http(self):
        return google_auth_httplib2.AuthorizedHttp(
            self.credentials, http=httplib2.Http(timeout=HTTP_TIMEOUT_SECONDS)
        )

    def query_freebusy(self, group: str, window) -> dict:
        """Free/busy for a group address, expanded to its member calendars.

        Args:
            group: Group email address
            window: QueryWindow bounding the query
        """
        body = {
            "timeMin": window.start.isoformat(),
            "timeMax": window.end.isoformat(),
            "timeZone": window.timezone_name,
            "items": [{"id": group}],
            "groupExpansionMax": GROUP_EXPANSION_MAX,
            "calendarExpansionMax": CALENDAR_EXPANSION_MAX,
        }
        try:
            return self._service.freebusy().query(body=body).execute(http=self._http_factory())
        except HttpError as e:
            if e.resp.status == 404:
                raise ProviderError.group_not_found(group) from e
            raise ProviderError(ProviderErrorKind.TRANSPORT, f"unable to query freebusy: {e}") from e
        except TRANSPORT_ERRORS as e:
            raise ProviderError(ProviderErrorKind.TRANSPORT, f"unable to query freebusy: {e}") from e

    def list_ooo_events(self, calendar_id: str, window) -> list[dict]:
        """All out-of-office events on a calendar within the window, by start time.

        Recurring events come back expanded into single instances. Follows
        nextPageToken until the listing is complete.
        """
        events = []
        page_token = None
        while True:
            request = self._service.events().list(
                calendarId=calendar_id,
                timeMin=window.start.isoformat(),
                timeMax=window.end.isoformat(),
                timeZone=window.timezone_name,
                singleEvents=True,
                eventTypes=['outOfOffice'],
                orderBy='startTime',
                maxResults=EVENTS_PAGE_SIZE,
                pageToken=page_token,
            )
            try:
                response = request.execute(http=self._http_factory())
            except (HttpError, *TRANSPORT_ERRORS) as e:
                raise ProviderError(
                    ProviderErrorKind.TRANSPORT, f"unable to retrieve events for {calendar_id}: {e}"
                ) from e

            events.extend(response.get('items', []))
            page_token = response.get('nextPageToken')
            if not page_token:
                break

        logger.debug("fetched %d OOO events for %s", len(events), calendar_id)
        return events
