"""Collect out-of-office events for every member of a group.

The group is expanded through one free/busy query, then each member's OOO
events are fetched concurrently, parsed to absolute instants and filtered by
minimum duration.
"""

import asyncio
import logging
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from ooo_errors import ProviderError
from ooo_models import AggregationResult, OOOEvent, QueryWindow
from ooo_threads import run_detached

logger = logging.getLogger(__name__)


def _has_error(entry: dict, reason: str | None = None) -> bool:
    errors = entry.get("errors") or []
    if reason is None:
        return bool(errors)
    return any(error.get("reason") == reason for error in errors)


def resolve_members(response: dict, group: str) -> list[str]:
    """Member calendar ids visible to the caller in a free/busy response.

    Raises ProviderError when the group is unknown or when none of its
    calendars are visible.
    """
    group_entry = response.get("groups", {}).get(group, {})
    if _has_error(group_entry, "notFound"):
        raise ProviderError.group_not_found(group)

    calendars = response.get("calendars", {})
    members = []
    for calendar_id, entry in calendars.items():
        if _has_error(entry):
            logger.info("skipping calendar %s: %s", calendar_id, entry["errors"])
            continue
        members.append(calendar_id)

    if not members:
        # A non-group address that does not exist comes back as a single erroring calendar.
        if set(calendars) == {group} and _has_error(calendars[group], "notFound"):
            raise ProviderError.group_not_found(group)
        raise ProviderError.no_calendars_visible(group)
    return sorted(members)


def _parse_boundary(boundary: dict, tz: ZoneInfo) -> datetime:
    if boundary.get("dateTime"):
        parsed = datetime.fromisoformat(boundary["dateTime"])
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz)
        return parsed
    # All-day events start and end at midnight in the display timezone.
    return datetime.combine(date.fromisoformat(boundary["date"]), time.min, tzinfo=tz)


def parse_event(person: str, raw: dict, tz: ZoneInfo) -> OOOEvent | None:
    """Convert a raw API event to an OOOEvent, or None if it is malformed."""
    try:
        start = _parse_boundary(raw["start"], tz)
        end = _parse_boundary(raw["end"], tz)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.debug("dropping unparseable event %s for %s: %s", raw.get("id"), person, e)
        return None

    event = OOOEvent(person=person, start=start, end=end, summary=raw.get("summary", ""))
    if event.duration <= timedelta(0):
        logger.debug("dropping empty event %s for %s", raw.get("id"), person)
        return None
    return event


def filter_events(person: str, raw_events: list[dict], tz: ZoneInfo, min_duration: timedelta) -> list[OOOEvent]:
    """Parsed events lasting at least min_duration, in provider order."""
    events = []
    for raw in raw_events:
        event = parse_event(person, raw, tz)
        if event is not None and event.duration >= min_duration:
            events.append(event)
    return events


async def collect_ooo(provider, group: str, window: QueryWindow, min_duration: timedelta) -> AggregationResult:
    """Fetch and filter OOO events for every visible member of group.

    A member whose fetch fails for any reason is logged and listed in
    result.failures; the rest are still returned. Returns only after every
    member task finished. Cancellation abandons in-flight requests.
    """
    response = await run_detached(provider.query_freebusy, group, window, name="freebusy")
    members = resolve_members(response, group)
    logger.info("group %s expanded to %d calendars", group, len(members))

    result = AggregationResult()
    lock = asyncio.Lock()

    async def record_failure(calendar_id: str, reason: str) -> None:
        async with lock:
            result.failures[calendar_id] = reason

    async def fetch_member(calendar_id: str) -> None:
        try:
            raw_events = await run_detached(
                provider.list_ooo_events, calendar_id, window, name=f"events-{calendar_id}"
            )
            events = filter_events(calendar_id, raw_events, window.tz, min_duration)
        except ProviderError as e:
            logger.warning("error getting OOO events for %s: %s", calendar_id, e)
            await record_failure(calendar_id, str(e))
            return
        except Exception as e:
            logger.warning("unexpected error getting OOO events for %s", calendar_id, exc_info=True)
            await record_failure(calendar_id, f"{type(e).__name__}: {e}")
            return

        async with lock:
            result.events_by_person[calendar_id] = events

    async with asyncio.TaskGroup() as tg:
        for calendar_id in members:
            tg.create_task(fetch_member(calendar_id))

    return result
