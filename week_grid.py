"""Render OOO events as one text grid per week."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from ooo_models import OOOEvent, QueryWindow

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
NAME_WIDTH = 20
RULE = "-" * 64
NO_EVENTS = "No OOO Events"


@dataclass(frozen=True)
class WeekBlock:
    start: date
    rows: tuple[tuple[str, tuple[bool, ...]], ...]

    @property
    def end(self) -> date:
        return self.start + timedelta(days=6)


def event_dates(event: OOOEvent, tz: ZoneInfo) -> list[date]:
    """Local dates overlapping [start, end); an end at midnight is exclusive."""
    start = event.start.astimezone(tz)
    end = event.end.astimezone(tz)
    dates = []
    day = start.date()
    while datetime.combine(day, time.min, tzinfo=tz) < end:
        dates.append(day)
        day += timedelta(days=1)
    return dates


def build_presence_grid(events_by_person: dict[str, list[OOOEvent]], tz: ZoneInfo) -> dict[date, set[str]]:
    grid: dict[date, set[str]] = {}
    for person, events in events_by_person.items():
        for event in events:
            for day in event_dates(event, tz):
                grid.setdefault(day, set()).add(person)
    return grid


def week_blocks(grid: dict[date, set[str]], window: QueryWindow) -> list[WeekBlock]:
    blocks = []
    for monday in window.mondays():
        days = [monday + timedelta(days=i) for i in range(7)]
        people = sorted(set().union(*(grid.get(day, set()) for day in days)))
        rows = tuple(
            (person, tuple(person in grid.get(day, set()) for day in days))
            for person in people
        )
        blocks.append(WeekBlock(start=monday, rows=rows))
    return blocks


def _display_name(person: str) -> str:
    if len(person) > NAME_WIDTH:
        return person[:NAME_WIDTH - 3] + "..."
    return person


def format_week(block: WeekBlock) -> str:
    label = f"{block.start:%b} {block.start.day} - {block.end:%b} {block.end.day}"
    lines = [
        "",
        f"{label:<{NAME_WIDTH}} | " + " | ".join(WEEKDAYS) + " |",
        RULE,
    ]
    if not block.rows:
        lines.append(NO_EVENTS)
    for person, presence in block.rows:
        cells = "".join(" OOO |" if present else "     |" for present in presence)
        lines.append(f"{_display_name(person):<{NAME_WIDTH}} |{cells}")
    lines.append(RULE)
    return "\n".join(lines)


def render(events_by_person: dict[str, list[OOOEvent]], window: QueryWindow) -> list[str]:
    """One formatted text block per week of the window."""
    grid = build_presence_grid(events_by_person, window.tz)
    return [format_week(block) for block in week_blocks(grid, window)]
