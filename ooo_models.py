"""Data types passed between the aggregator, the renderer and the CLI."""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class QueryWindow:
    """Week-aligned query range in a single timezone.

    start is Monday 00:00 and end is Sunday 23:59:59, both local to tz.
    """

    start: datetime
    end: datetime
    tz: ZoneInfo

    @classmethod
    def weeks_ahead(cls, now: datetime, weeks: int, tz: ZoneInfo) -> "QueryWindow":
        """Current week plus `weeks` full weeks after it."""
        today = now.astimezone(tz).date()
        monday = today - timedelta(days=today.weekday())
        last_monday = monday + timedelta(weeks=weeks)
        sunday = last_monday + timedelta(days=6)
        return cls(
            start=datetime.combine(monday, time.min, tzinfo=tz),
            end=datetime.combine(sunday, time(23, 59, 59), tzinfo=tz),
            tz=tz,
        )

    @property
    def timezone_name(self) -> str:
        return self.tz.key

    def mondays(self) -> list[date]:
        """First day of every week the window covers."""
        first = self.start.date() - timedelta(days=self.start.weekday())
        weeks = []
        current = first
        while current <= self.end.date():
            weeks.append(current)
            current += timedelta(weeks=1)
        return weeks


@dataclass(frozen=True)
class OOOEvent:
    person: str
    start: datetime
    end: datetime
    summary: str = ""

    @property
    def duration(self) -> timedelta:
        # Aware datetimes sharing a tzinfo subtract as wall time, so compare in UTC.
        return self.end.astimezone(timezone.utc) - self.start.astimezone(timezone.utc)


@dataclass
class AggregationResult:
    """Filtered OOO events per member plus the members whose fetch failed."""

    events_by_person: dict[str, list[OOOEvent]] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)
