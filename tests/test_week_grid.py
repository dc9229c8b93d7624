"""Tests for week_grid: presence expansion and weekly text blocks."""

from datetime import date, datetime, timezone

from conftest import BERLIN
from ooo_models import OOOEvent
from week_grid import NO_EVENTS, build_presence_grid, event_dates, format_week, render, week_blocks


def ooo(person, start, end):
    return OOOEvent(person=person, start=start, end=end)


def local(*args):
    return datetime(*args, tzinfo=BERLIN)


class TestEventDates:
    def test_multi_day_all_day_event_excludes_end_date(self):
        event = ooo("ann", local(2026, 10, 20), local(2026, 10, 23))
        assert event_dates(event, BERLIN) == [date(2026, 10, 20), date(2026, 10, 21), date(2026, 10, 22)]

    def test_timed_event_crossing_midnight_marks_both_days(self):
        event = ooo("ann", local(2026, 10, 20, 14), local(2026, 10, 21, 10))
        assert event_dates(event, BERLIN) == [date(2026, 10, 20), date(2026, 10, 21)]

    def test_utc_instants_are_placed_on_local_dates(self):
        # 23:00 UTC on the 19th is already the 20th in Berlin.
        event = ooo(
            "ann",
            datetime(2026, 10, 19, 23, tzinfo=timezone.utc),
            datetime(2026, 10, 20, 22, tzinfo=timezone.utc),
        )
        assert event_dates(event, BERLIN) == [date(2026, 10, 20)]

    def test_multi_day_across_dst_change(self):
        event = ooo("ann", local(2026, 10, 24), local(2026, 10, 26))
        assert event_dates(event, BERLIN) == [date(2026, 10, 24), date(2026, 10, 25)]


class TestWeekBlocks:
    def test_two_members_in_week_one_none_in_week_two(self, window):
        events = {
            "b@example.com": [ooo("b@example.com", local(2026, 10, 20), local(2026, 10, 21))],
            "a@example.com": [ooo("a@example.com", local(2026, 10, 22), local(2026, 10, 23))],
        }

        blocks = week_blocks(build_presence_grid(events, BERLIN), window)

        assert [block.start for block in blocks] == [date(2026, 10, 19), date(2026, 10, 26)]
        assert blocks[0].rows == (
            ("a@example.com", (False, False, False, True, False, False, False)),
            ("b@example.com", (False, True, False, False, False, False, False)),
        )
        assert blocks[1].rows == ()

        text = render(events, window)
        assert "a@example.com" in text[0] and "b@example.com" in text[0]
        assert text[0].index("a@example.com") < text[0].index("b@example.com")
        assert NO_EVENTS in text[1]
        assert NO_EVENTS not in text[0]

    def test_event_spanning_weeks_appears_in_both(self, window):
        events = {"ann": [ooo("ann", local(2026, 10, 24), local(2026, 10, 28))]}

        blocks = week_blocks(build_presence_grid(events, BERLIN), window)

        assert blocks[0].rows == (("ann", (False, False, False, False, False, True, True)),)
        assert blocks[1].rows == (("ann", (True, True, False, False, False, False, False)),)

    def test_person_with_no_events_has_no_row(self, window):
        blocks = week_blocks(build_presence_grid({"ann": []}, BERLIN), window)
        assert all(block.rows == () for block in blocks)


class TestFormatting:
    def test_header_and_markers(self, window):
        events = {"ann@example.com": [ooo("ann@example.com", local(2026, 10, 22), local(2026, 10, 23))]}

        block = render(events, window)[0]

        lines = block.splitlines()
        assert lines[1] == "Oct 19 - Oct 25      | Mon | Tue | Wed | Thu | Fri | Sat | Sun |"
        assert lines[3] == "ann@example.com      |     |     |     | OOO |     |     |     |"

    def test_header_across_months(self, window):
        assert render({}, window)[1].splitlines()[1].startswith("Oct 26 - Nov 1 ")

    def test_long_names_are_truncated(self, window):
        person = "someone.with.a.long.name@example.com"
        events = {person: [ooo(person, local(2026, 10, 20), local(2026, 10, 21))]}

        blocks = week_blocks(build_presence_grid(events, BERLIN), window)
        row = format_week(blocks[0]).splitlines()[3]

        assert row.startswith("someone.with.a.lo... |")

    def test_rendering_is_idempotent(self, window):
        events = {
            "ann": [ooo("ann", local(2026, 10, 20), local(2026, 10, 24))],
            "bob": [ooo("bob", local(2026, 10, 27, 9), local(2026, 10, 29, 17))],
        }
        assert render(events, window) == render(events, window)
