from collections.abc import Iterator
from datetime import datetime, timedelta, timezone

import pytest

from src.careplan.services.planning.parser import PlanInstruction, PlanParser, parse_plan_line

NOW = datetime(2024, 3, 10, 14, 30, 12, 345, tzinfo=timezone.utc)

parser = PlanParser(reminder_hour=9, timezone_name="UTC")


def _gaps(schedule):
    return [later - earlier for earlier, later in zip(schedule, schedule[1:])]


def test_daily_for_seven_days():
    schedule = list(parser.parse(["Take X daily for 7 days"], now=NOW))

    assert len(schedule) == 7
    assert schedule[0] == datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)
    assert all(gap == timedelta(days=1) for gap in _gaps(schedule))
    assert all((ts.hour, ts.minute, ts.second, ts.microsecond) == (9, 0, 0, 0) for ts in schedule)


def test_every_two_days_for_four_days():
    schedule = list(parser.parse(["Take X every 2 days for 4 days"], now=NOW))

    assert len(schedule) == 4
    assert all(gap == timedelta(days=2) for gap in _gaps(schedule))


def test_weekly_uses_seven_day_steps():
    schedule = list(parser.parse(["Apply cream weekly for 3 weeks"], now=NOW))

    assert len(schedule) == 3
    assert all(gap == timedelta(days=7) for gap in _gaps(schedule))


def test_every_two_weeks_multiplies_interval():
    schedule = list(parser.parse(["Check blood pressure every 2 weeks for 3 weeks"], now=NOW))

    assert len(schedule) == 3
    assert all(gap == timedelta(days=14) for gap in _gaps(schedule))


def test_monthly_uses_calendar_months():
    jan_31 = datetime(2024, 1, 31, 8, 0, tzinfo=timezone.utc)
    schedule = list(parser.parse(["Blood test monthly for 3 months"], now=jan_31))

    assert [ts.date().isoformat() for ts in schedule] == ["2024-01-31", "2024-02-29", "2024-03-31"]


def test_gibberish_yields_empty_schedule():
    assert list(parser.parse(["gibberish with no numbers"], now=NOW)) == []


@pytest.mark.parametrize(
    "line",
    [
        "Take X daily",  # no duration
        "Rest for 7 days",  # no frequency
        "Take X daily for 0 days",  # zero duration
        "Take X every 0 days for 3 days",  # zero interval
        "Take X daily for 99999999 days",  # past the representable date range
        "Take X daily for " + "9" * 5000 + " days",  # past the int conversion limit
    ],
)
def test_unusable_lines_produce_nothing(line):
    assert list(parser.parse([line], now=NOW)) == []


def test_lines_are_concatenated_in_order_without_dedup():
    schedule = list(
        parser.parse(
            ["Take X daily for 2 days", "Take Y daily for 2 days", "nothing here", "Take Z weekly for 1 week"],
            now=NOW,
        )
    )

    day0 = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)
    day1 = day0 + timedelta(days=1)
    assert schedule == [day0, day1, day0, day1, day0]


def test_non_text_items_are_skipped():
    schedule = list(parser.parse([None, 42, "Take X daily for 1 day"], now=NOW))  # type: ignore[list-item]
    assert len(schedule) == 1


def test_parse_is_lazy_and_restartable():
    lines = ["Take X daily for 3 days"]
    result = parser.parse(lines, now=NOW)

    assert isinstance(result, Iterator)
    assert list(result) == list(parser.parse(lines, now=NOW))


def test_grammar_is_case_insensitive():
    assert len(list(parser.parse(["TAKE X DAILY FOR 3 DAYS"], now=NOW))) == 3


def test_default_now_comes_from_clock(clock):
    clocked = PlanParser(clock=clock, reminder_hour=9, timezone_name="UTC")
    schedule = list(clocked.parse(["Take X daily for 2 days"]))

    assert schedule[0] == clock.now().replace(hour=9, minute=0, second=0, microsecond=0)


def test_reminder_hour_is_configurable():
    evening = PlanParser(reminder_hour=20, timezone_name="UTC")
    assert all(ts.hour == 20 for ts in evening.parse(["Take X daily for 2 days"], now=NOW))


@pytest.mark.parametrize("hour", [-1, 24, 99])
def test_out_of_range_reminder_hour_is_rejected_up_front(hour):
    with pytest.raises(ValueError, match="REMINDER_HOUR"):
        PlanParser(reminder_hour=hour, timezone_name="UTC")


def test_parse_plan_line_reads_duration_outside_frequency():
    assert parse_plan_line("Take Amoxicillin 500mg twice daily for 7 days") == PlanInstruction(7, "day", 1)
    assert parse_plan_line("every 3 days for 2 weeks") == PlanInstruction(2, "week", 3)
    assert parse_plan_line("Follow up with your doctor for a detailed plan.") is None
