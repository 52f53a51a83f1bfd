from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from drinkwise.services import stats

T0 = datetime(2025, 3, 14, 20, 0, tzinfo=timezone.utc)


@dataclass
class D:
    timestamp: datetime
    units: float
    buzz_level: int


@dataclass
class S:
    id: int
    start_time: datetime


def at(minutes: float) -> datetime:
    return T0 + timedelta(minutes=minutes)


def test_scenario_two_drinks_over_seventy_minutes():
    drinks = [D(at(10), 1, 2), D(at(70), 2, 5)]

    assert stats.total_units(drinks) == 3
    assert stats.hours_since(T0, at(70)) == 2
    assert stats.rate(drinks, T0, at(70)) == pytest.approx(1.5)
    assert stats.peak_buzz_level(drinks) == 5
    assert stats.current_buzz_level(drinks) == 5


def test_empty_list_reports_zero():
    assert stats.current_buzz_level([]) == 0
    assert stats.peak_buzz_level([]) == 0
    assert stats.rate([], T0, at(30)) == 0
    assert stats.peak_rate([], T0) == 0
    assert stats.rate_progression([], T0) == []
    assert stats.session_stats([], T0, at(90)) == stats.SessionStats()


def test_early_burst_divides_by_one_hour():
    drinks = [D(at(i * 0.3), 1, 1) for i in range(6)]

    assert stats.rate(drinks, T0, at(2), by="drinks") == 6
    assert stats.peak_rate(drinks, T0, by="drinks") == 6


def test_rate_ignores_drinks_after_as_of():
    drinks = [D(at(10), 1, 2), D(at(130), 4, 6)]

    assert stats.rate(drinks, T0, at(60)) == 1


def test_rate_progression_is_per_drink_rate_so_far():
    drinks = [D(at(10), 1, 2), D(at(70), 2, 5), D(at(200), 1, 4)]

    assert stats.rate_progression(drinks, T0) == pytest.approx([1.0, 1.5, 1.0])
    assert stats.rate_progression(drinks, T0, by="drinks") == pytest.approx(
        [1.0, 1.0, 0.75]
    )


@pytest.mark.parametrize(
    "minutes",
    [
        [5, 20, 45, 61, 180, 181],
        [1, 2, 3],
        [59, 119, 179, 239],
        [300],
    ],
)
def test_peak_rate_not_below_final_rate(minutes):
    drinks = [D(at(m), 1.5, 3) for m in minutes]
    final = stats.rate(drinks, T0, drinks[-1].timestamp)

    assert stats.peak_rate(drinks, T0) >= final


def test_peak_rate_keeps_historical_maximum():
    drinks = [D(at(5), 3, 4), D(at(15), 3, 6), D(at(250), 1, 3)]

    assert stats.peak_rate(drinks, T0) == 6
    assert stats.rate(drinks, T0, at(250)) == pytest.approx(7 / 5)


def test_session_stats_fields():
    drinks = [D(at(10), 1, 2), D(at(70), 2, 5)]

    result = stats.session_stats(drinks, T0, at(70))

    assert result.total_drinks == 2
    assert result.total_units == 3
    assert result.time_elapsed == 70 * 60
    assert result.units_per_hour == pytest.approx(1.5)
    assert result.drinks_per_hour == pytest.approx(1.0)
    assert result.current_buzz_level == 5
    assert result.peak_buzz_level == 5
    assert result.peak_rate == pytest.approx(1.5)
    assert result.peak_drink_rate == pytest.approx(1.0)


def test_current_buzz_uses_most_recent_drink():
    drinks = [D(at(70), 2, 3), D(at(10), 1, 8)]

    assert stats.current_buzz_level(drinks) == 3
    assert stats.peak_buzz_level(drinks) == 8


def test_naive_timestamps_are_utc():
    naive_start = T0.replace(tzinfo=None)
    drinks = [D(at(10).replace(tzinfo=None), 1, 2), D(at(70), 2, 5)]

    assert stats.rate(drinks, naive_start, at(70)) == pytest.approx(1.5)


def test_progressions():
    drinks = [D(at(10), 1, 2), D(at(70), 2.5, 5)]

    assert stats.buzz_progression(drinks, T0) == [
        {"time": 600, "value": 2},
        {"time": 4200, "value": 5},
    ]
    assert stats.units_progression(drinks, T0) == [
        {"time": 600, "value": 1.0},
        {"time": 4200, "value": 3.5},
    ]


def test_month_bounds():
    start, end = stats.month_bounds(2024, 2)

    assert start == datetime(2024, 2, 1, tzinfo=timezone.utc)
    assert end == datetime(2024, 2, 29, 23, 59, 59, tzinfo=timezone.utc)


def test_monthly_aggregate_excludes_sessions_without_drinks():
    s1 = S(1, datetime(2025, 3, 2, 19, 0, tzinfo=timezone.utc))
    s2 = S(2, datetime(2025, 3, 9, 19, 0, tzinfo=timezone.utc))
    s1_drinks = [
        D(s1.start_time + timedelta(minutes=10), 2, 3),
        D(s1.start_time + timedelta(minutes=40), 4, 7),
    ]
    now = datetime(2025, 4, 10, tzinfo=timezone.utc)

    result = stats.monthly_aggregate([s1, s2], {1: s1_drinks, 2: []}, 2025, 3, now)

    assert result.total_sessions == 1
    assert result.total_drinks == 2
    assert result.total_units == 6
    assert result.avg_units_per_session == 6
    assert result.peak_buzz == 7
    assert result.peak_units_per_hour == 6
    assert result.peak_drinks_per_hour == 2
    # March has 31 days -> 5 weeks
    assert result.avg_units_per_week == pytest.approx(6 / 5)


def test_monthly_aggregate_filters_by_start_time():
    inside = S(1, datetime(2025, 3, 31, 23, 59, 59, tzinfo=timezone.utc))
    outside = S(2, datetime(2025, 4, 1, 0, 0, 0, tzinfo=timezone.utc))
    drinks = {
        1: [D(inside.start_time + timedelta(minutes=1), 1, 1)],
        2: [D(outside.start_time + timedelta(minutes=1), 5, 9)],
    }
    now = datetime(2025, 5, 1, tzinfo=timezone.utc)

    result = stats.monthly_aggregate([inside, outside], drinks, 2025, 3, now)

    assert result.total_sessions == 1
    assert result.total_units == 1
    assert result.peak_buzz == 1


def test_monthly_average_per_week_uses_elapsed_days_in_current_month():
    session = S(1, datetime(2025, 3, 2, 19, 0, tzinfo=timezone.utc))
    drinks = {1: [D(session.start_time + timedelta(minutes=5), 9, 4)]}
    now = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

    result = stats.monthly_aggregate([session], drinks, 2025, 3, now)

    # ten days elapsed -> two weeks
    assert result.avg_units_per_week == pytest.approx(4.5)


def test_monthly_aggregate_empty():
    result = stats.monthly_aggregate([], {}, 2025, 3, T0)

    assert result == stats.MonthlyStats(year=2025, month=3)
    assert result.as_dict()["total_units"] == 0
