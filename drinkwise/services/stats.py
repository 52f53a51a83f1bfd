"""Derived drinking statistics.

Every function here is pure and total: it accepts any list of drinks
(including an empty one) and never divides by zero. Drinks are any objects
exposing ``timestamp``, ``units`` and ``buzz_level``; sessions expose ``id``
and ``start_time``. Naive datetimes are read as UTC.

Rates divide by whole elapsed hours rounded up with a floor of one, so six
drinks in the first two minutes read as six per hour rather than 180.
"""
from __future__ import annotations

import calendar
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Literal, Mapping, Sequence

SECONDS_PER_HOUR = 3600
DAYS_PER_WEEK = 7

RateBasis = Literal["units", "drinks"]


@dataclass(frozen=True)
class SessionStats:
    total_drinks: int = 0
    total_units: float = 0.0
    time_elapsed: int = 0
    drinks_per_hour: float = 0.0
    units_per_hour: float = 0.0
    current_buzz_level: int = 0
    peak_buzz_level: int = 0
    peak_rate: float = 0.0
    peak_drink_rate: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MonthlyStats:
    year: int
    month: int
    total_sessions: int = 0
    total_drinks: int = 0
    total_units: float = 0.0
    avg_units_per_session: float = 0.0
    avg_units_per_week: float = 0.0
    peak_buzz: int = 0
    peak_units_per_hour: float = 0.0
    peak_drinks_per_hour: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _ordered(drinks: Iterable[Any]) -> list[Any]:
    return sorted(drinks, key=lambda d: ensure_utc(d.timestamp))


def _amount(drinks: Sequence[Any], by: RateBasis) -> float:
    if by == "drinks":
        return float(len(drinks))
    return float(sum(d.units for d in drinks))


def hours_since(start: datetime, moment: datetime) -> int:
    seconds = (ensure_utc(moment) - ensure_utc(start)).total_seconds()
    return max(1, math.ceil(seconds / SECONDS_PER_HOUR))


def current_buzz_level(drinks: Sequence[Any]) -> int:
    ordered = _ordered(drinks)
    return ordered[-1].buzz_level if ordered else 0


def peak_buzz_level(drinks: Iterable[Any]) -> int:
    return max((d.buzz_level for d in drinks), default=0)


def total_units(drinks: Iterable[Any]) -> float:
    return float(sum(d.units for d in drinks))


def rate(
    drinks: Sequence[Any],
    session_start: datetime,
    as_of: datetime,
    *,
    by: RateBasis = "units",
) -> float:
    """Units (or drinks) logged up to ``as_of`` per elapsed hour."""
    cutoff = ensure_utc(as_of)
    logged = [d for d in drinks if ensure_utc(d.timestamp) <= cutoff]
    if not logged:
        return 0.0
    return _amount(logged, by) / hours_since(session_start, cutoff)


def rate_progression(
    drinks: Sequence[Any],
    session_start: datetime,
    *,
    by: RateBasis = "units",
) -> list[float]:
    """The cumulative rate evaluated at each drink, in chronological order."""
    ordered = _ordered(drinks)
    return [
        _amount(ordered[: i + 1], by) / hours_since(session_start, drink.timestamp)
        for i, drink in enumerate(ordered)
    ]


def peak_rate(
    drinks: Sequence[Any],
    session_start: datetime,
    *,
    by: RateBasis = "units",
) -> float:
    return max(rate_progression(drinks, session_start, by=by), default=0.0)


def session_stats(
    drinks: Sequence[Any],
    session_start: datetime,
    as_of: datetime,
) -> SessionStats:
    if not drinks:
        return SessionStats()
    elapsed = (ensure_utc(as_of) - ensure_utc(session_start)).total_seconds()
    return SessionStats(
        total_drinks=len(drinks),
        total_units=total_units(drinks),
        time_elapsed=max(0, int(elapsed)),
        drinks_per_hour=rate(drinks, session_start, as_of, by="drinks"),
        units_per_hour=rate(drinks, session_start, as_of, by="units"),
        current_buzz_level=current_buzz_level(drinks),
        peak_buzz_level=peak_buzz_level(drinks),
        peak_rate=peak_rate(drinks, session_start, by="units"),
        peak_drink_rate=peak_rate(drinks, session_start, by="drinks"),
    )


def buzz_progression(drinks: Sequence[Any], session_start: datetime) -> list[dict[str, float]]:
    start = ensure_utc(session_start)
    return [
        {"time": int((ensure_utc(d.timestamp) - start).total_seconds()), "value": d.buzz_level}
        for d in _ordered(drinks)
    ]


def units_progression(drinks: Sequence[Any], session_start: datetime) -> list[dict[str, float]]:
    start = ensure_utc(session_start)
    running = 0.0
    points = []
    for drink in _ordered(drinks):
        running += drink.units
        points.append(
            {"time": int((ensure_utc(drink.timestamp) - start).total_seconds()), "value": running}
        )
    return points


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """First instant of the month and the last day at 23:59:59, in UTC."""
    last_day = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    end = datetime(year, month, last_day, 23, 59, 59, tzinfo=timezone.utc)
    return start, end


def days_in_calculation(year: int, month: int, now: datetime) -> int:
    now = ensure_utc(now)
    if (now.year, now.month) == (year, month):
        return now.day
    return calendar.monthrange(year, month)[1]


def monthly_aggregate(
    sessions: Iterable[Any],
    drinks_by_session: Mapping[Any, Sequence[Any]],
    year: int,
    month: int,
    now: datetime,
) -> MonthlyStats:
    """Aggregate every session started in the month that has drinks.

    Sessions without drinks are left out of every figure, including
    ``total_sessions``.
    """
    start, end = month_bounds(year, month)
    included = [
        s
        for s in sessions
        if start <= ensure_utc(s.start_time) <= end and drinks_by_session.get(s.id)
    ]
    if not included:
        return MonthlyStats(year=year, month=month)

    all_drinks = [d for s in included for d in drinks_by_session[s.id]]
    units = total_units(all_drinks)
    weeks = math.ceil(days_in_calculation(year, month, now) / DAYS_PER_WEEK)
    return MonthlyStats(
        year=year,
        month=month,
        total_sessions=len(included),
        total_drinks=len(all_drinks),
        total_units=units,
        avg_units_per_session=units / len(included),
        avg_units_per_week=units / weeks if weeks > 0 else 0.0,
        peak_buzz=peak_buzz_level(all_drinks),
        peak_units_per_hour=max(
            peak_rate(drinks_by_session[s.id], s.start_time, by="units") for s in included
        ),
        peak_drinks_per_hour=max(
            peak_rate(drinks_by_session[s.id], s.start_time, by="drinks") for s in included
        ),
    )
