"""Request and response bodies shared by the API routers."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from drinkwise.services import stats as stats_service


class UserRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str | None = None
    picture: str | None = None
    created_at: datetime | None = None


class DrinkRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: int
    user_id: int
    units: float
    buzz_level: int
    drink_name: str
    notes: str | None = None
    timestamp: datetime
    created_at: datetime


class SessionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    start_time: datetime
    end_time: datetime | None = None
    is_active: bool
    version: int
    created_at: datetime


class SessionStatsRecord(BaseModel):
    total_drinks: int
    total_units: float
    time_elapsed: int
    drinks_per_hour: float
    units_per_hour: float
    current_buzz_level: int
    peak_buzz_level: int
    peak_rate: float
    peak_drink_rate: float


class SessionWithDrinks(SessionRecord):
    drinks: list[DrinkRecord] = Field(default_factory=list)


class SessionDetail(SessionWithDrinks):
    stats: SessionStatsRecord


class ChartPoint(BaseModel):
    time: int
    value: float


class SessionStatsResponse(BaseModel):
    session_id: int
    as_of: datetime
    stats: SessionStatsRecord
    units_rate_progression: list[float]
    drinks_rate_progression: list[float]
    buzz_progression: list[ChartPoint]
    units_progression: list[ChartPoint]


class SessionSummary(SessionDetail):
    duration_seconds: int
    buzz_progression: list[ChartPoint]
    units_progression: list[ChartPoint]


class MonthlyStatsRecord(BaseModel):
    year: int
    month: int
    total_sessions: int
    total_drinks: int
    total_units: float
    avg_units_per_session: float
    avg_units_per_week: float
    peak_buzz: int
    peak_units_per_hour: float
    peak_drinks_per_hour: float


class SessionCreateRequest(BaseModel):
    name: str | None = Field(None, max_length=255)


class SessionRenameRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class SessionTransitionRequest(BaseModel):
    expected_version: int | None = Field(
        None,
        validation_alias=AliasChoices("expected_version", "expectedVersion"),
    )


class DrinkCreateRequest(BaseModel):
    session_id: int = Field(validation_alias=AliasChoices("sessionId", "session_id"))
    units: float = Field(allow_inf_nan=False)
    buzz_level: float = Field(
        allow_inf_nan=False,
        validation_alias=AliasChoices("buzzLevel", "buzz_level"),
    )
    drink_name: str | None = Field(
        None,
        max_length=255,
        validation_alias=AliasChoices("drinkName", "drink_name"),
    )
    notes: str | None = None


class DrinkUpdateRequest(BaseModel):
    units: float | None = Field(None, allow_inf_nan=False)
    buzz_level: float | None = Field(
        None,
        allow_inf_nan=False,
        validation_alias=AliasChoices("buzzLevel", "buzz_level"),
    )
    drink_name: str | None = Field(
        None,
        max_length=255,
        validation_alias=AliasChoices("drinkName", "drink_name"),
    )


class GoogleSignInRequest(BaseModel):
    token: str = Field(min_length=1)


class TokenResponse(BaseModel):
    token: str
    user: UserRecord


def stats_record(value: stats_service.SessionStats) -> SessionStatsRecord:
    return SessionStatsRecord(**value.as_dict())


def stats_as_of(record: Any, now: datetime) -> datetime:
    """Closed sessions are measured at their end, active ones at ``now``."""
    if not record.is_active and record.end_time is not None:
        return record.end_time
    return now


def session_detail(record: Any, drinks: Sequence[Any], now: datetime) -> SessionDetail:
    computed = stats_service.session_stats(drinks, record.start_time, stats_as_of(record, now))
    return SessionDetail(
        **SessionRecord.model_validate(record).model_dump(),
        drinks=[DrinkRecord.model_validate(d) for d in drinks],
        stats=stats_record(computed),
    )


def session_with_drinks(record: Any, drinks: Iterable[Any]) -> SessionWithDrinks:
    return SessionWithDrinks(
        **SessionRecord.model_validate(record).model_dump(),
        drinks=[DrinkRecord.model_validate(d) for d in drinks],
    )
