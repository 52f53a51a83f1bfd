"""Read models behind the dashboard, history and session summary screens."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from drinkwise.db import Database, get_database
from drinkwise.dependencies import ErrorResponse, http_error, rate_limit
from drinkwise.models import ErrorCode
from drinkwise.schemas import (
    ChartPoint,
    MonthlyStatsRecord,
    SessionDetail,
    SessionSummary,
    session_detail,
    stats_as_of,
)
from drinkwise.services import stats as stats_service
from drinkwise.services.drinks import drinks_by_session, list_drinks
from drinkwise.services.sessions import (
    SessionNotFound,
    get_active_session,
    get_session,
    list_sessions,
)

router = APIRouter(tags=["views"])


class DashboardResponse(BaseModel):
    active_session: SessionDetail | None = None
    monthly: MonthlyStatsRecord


class HistoryResponse(BaseModel):
    month: str
    stats: MonthlyStatsRecord
    sessions: list[SessionDetail]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_month(raw: str | None, now: datetime) -> tuple[int, int]:
    if raw is None:
        return now.year, now.month
    year_part, _, month_part = raw.partition("-")
    year, month = int(year_part), int(month_part)
    if year < 1 or not 1 <= month <= 12:
        raise ValueError(raw)
    return year, month


def _month_view(db, user_id: int, year: int, month: int, now: datetime):
    start, end = stats_service.month_bounds(year, month)
    records = list_sessions(db, user_id=user_id, start=start, end=end)
    grouped = drinks_by_session(db, user_id=user_id, session_ids=[r.id for r in records])
    monthly = stats_service.monthly_aggregate(records, grouped, year, month, now)
    return records, grouped, MonthlyStatsRecord(**monthly.as_dict())


@router.get("/dashboard", response_model=DashboardResponse, responses={401: {"model": ErrorResponse}})
async def dashboard(
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
):
    now = _now()

    def _build() -> DashboardResponse:
        with database.session() as db:
            active = get_active_session(db, user_id=user_id)
            active_detail = None
            if active is not None:
                drinks = list_drinks(db, user_id=user_id, session_id=active.id)
                active_detail = session_detail(active, drinks, now)
            _, _, monthly = _month_view(db, user_id, now.year, now.month, now)
            return DashboardResponse(active_session=active_detail, monthly=monthly)

    return await asyncio.to_thread(_build)


@router.get(
    "/history",
    response_model=HistoryResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def history(
    month: str | None = Query(None, pattern=r"^\d{4}-\d{2}$"),
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
):
    """Sessions with drinks started in ``month`` (``YYYY-MM``), newest first."""
    now = _now()
    try:
        year, month_number = _parse_month(month, now)
    except ValueError as exc:
        raise http_error(400, ErrorCode.BAD_REQUEST, "Invalid month") from exc

    def _build() -> HistoryResponse:
        with database.session() as db:
            records, grouped, monthly = _month_view(db, user_id, year, month_number, now)
            sessions = [
                session_detail(r, grouped[r.id], now) for r in records if grouped.get(r.id)
            ]
        return HistoryResponse(
            month=f"{year:04d}-{month_number:02d}",
            stats=monthly,
            sessions=sessions,
        )

    return await asyncio.to_thread(_build)


@router.get(
    "/sessions/{session_id}/summary",
    response_model=SessionSummary,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def session_summary(
    session_id: int,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
):
    now = _now()

    def _build() -> SessionSummary:
        with database.session() as db:
            record = get_session(db, user_id=user_id, session_id=session_id)
            drinks = list_drinks(db, user_id=user_id, session_id=session_id)
            detail = session_detail(record, drinks, now)
            as_of = stats_as_of(record, now)
            duration = stats_service.ensure_utc(as_of) - stats_service.ensure_utc(
                record.start_time
            )
            return SessionSummary(
                **detail.model_dump(),
                duration_seconds=max(0, int(duration.total_seconds())),
                buzz_progression=[
                    ChartPoint(**p)
                    for p in stats_service.buzz_progression(drinks, record.start_time)
                ],
                units_progression=[
                    ChartPoint(**p)
                    for p in stats_service.units_progression(drinks, record.start_time)
                ],
            )

    try:
        return await asyncio.to_thread(_build)
    except SessionNotFound as exc:
        raise http_error(404, ErrorCode.NOT_FOUND, "Session not found") from exc
