from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse

from drinkwise.config import Settings, get_settings
from drinkwise.db import Database, get_database
from drinkwise.dependencies import (
    ErrorResponse,
    get_event_bus,
    http_error,
    rate_limit,
)
from drinkwise.metrics import (
    session_conflicts_total,
    sessions_ended_total,
    sessions_started_total,
)
from drinkwise.models import ErrorCode
from drinkwise.schemas import (
    ChartPoint,
    SessionCreateRequest,
    SessionDetail,
    SessionRecord,
    SessionRenameRequest,
    SessionStatsResponse,
    SessionTransitionRequest,
    SessionWithDrinks,
    session_detail,
    session_with_drinks,
    stats_as_of,
    stats_record,
)
from drinkwise.services import stats as stats_service
from drinkwise.services.drinks import drinks_by_session, list_drinks
from drinkwise.services.session_events import SessionEventBus, session_event_stream
from drinkwise.services.sessions import (
    SessionConflict,
    SessionNotFound,
    create_session,
    delete_session,
    end_session,
    get_active_session,
    get_session,
    list_sessions,
    rename_session,
    resume_session,
)

router = APIRouter(prefix="/sessions", tags=["sessions"])

ERROR_RESPONSES = {
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _not_found() -> Exception:
    return http_error(404, ErrorCode.NOT_FOUND, "Session not found")


@router.get("", response_model=list[SessionWithDrinks], responses=ERROR_RESPONSES)
async def list_sessions_endpoint(
    start: datetime | None = None,
    end: datetime | None = None,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
):
    def _fetch() -> list[SessionWithDrinks]:
        with database.session() as db:
            records = list_sessions(db, user_id=user_id, start=start, end=end)
            grouped = drinks_by_session(
                db, user_id=user_id, session_ids=[r.id for r in records]
            )
            return [session_with_drinks(r, grouped.get(r.id, [])) for r in records]

    return await asyncio.to_thread(_fetch)


@router.post(
    "",
    status_code=201,
    response_model=SessionRecord,
    responses=ERROR_RESPONSES,
)
async def create_session_endpoint(
    body: SessionCreateRequest,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
):
    def _create() -> SessionRecord:
        with database.session() as db:
            record = create_session(db, user_id=user_id, name=body.name)
            return SessionRecord.model_validate(record)

    try:
        created = await asyncio.to_thread(_create)
    except SessionConflict as exc:
        session_conflicts_total.inc()
        raise http_error(409, ErrorCode.CONFLICT, str(exc)) from exc
    sessions_started_total.inc()
    return created


@router.get("/active", response_model=SessionDetail, responses=ERROR_RESPONSES)
async def get_active_session_endpoint(
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
):
    def _fetch() -> SessionDetail | None:
        with database.session() as db:
            record = get_active_session(db, user_id=user_id)
            if record is None:
                return None
            drinks = list_drinks(db, user_id=user_id, session_id=record.id)
            return session_detail(record, drinks, _now())

    detail = await asyncio.to_thread(_fetch)
    if detail is None:
        raise http_error(404, ErrorCode.NOT_FOUND, "No active session")
    return detail


@router.get("/{session_id}", response_model=SessionWithDrinks, responses=ERROR_RESPONSES)
async def get_session_endpoint(
    session_id: int,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
):
    def _fetch() -> SessionWithDrinks:
        with database.session() as db:
            record = get_session(db, user_id=user_id, session_id=session_id)
            drinks = list_drinks(db, user_id=user_id, session_id=session_id)
            return session_with_drinks(record, drinks)

    try:
        return await asyncio.to_thread(_fetch)
    except SessionNotFound as exc:
        raise _not_found() from exc


@router.patch("/{session_id}", response_model=SessionRecord, responses=ERROR_RESPONSES)
async def rename_session_endpoint(
    session_id: int,
    body: SessionRenameRequest,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
    bus: SessionEventBus = Depends(get_event_bus),
):
    def _rename() -> SessionRecord:
        with database.session() as db:
            record = rename_session(
                db, user_id=user_id, session_id=session_id, name=body.name
            )
            return SessionRecord.model_validate(record)

    try:
        renamed = await asyncio.to_thread(_rename)
    except SessionNotFound as exc:
        raise _not_found() from exc
    bus.publish(session_id, "renamed")
    return renamed


async def _apply_transition(
    transition,
    event: str,
    *,
    session_id: int,
    user_id: int,
    body: SessionTransitionRequest | None,
    database: Database,
    bus: SessionEventBus,
) -> SessionRecord:
    expected = body.expected_version if body else None

    def _db_call() -> SessionRecord:
        with database.session() as db:
            record = transition(
                db,
                user_id=user_id,
                session_id=session_id,
                expected_version=expected,
            )
            return SessionRecord.model_validate(record)

    try:
        record = await asyncio.to_thread(_db_call)
    except SessionNotFound as exc:
        raise _not_found() from exc
    except SessionConflict as exc:
        session_conflicts_total.inc()
        raise http_error(409, ErrorCode.CONFLICT, str(exc)) from exc
    bus.publish(session_id, event)
    return record


@router.patch("/{session_id}/end", response_model=SessionRecord, responses=ERROR_RESPONSES)
async def end_session_endpoint(
    session_id: int,
    body: SessionTransitionRequest | None = None,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
    bus: SessionEventBus = Depends(get_event_bus),
):
    record = await _apply_transition(
        end_session,
        "ended",
        session_id=session_id,
        user_id=user_id,
        body=body,
        database=database,
        bus=bus,
    )
    sessions_ended_total.labels(reason="manual").inc()
    return record


@router.patch(
    "/{session_id}/resume", response_model=SessionRecord, responses=ERROR_RESPONSES
)
async def resume_session_endpoint(
    session_id: int,
    body: SessionTransitionRequest | None = None,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
    bus: SessionEventBus = Depends(get_event_bus),
):
    return await _apply_transition(
        resume_session,
        "resumed",
        session_id=session_id,
        user_id=user_id,
        body=body,
        database=database,
        bus=bus,
    )


@router.delete("/{session_id}", status_code=204, responses=ERROR_RESPONSES)
async def delete_session_endpoint(
    session_id: int,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
    bus: SessionEventBus = Depends(get_event_bus),
):
    def _delete() -> None:
        with database.session() as db:
            delete_session(db, user_id=user_id, session_id=session_id)

    try:
        await asyncio.to_thread(_delete)
    except SessionNotFound as exc:
        raise _not_found() from exc
    bus.publish(session_id, "deleted")
    return Response(status_code=204)


@router.get(
    "/{session_id}/stats", response_model=SessionStatsResponse, responses=ERROR_RESPONSES
)
async def session_stats_endpoint(
    session_id: int,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
):
    def _compute() -> SessionStatsResponse:
        with database.session() as db:
            record = get_session(db, user_id=user_id, session_id=session_id)
            drinks = list_drinks(db, user_id=user_id, session_id=session_id)
            as_of = stats_as_of(record, _now())
            start = record.start_time
            return SessionStatsResponse(
                session_id=record.id,
                as_of=as_of,
                stats=stats_record(stats_service.session_stats(drinks, start, as_of)),
                units_rate_progression=stats_service.rate_progression(drinks, start),
                drinks_rate_progression=stats_service.rate_progression(
                    drinks, start, by="drinks"
                ),
                buzz_progression=[
                    ChartPoint(**p) for p in stats_service.buzz_progression(drinks, start)
                ],
                units_progression=[
                    ChartPoint(**p) for p in stats_service.units_progression(drinks, start)
                ],
            )

    try:
        return await asyncio.to_thread(_compute)
    except SessionNotFound as exc:
        raise _not_found() from exc


@router.get("/{session_id}/stream", responses=ERROR_RESPONSES)
async def session_stream_endpoint(
    session_id: int,
    request: Request,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
    bus: SessionEventBus = Depends(get_event_bus),
    settings: Settings = Depends(get_settings),
):
    """Server-sent events carrying a fresh session snapshot on every change."""

    def _snapshot() -> dict | None:
        with database.session() as db:
            try:
                record = get_session(db, user_id=user_id, session_id=session_id)
            except SessionNotFound:
                return None
            drinks = list_drinks(db, user_id=user_id, session_id=session_id)
            return session_detail(record, drinks, _now()).model_dump(mode="json")

    if await asyncio.to_thread(_snapshot) is None:
        raise _not_found()

    async def _load() -> dict | None:
        return await asyncio.to_thread(_snapshot)

    stream = session_event_stream(
        bus,
        session_id,
        _load,
        tick_seconds=settings.stream_tick_seconds,
        is_disconnected=request.is_disconnected,
    )
    return StreamingResponse(
        stream,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
