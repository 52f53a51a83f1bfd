from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from drinkwise.models import Drink, DrinkSession

logger = logging.getLogger(__name__)

DEFAULT_SESSION_NAME = "Session"


class SessionNotFound(LookupError):
    """Session is absent or owned by another user."""


class SessionConflict(Exception):
    """State transition lost against a concurrent change or is not allowed."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_session(db: Session, *, user_id: int, session_id: int) -> DrinkSession:
    record = (
        db.query(DrinkSession)
        .filter(DrinkSession.id == session_id, DrinkSession.user_id == user_id)
        .one_or_none()
    )
    if record is None:
        raise SessionNotFound(session_id)
    return record


def get_active_session(db: Session, *, user_id: int) -> DrinkSession | None:
    return (
        db.query(DrinkSession)
        .filter(DrinkSession.user_id == user_id, DrinkSession.is_active.is_(True))
        .order_by(DrinkSession.start_time.desc())
        .first()
    )


def list_sessions(
    db: Session,
    *,
    user_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[DrinkSession]:
    """Owner's sessions, newest first, optionally limited to a start_time range."""
    query = db.query(DrinkSession).filter(DrinkSession.user_id == user_id)
    if start is not None:
        query = query.filter(DrinkSession.start_time >= start)
    if end is not None:
        query = query.filter(DrinkSession.start_time <= end)
    return list(query.order_by(DrinkSession.start_time.desc()).all())


def create_session(
    db: Session,
    *,
    user_id: int,
    name: str | None = None,
    now: datetime | None = None,
) -> DrinkSession:
    if get_active_session(db, user_id=user_id) is not None:
        raise SessionConflict("An active session already exists")
    started = now or _now()
    record = DrinkSession(
        user_id=user_id,
        name=(name or "").strip() or DEFAULT_SESSION_NAME,
        start_time=started,
        is_active=True,
        version=1,
        created_at=started,
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise SessionConflict("An active session already exists") from exc
    db.refresh(record)
    logger.info("Session %s started by user %s", record.id, user_id)
    return record


def rename_session(db: Session, *, user_id: int, session_id: int, name: str) -> DrinkSession:
    record = get_session(db, user_id=user_id, session_id=session_id)
    record.name = name.strip() or DEFAULT_SESSION_NAME
    db.commit()
    db.refresh(record)
    return record


def _transition(
    db: Session,
    *,
    user_id: int,
    session_id: int,
    activate: bool,
    expected_version: int | None,
    now: datetime,
) -> DrinkSession:
    """Flip ``is_active`` with a single version-guarded UPDATE."""
    record = get_session(db, user_id=user_id, session_id=session_id)
    if record.is_active == activate:
        state = "active" if activate else "ended"
        raise SessionConflict(f"Session is already {state}")
    if activate:
        other = get_active_session(db, user_id=user_id)
        if other is not None and other.id != record.id:
            raise SessionConflict("An active session already exists")

    version = record.version if expected_version is None else expected_version
    try:
        result = db.execute(
            update(DrinkSession)
            .where(
                DrinkSession.id == session_id,
                DrinkSession.user_id == user_id,
                DrinkSession.version == version,
                DrinkSession.is_active.is_(not activate),
            )
            .values(
                is_active=activate,
                end_time=None if activate else now,
                version=DrinkSession.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
    except IntegrityError as exc:
        db.rollback()
        raise SessionConflict("An active session already exists") from exc
    if result.rowcount != 1:
        db.rollback()
        raise SessionConflict("Session was modified concurrently")
    db.commit()
    db.refresh(record)
    return record


def end_session(
    db: Session,
    *,
    user_id: int,
    session_id: int,
    expected_version: int | None = None,
    now: datetime | None = None,
) -> DrinkSession:
    record = _transition(
        db,
        user_id=user_id,
        session_id=session_id,
        activate=False,
        expected_version=expected_version,
        now=now or _now(),
    )
    logger.info("Session %s ended", session_id)
    return record


def resume_session(
    db: Session,
    *,
    user_id: int,
    session_id: int,
    expected_version: int | None = None,
) -> DrinkSession:
    record = _transition(
        db,
        user_id=user_id,
        session_id=session_id,
        activate=True,
        expected_version=expected_version,
        now=_now(),
    )
    logger.info("Session %s resumed", session_id)
    return record


def delete_session(db: Session, *, user_id: int, session_id: int) -> int:
    """Delete the session's drinks, then the session row, in one transaction.

    Returns the number of drinks removed.
    """
    get_session(db, user_id=user_id, session_id=session_id)
    removed = (
        db.query(Drink)
        .filter(Drink.session_id == session_id)
        .delete(synchronize_session=False)
    )
    db.query(DrinkSession).filter(
        DrinkSession.id == session_id, DrinkSession.user_id == user_id
    ).delete(synchronize_session=False)
    db.commit()
    logger.info("Session %s deleted with %d drinks", session_id, removed)
    return removed
