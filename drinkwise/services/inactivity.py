from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from drinkwise.models import Drink, DrinkSession
from drinkwise.services.sessions import SessionConflict, SessionNotFound, end_session
from drinkwise.services.stats import ensure_utc

logger = logging.getLogger(__name__)

DEFAULT_IDLE = timedelta(hours=3)


def find_idle_sessions(
    db: Session, *, now: datetime, idle: timedelta = DEFAULT_IDLE
) -> list[tuple[int, int, int]]:
    """Return ``(session_id, user_id, version)`` for active sessions idle ``idle`` or longer.

    Last activity is the newest drink timestamp. Sessions without drinks are
    never idle; they stay open until ended by hand.
    """
    last_drink = (
        db.query(Drink.session_id, func.max(Drink.timestamp).label("last_ts"))
        .group_by(Drink.session_id)
        .subquery()
    )
    rows = (
        db.query(
            DrinkSession.id,
            DrinkSession.user_id,
            DrinkSession.version,
            last_drink.c.last_ts,
        )
        .join(last_drink, last_drink.c.session_id == DrinkSession.id)
        .filter(DrinkSession.is_active.is_(True))
        .all()
    )
    cutoff = ensure_utc(now) - idle
    idle_sessions = []
    for session_id, user_id, version, last_ts in rows:
        if ensure_utc(last_ts) <= cutoff:
            idle_sessions.append((session_id, user_id, version))
    return idle_sessions


def close_inactive_sessions(
    db: Session,
    *,
    now: datetime | None = None,
    idle: timedelta = DEFAULT_IDLE,
    dry_run: bool = False,
) -> list[int]:
    """End idle sessions and return their ids.

    Each close is version-guarded, so a session ended or resumed by its owner
    in the meantime is skipped instead of overwritten.
    """
    moment = now or datetime.now(timezone.utc)
    closed: list[int] = []
    for session_id, user_id, version in find_idle_sessions(db, now=moment, idle=idle):
        if dry_run:
            closed.append(session_id)
            continue
        try:
            end_session(
                db,
                user_id=user_id,
                session_id=session_id,
                expected_version=version,
                now=moment,
            )
        except (SessionConflict, SessionNotFound):
            logger.info("Session %s changed before auto-close, skipped", session_id)
            continue
        closed.append(session_id)
    if closed and not dry_run:
        logger.info("Auto-closed %d inactive sessions", len(closed))
    return closed
