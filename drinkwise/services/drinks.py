from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy.orm import Session

from drinkwise.models import DEFAULT_DRINK_NAME, Drink
from drinkwise.services.sessions import get_session
from drinkwise.services.validation import clamp_buzz_level, validate_units

logger = logging.getLogger(__name__)


class DrinkNotFound(LookupError):
    pass


class SessionInactive(Exception):
    """Drinks can only be logged into an active session."""


def _drink_name(value: str | None) -> str:
    return (value or "").strip() or DEFAULT_DRINK_NAME


def add_drink(
    db: Session,
    *,
    user_id: int,
    session_id: int,
    units: float,
    buzz_level: float,
    drink_name: str | None = None,
    notes: str | None = None,
    timestamp: datetime | None = None,
) -> Drink:
    session = get_session(db, user_id=user_id, session_id=session_id)
    if not session.is_active:
        raise SessionInactive(session_id)
    logged_at = timestamp or datetime.now(timezone.utc)
    drink = Drink(
        session_id=session.id,
        user_id=user_id,
        units=validate_units(units),
        buzz_level=clamp_buzz_level(buzz_level),
        drink_name=_drink_name(drink_name),
        notes=notes,
        timestamp=logged_at,
        created_at=logged_at,
    )
    db.add(drink)
    db.commit()
    db.refresh(drink)
    logger.info("Drink %s logged in session %s", drink.id, session_id)
    return drink


def get_drink(db: Session, *, user_id: int, drink_id: int) -> Drink:
    drink = (
        db.query(Drink)
        .filter(Drink.id == drink_id, Drink.user_id == user_id)
        .one_or_none()
    )
    if drink is None:
        raise DrinkNotFound(drink_id)
    return drink


def list_drinks(db: Session, *, user_id: int, session_id: int) -> list[Drink]:
    return list(
        db.query(Drink)
        .filter(Drink.session_id == session_id, Drink.user_id == user_id)
        .order_by(Drink.timestamp.asc(), Drink.id.asc())
        .all()
    )


def drinks_by_session(
    db: Session, *, user_id: int, session_ids: Iterable[int]
) -> dict[int, list[Drink]]:
    ids = list(session_ids)
    grouped: dict[int, list[Drink]] = defaultdict(list)
    if not ids:
        return {}
    rows = (
        db.query(Drink)
        .filter(Drink.session_id.in_(ids), Drink.user_id == user_id)
        .order_by(Drink.timestamp.asc(), Drink.id.asc())
        .all()
    )
    for drink in rows:
        grouped[drink.session_id].append(drink)
    return dict(grouped)


def update_drink(
    db: Session,
    *,
    user_id: int,
    drink_id: int,
    units: float | None = None,
    buzz_level: float | None = None,
    drink_name: str | None = None,
) -> Drink:
    drink = get_drink(db, user_id=user_id, drink_id=drink_id)
    if units is not None:
        drink.units = validate_units(units)
    if buzz_level is not None:
        drink.buzz_level = clamp_buzz_level(buzz_level)
    if drink_name is not None:
        drink.drink_name = _drink_name(drink_name)
    db.commit()
    db.refresh(drink)
    return drink


def delete_drink(db: Session, *, user_id: int, drink_id: int) -> int:
    """Delete one drink and return its session id."""
    drink = get_drink(db, user_id=user_id, drink_id=drink_id)
    session_id = drink.session_id
    db.delete(drink)
    db.commit()
    return session_id
