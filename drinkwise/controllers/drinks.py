from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, Response

from drinkwise.db import Database, get_database
from drinkwise.dependencies import ErrorResponse, get_event_bus, http_error, rate_limit
from drinkwise.metrics import drinks_logged_total
from drinkwise.models import ErrorCode
from drinkwise.schemas import DrinkCreateRequest, DrinkRecord, DrinkUpdateRequest
from drinkwise.services.drinks import (
    DrinkNotFound,
    SessionInactive,
    add_drink,
    delete_drink,
    list_drinks,
    update_drink,
)
from drinkwise.services.session_events import SessionEventBus
from drinkwise.services.sessions import SessionNotFound
from drinkwise.services.validation import InvalidDrinkValue

router = APIRouter(prefix="/drinks", tags=["drinks"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.get(
    "/session/{session_id}",
    response_model=list[DrinkRecord],
    responses=ERROR_RESPONSES,
)
async def list_session_drinks(
    session_id: int,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
):
    def _fetch() -> list[DrinkRecord]:
        with database.session() as db:
            drinks = list_drinks(db, user_id=user_id, session_id=session_id)
            return [DrinkRecord.model_validate(d) for d in drinks]

    return await asyncio.to_thread(_fetch)


@router.post("", status_code=201, response_model=DrinkRecord, responses=ERROR_RESPONSES)
async def create_drink(
    body: DrinkCreateRequest,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
    bus: SessionEventBus = Depends(get_event_bus),
):
    def _create() -> DrinkRecord:
        with database.session() as db:
            drink = add_drink(
                db,
                user_id=user_id,
                session_id=body.session_id,
                units=body.units,
                buzz_level=body.buzz_level,
                drink_name=body.drink_name,
                notes=body.notes,
            )
            return DrinkRecord.model_validate(drink)

    try:
        drink = await asyncio.to_thread(_create)
    except SessionNotFound as exc:
        raise http_error(404, ErrorCode.NOT_FOUND, "Session not found") from exc
    except SessionInactive as exc:
        raise http_error(409, ErrorCode.CONFLICT, "Session is not active") from exc
    except InvalidDrinkValue as exc:
        raise http_error(400, ErrorCode.BAD_REQUEST, str(exc)) from exc
    drinks_logged_total.inc()
    bus.publish(drink.session_id, "drink_added")
    return drink


@router.patch("/{drink_id}", response_model=DrinkRecord, responses=ERROR_RESPONSES)
async def patch_drink(
    drink_id: int,
    body: DrinkUpdateRequest,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
    bus: SessionEventBus = Depends(get_event_bus),
):
    def _update() -> DrinkRecord:
        with database.session() as db:
            drink = update_drink(
                db,
                user_id=user_id,
                drink_id=drink_id,
                units=body.units,
                buzz_level=body.buzz_level,
                drink_name=body.drink_name,
            )
            return DrinkRecord.model_validate(drink)

    try:
        drink = await asyncio.to_thread(_update)
    except DrinkNotFound as exc:
        raise http_error(404, ErrorCode.NOT_FOUND, "Drink not found") from exc
    except InvalidDrinkValue as exc:
        raise http_error(400, ErrorCode.BAD_REQUEST, str(exc)) from exc
    bus.publish(drink.session_id, "drink_updated")
    return drink


@router.delete("/{drink_id}", status_code=204, responses=ERROR_RESPONSES)
async def remove_drink(
    drink_id: int,
    user_id: int = Depends(rate_limit),
    database: Database = Depends(get_database),
    bus: SessionEventBus = Depends(get_event_bus),
):
    def _delete() -> int:
        with database.session() as db:
            return delete_drink(db, user_id=user_id, drink_id=drink_id)

    try:
        session_id = await asyncio.to_thread(_delete)
    except DrinkNotFound as exc:
        raise http_error(404, ErrorCode.NOT_FOUND, "Drink not found") from exc
    bus.publish(session_id, "drink_deleted")
    return Response(status_code=204)
