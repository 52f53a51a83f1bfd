from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends

from drinkwise.config import Settings, get_settings
from drinkwise.db import Database, get_database
from drinkwise.dependencies import ErrorResponse, get_current_user_id, http_error
from drinkwise.models import ErrorCode, User
from drinkwise.schemas import GoogleSignInRequest, TokenResponse, UserRecord
from drinkwise.services.auth import (
    GoogleAuthError,
    issue_token,
    upsert_google_user,
    verify_google_id_token,
)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/google",
    response_model=TokenResponse,
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def google_sign_in(
    body: GoogleSignInRequest,
    settings: Settings = Depends(get_settings),
    database: Database = Depends(get_database),
):
    """Exchange a Google ID token for a DrinkWise bearer token."""
    if not settings.google_client_id:
        raise http_error(503, ErrorCode.SERVICE_UNAVAILABLE, "Google sign-in disabled")
    try:
        identity = await verify_google_id_token(body.token, settings)
    except GoogleAuthError as exc:
        raise http_error(401, ErrorCode.UNAUTHORIZED, str(exc)) from exc

    def _db_call() -> UserRecord:
        with database.session() as db:
            return UserRecord.model_validate(upsert_google_user(db, identity))

    user = await asyncio.to_thread(_db_call)
    return TokenResponse(token=issue_token(user.id, settings), user=user)


@router.get(
    "/me",
    response_model=UserRecord,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def current_user(
    user_id: int = Depends(get_current_user_id),
    database: Database = Depends(get_database),
):
    def _fetch() -> UserRecord | None:
        with database.session() as db:
            user = db.get(User, user_id)
            return UserRecord.model_validate(user) if user else None

    user = await asyncio.to_thread(_fetch)
    if user is None:
        raise http_error(404, ErrorCode.NOT_FOUND, "User not found")
    return user
