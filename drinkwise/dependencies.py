from __future__ import annotations

import logging

import redis.asyncio as redis
from fastapi import Depends, Header, HTTPException, Request
from pydantic import BaseModel
from redis.exceptions import RedisError

from drinkwise.config import Settings, get_settings
from drinkwise.models import ErrorCode
from drinkwise.services.auth import TokenError, TokenExpired, decode_token
from drinkwise.services.session_events import SessionEventBus

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    code: str
    message: str


def http_error(status_code: int, code: ErrorCode, message: str) -> HTTPException:
    err = ErrorResponse(code=code, message=message)
    return HTTPException(status_code=status_code, detail=err.model_dump())


def get_redis(request: Request) -> redis.Redis:
    return request.app.state.redis


async def get_current_user_id(
    authorization: str | None = Header(None),
    settings: Settings = Depends(get_settings),
) -> int:
    """Resolve ``Authorization: Bearer <jwt>`` to a user id or fail with 401."""
    if not authorization:
        raise http_error(401, ErrorCode.UNAUTHORIZED, "No authorization header")
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise http_error(401, ErrorCode.UNAUTHORIZED, "No token provided")
    try:
        return decode_token(token, settings)
    except TokenExpired as exc:
        raise http_error(401, ErrorCode.UNAUTHORIZED, "Expired token") from exc
    except TokenError as exc:
        raise http_error(401, ErrorCode.UNAUTHORIZED, "Invalid token") from exc


async def rate_limit(
    user_id: int = Depends(get_current_user_id),
    redis_client: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> int:
    """Throttle authenticated requests per user via Redis."""
    user_key = f"rate:user:{user_id}"
    try:
        pipe = redis_client.pipeline()
        pipe.incr(user_key)
        pipe.expire(user_key, 60)
        user_count, _ = await pipe.execute()
    except RedisError as exc:
        logger.exception("Redis unavailable for rate limiting: %s", exc)
        raise http_error(
            503, ErrorCode.SERVICE_UNAVAILABLE, "Rate limiter unavailable"
        ) from exc
    if user_count > settings.rate_limit_per_minute:
        raise http_error(429, ErrorCode.TOO_MANY_REQUESTS, "Rate limit exceeded")
    return user_id


def get_event_bus(request: Request) -> SessionEventBus:
    return request.app.state.events
