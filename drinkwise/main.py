from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from drinkwise import __version__
from drinkwise.config import get_settings
from drinkwise.controllers import api
from drinkwise.db import Database, init_db
from drinkwise.logger import setup_logging
from drinkwise.metrics import sessions_ended_total
from drinkwise.models import ErrorCode
from drinkwise.services.inactivity import close_inactive_sessions
from drinkwise.services.session_events import SessionEventBus

settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


def _sweep_idle(database: Database, idle: timedelta) -> list[int]:
    with database.session() as db:
        return close_inactive_sessions(db, idle=idle)


async def _inactivity_loop(app: FastAPI) -> None:
    """End sessions without a drink for ``inactivity_hours``."""
    idle = timedelta(hours=settings.inactivity_hours)
    while True:
        await asyncio.sleep(settings.inactivity_check_seconds)
        try:
            closed = await asyncio.to_thread(_sweep_idle, app.state.db, idle)
        except Exception:
            logger.exception("Inactivity sweep failed")
            continue
        for session_id in closed:
            sessions_ended_total.labels(reason="inactivity").inc()
            app.state.events.publish(session_id, "ended")


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.db = await asyncio.to_thread(init_db, settings)
    app.state.redis = redis.from_url(
        settings.redis_url, encoding="utf-8", decode_responses=True
    )
    app.state.events = SessionEventBus()
    sweeper = None
    if settings.inactivity_check_seconds > 0:
        sweeper = asyncio.create_task(_inactivity_loop(app))
    logger.info("DrinkWise API ready on port %s", settings.port)
    yield
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    await app.state.redis.aclose()
    app.state.db.dispose()


app = FastAPI(
    title="DrinkWise API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if isinstance(detail, dict):
        body = {"error": detail.get("message"), "code": detail.get("code")}
    else:
        body = {"error": str(detail)}
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "code": ErrorCode.BAD_REQUEST.value},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Something went wrong!", "code": ErrorCode.INTERNAL_ERROR.value},
    )


@app.get("/health")
async def health():
    return {"status": "ok"}


app.include_router(api.router)

# 👇 metrics endpoint
Instrumentator().instrument(app).expose(app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
