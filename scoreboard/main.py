"""FastAPI application wiring for routes, error handlers, and lifespan."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from scoreboard.api.errors import APIError
from scoreboard.api.routes import cors_headers, router, utc_timestamp
from scoreboard.config import Settings, load_settings
from scoreboard.logging_config import setup_logging
from scoreboard.models.schemas import ScoreEnvelope
from scoreboard.services.leaderboard import LeaderboardService
from scoreboard.services.scoring import ScoringOrchestrator
from scoreboard.services.sources import HttpOrFileSource
from scoreboard.storage.memory import InMemoryEntryStore
from scoreboard.storage.redis import RedisEntryStore, create_redis_client

logger = logging.getLogger(__name__)


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    payload = ScoreEnvelope(success=False, timestamp=utc_timestamp(), error=message, code=code)
    merged_headers = dict(headers or {})
    merged_headers.update(cors_headers(request.app.state.settings.cors_origin))
    return JSONResponse(
        status_code=status_code,
        content=payload.model_dump(by_alias=True, exclude_none=True),
        headers=merged_headers,
    )


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    redis_client = None
    if settings.leaderboard_backend == "redis":
        redis_client = create_redis_client(settings.redis_url)
        store = RedisEntryStore(redis_client)
    else:
        store = InMemoryEntryStore()

    http_client = httpx.AsyncClient(timeout=settings.fetch_timeout_seconds)
    source = HttpOrFileSource(settings.data_root, http_client, settings.max_file_bytes)
    app.state.orchestrator = ScoringOrchestrator(source)
    app.state.leaderboard_service = LeaderboardService(store)
    logger.info("Scoreboard started with %s leaderboard store", settings.leaderboard_backend)
    try:
        yield
    finally:
        await http_client.aclose()
        if redis_client is not None:
            await redis_client.aclose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    app = FastAPI(title="Scoreboard API", version="1.0.0", lifespan=app_lifespan)
    app.state.settings = settings

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
        return error_response(request, exc.status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(
            request,
            400,
            "VALIDATION_ERROR",
            f"Request validation failed: {exc.errors()}",
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(
            request,
            exc.status_code,
            "HTTP_ERROR",
            str(exc.detail),
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(request, 500, "INTERNAL", "Internal server error")

    app.include_router(router)
    return app


app = create_app()
