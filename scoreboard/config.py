"""Runtime settings read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

from scoreboard.storage.redis import get_redis_url

DEFAULT_BACKEND = "redis"
DEFAULT_DATA_ROOT = "."
DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024
DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0
DEFAULT_CORS_ORIGIN = "*"
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(slots=True, frozen=True)
class Settings:
    redis_url: str
    leaderboard_backend: str = DEFAULT_BACKEND
    data_root: str = DEFAULT_DATA_ROOT
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    cors_origin: str = DEFAULT_CORS_ORIGIN
    log_level: str = DEFAULT_LOG_LEVEL


def get_leaderboard_backend() -> str:
    backend = os.getenv("LEADERBOARD_BACKEND", DEFAULT_BACKEND).strip().lower()
    if backend not in {"redis", "memory"}:
        raise ValueError(f"Unsupported LEADERBOARD_BACKEND: {backend!r}")
    return backend


def load_settings() -> Settings:
    return Settings(
        redis_url=get_redis_url(),
        leaderboard_backend=get_leaderboard_backend(),
        data_root=os.getenv("SCOREBOARD_DATA_ROOT", DEFAULT_DATA_ROOT),
        max_file_bytes=int(os.getenv("SCOREBOARD_MAX_FILE_BYTES", str(DEFAULT_MAX_FILE_BYTES))),
        fetch_timeout_seconds=float(
            os.getenv("SCOREBOARD_FETCH_TIMEOUT", str(DEFAULT_FETCH_TIMEOUT_SECONDS))
        ),
        cors_origin=os.getenv("SCOREBOARD_CORS_ORIGIN", DEFAULT_CORS_ORIGIN),
        log_level=os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
    )
