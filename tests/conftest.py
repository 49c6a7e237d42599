from __future__ import annotations

import os
import uuid

import pytest
from fastapi.testclient import TestClient

from scoreboard.config import Settings
from scoreboard.main import create_app

GROUND_TRUTH = "id,prediction\n1,1\n2,0\n3,1\n"


@pytest.fixture(scope="session")
def redis_url() -> str:
    return os.getenv("REDIS_URL", "redis://localhost:6379/0")


@pytest.fixture()
def write_csv(tmp_path):
    def _write(name: str, text: str) -> str:
        (tmp_path / name).write_text(text, encoding="utf-8")
        return name

    return _write


@pytest.fixture()
def settings(tmp_path, redis_url: str) -> Settings:
    return Settings(redis_url=redis_url, leaderboard_backend="memory", data_root=str(tmp_path))


@pytest.fixture()
def client(settings: Settings, write_csv):
    app = create_app(settings)
    competition_id = f"comp_{uuid.uuid4().hex[:12]}"
    write_csv("truth.csv", GROUND_TRUTH)

    with TestClient(app) as test_client:
        yield test_client, write_csv, competition_id
