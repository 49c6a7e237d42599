"""Pydantic request/response schemas for the scoring API.

Payloads use camelCase on the wire; Python code uses snake_case attributes.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

IDENTIFIER_PATTERN = r"^[A-Za-z0-9_-]{1,128}$"
COMPETITION_KIND_PATTERN = r"^(competition|playground)$"

Identifier = Annotated[str, StringConstraints(pattern=IDENTIFIER_PATTERN)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScoreRequestPayload(CamelModel):
    submission_path: str | None = None
    ground_truth_path: str | None = None
    competition_id: str | None = None
    competition_type: Literal["competition", "playground"] = "competition"
    scoring_method: str = "accuracy"
    id_column: str = "id"
    target_column: str = "prediction"
    user_id: Identifier | None = None
    user_name: str | None = None
    user_avatar: str | None = None


class ScoreDetailsBody(CamelModel):
    total_rows: int
    matched_rows: int
    correct_predictions: int | None = None


class ScoreData(CamelModel):
    score: float
    valid: bool
    error: str | None = None
    details: ScoreDetailsBody | None = None


class ScoreEnvelope(CamelModel):
    success: bool
    timestamp: str
    data: ScoreData | None = None
    error: str | None = None
    code: str | None = None
    warning: str | None = None


class LeaderboardRow(CamelModel):
    rank: int | None = None
    user_id: str
    user_name: str
    user_avatar: str | None = None
    score: float
    best_score: float
    submissions: int
    last_submission: str


class LeaderboardResponse(CamelModel):
    competition_type: Literal["competition", "playground"]
    competition_id: str
    limit: int
    offset: int = Field(ge=0)
    results: list[LeaderboardRow]


class ValidateSubmissionRequest(CamelModel):
    content: str
    required_columns: list[str] = Field(default_factory=lambda: ["id", "prediction"])
    prediction_type: Literal["numeric", "classification", "text"] = "numeric"


class ValidateSubmissionResponse(CamelModel):
    valid: bool
    errors: list[str]
    row_count: int
    headers: list[str]


class HealthResponse(BaseModel):
    status: Literal["ok"]


class ReadyResponse(BaseModel):
    status: Literal["ok"]
