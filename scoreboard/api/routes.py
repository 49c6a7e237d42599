"""HTTP route handlers for scoring, leaderboard reads, and service health checks."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Path, Query, Request, Response

from scoreboard.api.errors import APIError
from scoreboard.config import Settings
from scoreboard.errors import (
    EntryNotFoundError,
    InvalidArgumentError,
    LeaderboardMergeError,
    UpstreamFetchError,
)
from scoreboard.models.schemas import (
    COMPETITION_KIND_PATTERN,
    IDENTIFIER_PATTERN,
    HealthResponse,
    LeaderboardResponse,
    LeaderboardRow,
    ReadyResponse,
    ScoreData,
    ScoreDetailsBody,
    ScoreEnvelope,
    ScoreRequestPayload,
    ValidateSubmissionRequest,
    ValidateSubmissionResponse,
)
from scoreboard.services.csv_table import validate_submission
from scoreboard.services.leaderboard import LeaderboardService
from scoreboard.services.metrics import ScoreResult
from scoreboard.services.scoring import ScoreRequest, ScoringOrchestrator
from scoreboard.storage.base import LeaderboardEntry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


def get_service(request: Request) -> LeaderboardService:
    return request.app.state.leaderboard_service


def get_orchestrator(request: Request) -> ScoringOrchestrator:
    return request.app.state.orchestrator


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def cors_headers(origin: str) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    }


def to_score_data(result: ScoreResult) -> ScoreData:
    details = None
    if result.details is not None:
        details = ScoreDetailsBody(
            total_rows=result.details.total_rows,
            matched_rows=result.details.matched_rows,
            correct_predictions=result.details.correct_predictions,
        )
    return ScoreData(score=result.score, valid=result.valid, error=result.error, details=details)


def to_row(entry: LeaderboardEntry, rank: int | None = None) -> LeaderboardRow:
    return LeaderboardRow(
        rank=rank,
        user_id=entry.user_id,
        user_name=entry.user_name,
        user_avatar=entry.user_avatar,
        score=entry.score,
        best_score=entry.best_score,
        submissions=entry.submissions,
        last_submission=entry.last_submission,
    )


@router.options("/score", status_code=204, include_in_schema=False)
async def score_preflight(settings: Settings = Depends(get_settings)) -> Response:
    return Response(status_code=204, headers=cors_headers(settings.cors_origin))


@router.post("/score", response_model=ScoreEnvelope, response_model_exclude_none=True)
async def score_submission(
    payload: ScoreRequestPayload,
    response: Response,
    orchestrator: ScoringOrchestrator = Depends(get_orchestrator),
    service: LeaderboardService = Depends(get_service),
    settings: Settings = Depends(get_settings),
) -> ScoreEnvelope:
    request = ScoreRequest(
        submission_location=payload.submission_path,
        ground_truth_location=payload.ground_truth_path,
        competition_id=payload.competition_id,
        competition_kind=payload.competition_type,
        metric=payload.scoring_method,
        id_column=payload.id_column,
        target_column=payload.target_column,
        user_id=payload.user_id,
        user_name=payload.user_name,
        user_avatar=payload.user_avatar,
    )
    try:
        result = await orchestrator.score(request)
    except InvalidArgumentError as exc:
        raise APIError(code="INVALID_ARGUMENT", message=str(exc), status_code=400) from exc
    except UpstreamFetchError as exc:
        logger.error("Scoring %s failed: %s", request.competition_id, exc)
        raise APIError(code="INTERNAL", message=str(exc), status_code=500) from exc

    warning = None
    # Merge runs once per completed evaluation, so client retries never double count.
    if result.valid and request.user_id:
        try:
            await service.merge(
                competition_kind=request.competition_kind,
                competition_id=request.competition_id,
                user_id=request.user_id,
                new_score=result.score,
                user_name=request.user_name,
                user_avatar=request.user_avatar,
            )
        except LeaderboardMergeError as exc:
            logger.warning("Score kept but leaderboard not updated: %s", exc)
            warning = str(exc)

    response.headers.update(cors_headers(settings.cors_origin))
    return ScoreEnvelope(
        success=True,
        timestamp=utc_timestamp(),
        data=to_score_data(result),
        warning=warning,
    )


@router.post("/submissions/validate", response_model=ValidateSubmissionResponse)
async def validate_submission_file(
    payload: ValidateSubmissionRequest,
    settings: Settings = Depends(get_settings),
) -> ValidateSubmissionResponse:
    report = validate_submission(
        payload.content,
        required_columns=payload.required_columns,
        prediction_type=payload.prediction_type,
        max_bytes=settings.max_file_bytes,
    )
    return ValidateSubmissionResponse(
        valid=report.valid,
        errors=report.errors,
        row_count=report.row_count,
        headers=report.headers,
    )


@router.get(
    "/leaderboards/{competition_type}/{competition_id}",
    response_model=LeaderboardResponse,
)
async def get_leaderboard(
    competition_type: str = Path(pattern=COMPETITION_KIND_PATTERN),
    competition_id: str = Path(pattern=IDENTIFIER_PATTERN),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    service: LeaderboardService = Depends(get_service),
) -> LeaderboardResponse:
    ranked = await service.get_leaderboard(competition_type, competition_id, limit, offset)
    return LeaderboardResponse(
        competition_type=competition_type,
        competition_id=competition_id,
        limit=limit,
        offset=offset,
        results=[to_row(r.entry, rank=r.rank) for r in ranked],
    )


@router.get(
    "/leaderboards/{competition_type}/{competition_id}/users/{user_id}",
    response_model=LeaderboardRow,
)
async def get_leaderboard_entry(
    competition_type: str = Path(pattern=COMPETITION_KIND_PATTERN),
    competition_id: str = Path(pattern=IDENTIFIER_PATTERN),
    user_id: str = Path(pattern=IDENTIFIER_PATTERN),
    service: LeaderboardService = Depends(get_service),
) -> LeaderboardRow:
    try:
        entry = await service.get_entry(competition_type, competition_id, user_id)
    except EntryNotFoundError as exc:
        raise APIError(
            code="ENTRY_NOT_FOUND",
            message="User has no leaderboard entry for this competition",
            status_code=404,
        ) from exc
    return to_row(entry)


# These probes are intended for infrastructure and do not need to appear in API docs.
@router.get("/healthz", response_model=HealthResponse, include_in_schema=False)
async def healthz() -> HealthResponse:
    return HealthResponse(status="ok")


@router.get("/readyz", response_model=ReadyResponse, include_in_schema=False)
async def readyz(service: LeaderboardService = Depends(get_service)) -> ReadyResponse:
    try:
        # Readiness verifies the leaderboard store, not just process liveness.
        is_ready = await service.ping()
    except Exception as exc:
        raise APIError(
            code="STORE_UNAVAILABLE",
            message="Leaderboard store readiness check failed",
            status_code=503,
        ) from exc

    if not is_ready:
        raise APIError(
            code="STORE_UNAVAILABLE",
            message="Leaderboard store readiness check failed",
            status_code=503,
        )
    return ReadyResponse(status="ok")
