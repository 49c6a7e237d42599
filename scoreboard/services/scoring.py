"""Scoring orchestration: validate a request, load both tables, apply the metric."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal

from scoreboard.errors import InvalidArgumentError, UpstreamFetchError
from scoreboard.services.csv_table import Table, parse_csv
from scoreboard.services.metrics import DEFAULT_METRIC, ScoreResult, score_tables
from scoreboard.services.sources import TableSource

logger = logging.getLogger(__name__)

CompetitionKind = Literal["competition", "playground"]


@dataclass(slots=True, frozen=True)
class ScoreRequest:
    submission_location: str | None
    ground_truth_location: str | None
    competition_id: str | None
    competition_kind: CompetitionKind = "competition"
    metric: str = DEFAULT_METRIC
    id_column: str = "id"
    target_column: str = "prediction"
    user_id: str | None = None
    user_name: str | None = None
    user_avatar: str | None = None


def _require(request: ScoreRequest) -> None:
    missing = [
        name
        for name, value in (
            ("submissionPath", request.submission_location),
            ("groundTruthPath", request.ground_truth_location),
            ("competitionId", request.competition_id),
        )
        if not value or not value.strip()
    ]
    if missing:
        raise InvalidArgumentError(f"Missing required parameters: {', '.join(missing)}")


def _missing_columns(table: Table, *columns: str) -> list[str]:
    return [column for column in columns if column not in table.headers]


class ScoringOrchestrator:
    def __init__(self, source: TableSource):
        self.source = source

    async def _load(self, location: str, label: str) -> Table:
        try:
            text = await self.source.read_text(location)
        except Exception as exc:
            raise UpstreamFetchError(f"Failed to load {label} file: {exc}") from exc
        return parse_csv(text)

    async def _load_both(self, request: ScoreRequest) -> tuple[Table, Table]:
        tasks = [
            asyncio.create_task(self._load(request.submission_location, "submission")),
            asyncio.create_task(self._load(request.ground_truth_location, "ground truth")),
        ]
        try:
            submission, ground_truth = await asyncio.gather(*tasks)
        except BaseException:
            # The first failure cancels the other load instead of leaving it running.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return submission, ground_truth

    async def score(self, request: ScoreRequest) -> ScoreResult:
        _require(request)

        submission, ground_truth = await self._load_both(request)
        logger.info(
            "Scoring %s/%s with %s: submission rows=%d, ground truth rows=%d",
            request.competition_kind,
            request.competition_id,
            request.metric,
            submission.row_count,
            ground_truth.row_count,
        )

        id_col = request.id_column.lower()
        target_col = request.target_column.lower()
        # Advisory only: competitions with nonstandard column names still score.
        for label, table in (("submission", submission), ("ground truth", ground_truth)):
            missing = _missing_columns(table, id_col, target_col)
            if missing:
                logger.warning(
                    "Column(s) %s not found in %s headers %s; scoring anyway",
                    ", ".join(missing),
                    label,
                    table.headers,
                )

        result = score_tables(
            submission,
            ground_truth,
            metric=request.metric,
            id_column=request.id_column,
            target_column=request.target_column,
        )
        if not result.valid:
            logger.info(
                "Submission for %s/%s produced no score: %s",
                request.competition_kind,
                request.competition_id,
                result.error,
            )
        return result
