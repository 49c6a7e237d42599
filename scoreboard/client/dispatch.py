"""Caller-side client for the scoring endpoint.

Only transport-level failures are retried. A response that carries a verdict
(``success: false`` or ``valid: false``) is deterministic and surfaces at once.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

import httpx

from scoreboard.errors import DispatchError, ScoringRejectedError
from scoreboard.services.metrics import ScoreDetails, ScoreResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_TIMEOUT_SECONDS = 10.0
SCORE_PATH = "/v1/score"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    SCORED = "scored"
    UNSCORED = "unscored"
    ERROR = "error"


@dataclass(slots=True)
class SubmissionRecord:
    submission_id: str
    status: SubmissionStatus = SubmissionStatus.PENDING
    score: float | None = None
    error: str | None = None


class _RetryableResponse(Exception):
    pass


def _result_from_data(data: Any) -> ScoreResult:
    if not isinstance(data, dict):
        raise _RetryableResponse("Malformed envelope: data is not an object")
    valid = bool(data.get("valid", False))
    raw_score = data.get("score")
    details = data.get("details")
    if (valid and raw_score is None) or (details is not None and not isinstance(details, dict)):
        raise _RetryableResponse("Malformed envelope: incomplete score data")
    try:
        score = float(raw_score) if raw_score is not None else 0.0
        parsed_details = (
            ScoreDetails(
                total_rows=int(details.get("totalRows", 0)),
                matched_rows=int(details.get("matchedRows", 0)),
                correct_predictions=details.get("correctPredictions"),
            )
            if details
            else None
        )
    except (TypeError, ValueError) as exc:
        raise _RetryableResponse(f"Malformed envelope: {exc}") from exc
    return ScoreResult(score=score, valid=valid, error=data.get("error"), details=parsed_details)


class DispatchClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
            headers=headers,
        )
        self._timeout = timeout_seconds
        self._sleep = sleep

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DispatchClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _attempt(self, payload: dict[str, Any]) -> ScoreResult:
        response = await self._client.post(SCORE_PATH, json=payload)
        if response.status_code >= 500:
            raise _RetryableResponse(f"HTTP {response.status_code}")
        try:
            envelope = response.json()
        except ValueError as exc:
            raise _RetryableResponse(
                f"HTTP {response.status_code} with unreadable body"
            ) from exc

        if not isinstance(envelope, dict):
            raise _RetryableResponse(f"HTTP {response.status_code} with malformed envelope")
        if not envelope.get("success"):
            raise ScoringRejectedError(envelope.get("error") or f"HTTP {response.status_code}")

        result = _result_from_data(envelope.get("data") or {})
        if not result.valid:
            raise ScoringRejectedError(result.error or "Submission could not be scored", result)
        if envelope.get("warning"):
            logger.warning("Scoring service warning: %s", envelope["warning"])
        return result

    async def call_with_retry(
        self, payload: dict[str, Any], max_attempts: int = DEFAULT_MAX_ATTEMPTS
    ) -> ScoreResult:
        last_error: Exception | None = None
        for attempt in range(max_attempts):
            try:
                # httpx times each phase separately; this bounds the whole attempt.
                return await asyncio.wait_for(self._attempt(payload), self._timeout)
            except asyncio.TimeoutError:
                last_error = _RetryableResponse(f"no response within {self._timeout}s")
                logger.warning(
                    "Scoring attempt %d/%d timed out", attempt + 1, max_attempts
                )
            except (httpx.TransportError, _RetryableResponse) as exc:
                last_error = exc
                logger.warning(
                    "Scoring attempt %d/%d failed: %s", attempt + 1, max_attempts, exc
                )
            if attempt + 1 < max_attempts:
                await self._sleep(2**attempt)

        raise DispatchError(
            f"Scoring failed after {max_attempts} attempts: {last_error}",
            attempts=max_attempts,
        ) from last_error

    async def score_submission(
        self,
        record: SubmissionRecord,
        payload: dict[str, Any],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> SubmissionRecord:
        """Score a pending submission and move it to its final status.

        A record that already left ``pending`` is returned as is, so repeating
        the call never scores the same submission twice.
        """
        if record.status is not SubmissionStatus.PENDING:
            return record

        try:
            result = await self.call_with_retry(payload, max_attempts=max_attempts)
        except ScoringRejectedError as exc:
            record.status = SubmissionStatus.UNSCORED if exc.result is not None else SubmissionStatus.ERROR
            record.error = exc.message
            return record
        except DispatchError as exc:
            record.status = SubmissionStatus.ERROR
            record.error = str(exc)
            return record

        record.status = SubmissionStatus.SCORED
        record.score = result.score
        return record
