"""Domain exceptions shared by the scoring engine, its HTTP layer and its client."""

from __future__ import annotations

from typing import Any


class ScoreboardError(Exception):
    """Base class for every error raised by the engine."""


class InvalidArgumentError(ScoreboardError):
    """Raised when a scoring request is missing a required field."""


class UpstreamFetchError(ScoreboardError):
    """Raised when a submission or ground-truth file cannot be fetched or read."""


class LeaderboardMergeError(ScoreboardError):
    """Raised when a computed score could not be merged into the leaderboard."""


class EntryNotFoundError(ScoreboardError):
    """Raised when a user has no leaderboard entry for a competition."""


class DispatchError(ScoreboardError):
    """Raised when every attempt to reach the scoring service failed."""

    def __init__(self, message: str, attempts: int):
        self.attempts = attempts
        super().__init__(message)


class ScoringRejectedError(ScoreboardError):
    """Raised when the scoring service answered but produced no usable score."""

    def __init__(self, message: str, result: Any | None = None):
        self.message = message
        self.result = result
        super().__init__(message)
