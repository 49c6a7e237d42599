"""Keyed compare-and-swap storage contract for leaderboard entries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol


@dataclass(slots=True, frozen=True)
class EntryKey:
    competition_kind: str
    competition_id: str
    user_id: str


@dataclass(slots=True)
class LeaderboardEntry:
    user_id: str
    user_name: str
    user_avatar: str | None
    score: float
    best_score: float
    submissions: int
    last_submission: str


class EntryStore(Protocol):
    """Versioned record store.

    ``get`` returns the current entry and its version (0 when absent).
    ``compare_and_swap`` writes only if the stored version still equals
    ``expected_version`` and reports whether the write happened.
    ``update`` applies ``apply(current)`` and stores its result atomically
    for that key, returning the stored entry.
    """

    async def get(self, key: EntryKey) -> tuple[LeaderboardEntry | None, int]: ...

    async def compare_and_swap(
        self, key: EntryKey, expected_version: int, entry: LeaderboardEntry
    ) -> bool: ...

    async def update(
        self,
        key: EntryKey,
        apply: Callable[[LeaderboardEntry | None], LeaderboardEntry],
    ) -> LeaderboardEntry: ...

    async def list_entries(
        self, competition_kind: str, competition_id: str, limit: int, offset: int
    ) -> list[LeaderboardEntry]: ...

    async def ping(self) -> bool: ...
