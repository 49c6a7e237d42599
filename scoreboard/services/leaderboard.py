"""Best-score leaderboard aggregation over a compare-and-swap entry store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from scoreboard.errors import EntryNotFoundError, LeaderboardMergeError
from scoreboard.storage.base import EntryKey, EntryStore, LeaderboardEntry

DEFAULT_USER_NAME = "Anonymous"


@dataclass(slots=True)
class RankedEntry:
    rank: int
    entry: LeaderboardEntry


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def merged_entry(
    current: LeaderboardEntry | None,
    user_id: str,
    new_score: float,
    user_name: str,
    user_avatar: str | None,
    timestamp: str,
) -> LeaderboardEntry:
    current_score = current.score if current else 0.0
    current_submissions = current.submissions if current else 0
    should_update_best = new_score > current_score
    best = new_score if should_update_best else current_score
    return LeaderboardEntry(
        user_id=user_id,
        user_name=user_name,
        user_avatar=user_avatar,
        score=best,
        best_score=best,
        submissions=current_submissions + 1,
        last_submission=timestamp,
    )


class LeaderboardService:
    def __init__(
        self,
        store: EntryStore,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self.store = store
        self.clock = clock

    async def merge(
        self,
        competition_kind: str,
        competition_id: str,
        user_id: str,
        new_score: float,
        user_name: str | None = None,
        user_avatar: str | None = None,
    ) -> LeaderboardEntry:
        key = EntryKey(competition_kind, competition_id, user_id)
        name = user_name or DEFAULT_USER_NAME

        try:
            return await self.store.update(
                key,
                lambda current: merged_entry(
                    current, user_id, new_score, name, user_avatar, self.clock()
                ),
            )
        except Exception as exc:
            raise LeaderboardMergeError(f"Leaderboard update failed for {user_id}: {exc}") from exc

    async def get_leaderboard(
        self, competition_kind: str, competition_id: str, limit: int, offset: int
    ) -> list[RankedEntry]:
        entries = await self.store.list_entries(competition_kind, competition_id, limit, offset)
        return [
            RankedEntry(rank=index, entry=entry)
            for index, entry in enumerate(entries, start=offset + 1)
        ]

    async def get_entry(
        self, competition_kind: str, competition_id: str, user_id: str
    ) -> LeaderboardEntry:
        entry, _ = await self.store.get(EntryKey(competition_kind, competition_id, user_id))
        if entry is None:
            raise EntryNotFoundError(user_id)
        return entry

    async def ping(self) -> bool:
        return await self.store.ping()
