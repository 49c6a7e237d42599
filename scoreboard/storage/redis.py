"""Redis client creation and the Redis-backed leaderboard entry store."""

from __future__ import annotations

import os
from typing import Callable

from redis.asyncio import Redis
from redis.exceptions import WatchError

from scoreboard.storage.base import EntryKey, LeaderboardEntry

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


def get_redis_url() -> str:
    return os.getenv("REDIS_URL", DEFAULT_REDIS_URL)


def create_redis_client(redis_url: str | None = None) -> Redis:
    return Redis.from_url(redis_url or get_redis_url(), decode_responses=True)


def board_key(competition_kind: str, competition_id: str) -> str:
    return f"lb:{competition_kind}:{competition_id}"


def entry_key(key: EntryKey) -> str:
    return f"{board_key(key.competition_kind, key.competition_id)}:user:{key.user_id}"


def _to_hash(entry: LeaderboardEntry, version: int) -> dict[str, str]:
    return {
        "user_id": entry.user_id,
        "user_name": entry.user_name,
        "user_avatar": entry.user_avatar or "",
        "score": repr(entry.score),
        "best_score": repr(entry.best_score),
        "submissions": str(entry.submissions),
        "last_submission": entry.last_submission,
        "version": str(version),
    }


def _from_hash(data: dict[str, str]) -> LeaderboardEntry:
    return LeaderboardEntry(
        user_id=data["user_id"],
        user_name=data.get("user_name", ""),
        user_avatar=data.get("user_avatar") or None,
        score=float(data["score"]),
        best_score=float(data.get("best_score", data["score"])),
        submissions=int(data["submissions"]),
        last_submission=data.get("last_submission", ""),
    )


class RedisEntryStore:
    """One hash per entry carrying a ``version`` field, plus a sorted set per board.

    Writes use WATCH/MULTI/EXEC so a concurrent writer on the same entry aborts
    the transaction instead of overwriting it.
    """

    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    async def get(self, key: EntryKey) -> tuple[LeaderboardEntry | None, int]:
        data = await self.redis.hgetall(entry_key(key))
        if not data:
            return None, 0
        return _from_hash(data), int(data.get("version", 0))

    async def compare_and_swap(
        self, key: EntryKey, expected_version: int, entry: LeaderboardEntry
    ) -> bool:
        record_key = entry_key(key)
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(record_key)
                stored = await pipe.hget(record_key, "version")
                current_version = int(stored) if stored is not None else 0
                if current_version != expected_version:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.hset(record_key, mapping=_to_hash(entry, current_version + 1))
                pipe.zadd(board_key(key.competition_kind, key.competition_id), {key.user_id: entry.score})
                await pipe.execute()
            except WatchError:
                return False
        return True

    async def update(
        self,
        key: EntryKey,
        apply: Callable[[LeaderboardEntry | None], LeaderboardEntry],
    ) -> LeaderboardEntry:
        record_key = entry_key(key)
        async with self.redis.pipeline(transaction=True) as pipe:
            # An aborted EXEC means another writer committed first; re-read and retry.
            while True:
                try:
                    await pipe.watch(record_key)
                    data = await pipe.hgetall(record_key)
                    current = _from_hash(data) if data else None
                    version = int(data.get("version", 0)) if data else 0
                    entry = apply(current)
                    pipe.multi()
                    pipe.hset(record_key, mapping=_to_hash(entry, version + 1))
                    pipe.zadd(board_key(key.competition_kind, key.competition_id), {key.user_id: entry.score})
                    await pipe.execute()
                    return entry
                except WatchError:
                    continue

    async def list_entries(
        self, competition_kind: str, competition_id: str, limit: int, offset: int
    ) -> list[LeaderboardEntry]:
        user_ids = await self.redis.zrevrange(
            board_key(competition_kind, competition_id), offset, offset + limit - 1
        )
        if not user_ids:
            return []
        async with self.redis.pipeline(transaction=False) as pipe:
            for user_id in user_ids:
                pipe.hgetall(entry_key(EntryKey(competition_kind, competition_id, user_id)))
            rows = await pipe.execute()
        return [_from_hash(row) for row in rows if row]

    async def ping(self) -> bool:
        response = await self.redis.ping()
        return bool(response)
