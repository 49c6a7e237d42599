"""Single-process entry store guarded by one asyncio lock per key."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import replace
from typing import Callable

from scoreboard.storage.base import EntryKey, LeaderboardEntry


class InMemoryEntryStore:
    def __init__(self):
        self._records: dict[EntryKey, tuple[LeaderboardEntry, int]] = {}
        self._locks: defaultdict[EntryKey, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, key: EntryKey) -> tuple[LeaderboardEntry | None, int]:
        record = self._records.get(key)
        if record is None:
            return None, 0
        entry, version = record
        return replace(entry), version

    async def compare_and_swap(
        self, key: EntryKey, expected_version: int, entry: LeaderboardEntry
    ) -> bool:
        async with self._locks[key]:
            current = self._records.get(key)
            current_version = current[1] if current else 0
            if current_version != expected_version:
                return False
            self._records[key] = (replace(entry), current_version + 1)
            return True

    async def update(
        self,
        key: EntryKey,
        apply: Callable[[LeaderboardEntry | None], LeaderboardEntry],
    ) -> LeaderboardEntry:
        # The lock spans read, decide and write, so writers on one key queue up.
        async with self._locks[key]:
            current, version = await self.get(key)
            entry = apply(current)
            self._records[key] = (replace(entry), version + 1)
        return entry

    async def list_entries(
        self, competition_kind: str, competition_id: str, limit: int, offset: int
    ) -> list[LeaderboardEntry]:
        entries = [
            replace(entry)
            for key, (entry, _) in self._records.items()
            if key.competition_kind == competition_kind and key.competition_id == competition_id
        ]
        entries.sort(key=lambda e: (-e.score, e.user_id))
        return entries[offset : offset + limit]

    async def ping(self) -> bool:
        return True
