from __future__ import annotations

import asyncio
import itertools

import pytest

from scoreboard.errors import EntryNotFoundError, LeaderboardMergeError
from scoreboard.services.leaderboard import LeaderboardService
from scoreboard.storage.base import EntryKey
from scoreboard.storage.memory import InMemoryEntryStore


class InterleavingStore(InMemoryEntryStore):
    """Yields after every read so other merges get scheduled mid-update."""

    async def get(self, key):
        result = await super().get(key)
        await asyncio.sleep(0)
        return result


class BrokenStore(InMemoryEntryStore):
    async def get(self, key):
        raise ConnectionError("store offline")


def fixed_clock():
    counter = itertools.count(1)
    return lambda: f"2026-01-01T00:00:{next(counter):02d}+00:00"


@pytest.mark.asyncio
async def test_first_merge_creates_entry():
    service = LeaderboardService(InMemoryEntryStore(), clock=fixed_clock())

    entry = await service.merge("competition", "titanic", "alice", 0.7, "Alice", "a.png")

    assert entry.submissions == 1
    assert entry.score == 0.7
    assert entry.best_score == 0.7
    assert entry.user_avatar == "a.png"
    assert entry.last_submission == "2026-01-01T00:00:01+00:00"


@pytest.mark.asyncio
async def test_lower_score_keeps_best_but_counts_submission():
    service = LeaderboardService(InMemoryEntryStore(), clock=fixed_clock())

    await service.merge("competition", "titanic", "alice", 0.9, "Alice")
    entry = await service.merge("competition", "titanic", "alice", 0.4, "Alice B", None)

    assert entry.score == 0.9
    assert entry.best_score == 0.9
    assert entry.submissions == 2
    assert entry.user_name == "Alice B"
    assert entry.last_submission == "2026-01-01T00:00:02+00:00"


@pytest.mark.asyncio
async def test_missing_user_name_defaults_to_anonymous():
    service = LeaderboardService(InMemoryEntryStore())

    entry = await service.merge("playground", "p1", "u1", 0.5)

    assert entry.user_name == "Anonymous"


@pytest.mark.asyncio
@pytest.mark.parametrize("scores", [(0.8, 0.6), (0.6, 0.8)])
async def test_concurrent_merges_never_lose_an_increment(scores):
    store = InterleavingStore()
    service = LeaderboardService(store)

    await asyncio.gather(
        *(service.merge("competition", "titanic", "alice", s, "Alice") for s in scores)
    )

    entry = await service.get_entry("competition", "titanic", "alice")
    assert entry.submissions == 2
    assert entry.score == 0.8


@pytest.mark.asyncio
async def test_many_concurrent_merges_are_all_counted():
    service = LeaderboardService(InterleavingStore())

    await asyncio.gather(
        *(service.merge("competition", "c", "bob", i / 100, "Bob") for i in range(25))
    )

    entry = await service.get_entry("competition", "c", "bob")
    assert entry.submissions == 25
    assert entry.score == 0.24


@pytest.mark.asyncio
async def test_burst_of_merges_keeps_every_increment_and_best_score():
    service = LeaderboardService(InterleavingStore())

    await asyncio.gather(
        *(service.merge("competition", "c", "alice", i / 100, "Alice") for i in range(12))
    )

    entry = await service.get_entry("competition", "c", "alice")
    assert entry.submissions == 12
    assert entry.score == 0.11


@pytest.mark.asyncio
async def test_compare_and_swap_rejects_stale_version():
    store = InMemoryEntryStore()
    service = LeaderboardService(store)
    entry = await service.merge("competition", "c", "alice", 0.5)
    key = EntryKey("competition", "c", "alice")

    assert await store.get(key) == (entry, 1)
    assert await store.compare_and_swap(key, 0, entry) is False
    assert await store.compare_and_swap(key, 1, entry) is True
    assert (await store.get(key))[1] == 2


@pytest.mark.asyncio
async def test_other_keys_are_not_blocked():
    store = InMemoryEntryStore()
    service = LeaderboardService(store)
    held = store._locks[EntryKey("competition", "c", "alice")]

    async with held:
        entry = await asyncio.wait_for(service.merge("competition", "c", "bob", 0.5), timeout=1)

    assert entry.submissions == 1


@pytest.mark.asyncio
async def test_store_failure_raises_merge_error():
    service = LeaderboardService(BrokenStore())

    with pytest.raises(LeaderboardMergeError) as excinfo:
        await service.merge("competition", "c", "alice", 0.5)

    assert "store offline" in str(excinfo.value)


@pytest.mark.asyncio
async def test_leaderboard_ranks_by_best_score():
    service = LeaderboardService(InMemoryEntryStore())
    for user_id, score in [("alice", 0.7), ("bob", 0.9), ("cara", 0.8)]:
        await service.merge("competition", "c", user_id, score)
    await service.merge("playground", "c", "dan", 1.0)

    ranked = await service.get_leaderboard("competition", "c", limit=10, offset=0)
    assert [r.entry.user_id for r in ranked] == ["bob", "cara", "alice"]
    assert [r.rank for r in ranked] == [1, 2, 3]

    page = await service.get_leaderboard("competition", "c", limit=1, offset=1)
    assert [(r.rank, r.entry.user_id) for r in page] == [(2, "cara")]


@pytest.mark.asyncio
async def test_get_entry_for_unknown_user_raises():
    service = LeaderboardService(InMemoryEntryStore())

    with pytest.raises(EntryNotFoundError):
        await service.get_entry("competition", "c", "ghost")
