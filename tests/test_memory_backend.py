"""Tests for the in-memory backend."""

import pytest

from contentcache.backend import BackendError, Batch, Op
from contentcache.memory_backend import MemoryBackend


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestValues:
    async def test_missing_key(self):
        assert await MemoryBackend().get("nope") is None

    async def test_values_are_copied(self):
        backend = MemoryBackend()
        value = {"fields": {"tags": ["a"]}}
        await backend.set("k", value)

        value["fields"]["tags"].append("b")
        fetched = await backend.get("k")
        fetched["fields"]["tags"].append("c")

        assert await backend.get("k") == {"fields": {"tags": ["a"]}}

    async def test_ttl_expires_values(self):
        clock = FakeClock()
        backend = MemoryBackend(ttl=60, clock=clock)
        await backend.set("k", 1)

        clock.now += 59
        assert await backend.get("k") == 1
        clock.now += 1
        assert await backend.get("k") is None

    async def test_ttl_does_not_touch_sets(self):
        clock = FakeClock()
        backend = MemoryBackend(ttl=1, clock=clock)
        await backend.add_member("s", "a")

        clock.now += 10
        assert await backend.members("s") == {"a"}

    async def test_evicts_least_recently_used(self):
        backend = MemoryBackend(max_entries=2)
        await backend.set("a", 1)
        await backend.set("b", 2)
        await backend.get("a")
        await backend.set("c", 3)

        assert await backend.get("b") is None
        assert await backend.get("a") == 1
        assert backend.size() == 2


class TestSets:
    async def test_membership(self):
        backend = MemoryBackend()
        await backend.add_member("s", "a")
        await backend.add_member("s", "a")
        await backend.add_member("s", "b")
        await backend.remove_member("s", "a")
        await backend.remove_member("missing", "a")

        assert await backend.members("s") == {"b"}
        assert await backend.members("missing") == set()

    async def test_delete_clears_set(self):
        backend = MemoryBackend()
        await backend.add_member("s", "a")
        await backend.delete("s")

        assert await backend.members("s") == set()


class TestApply:
    async def test_applies_batch(self):
        backend = MemoryBackend()
        await backend.set("old", 1)
        batch = Batch().set("k", {"v": 1}).add_member("s", "k").delete("old")

        await backend.apply(batch)

        assert await backend.get("k") == {"v": 1}
        assert await backend.members("s") == {"k"}
        assert await backend.get("old") is None

    async def test_rejects_unknown_operation_before_writing(self):
        backend = MemoryBackend()
        batch = Batch().set("k", 1)
        batch.ops.append(Op("incr", "counter"))

        with pytest.raises(BackendError):
            await backend.apply(batch)

        assert await backend.get("k") is None

    async def test_clear(self):
        backend = MemoryBackend()
        await backend.set("k", 1)
        await backend.add_member("s", "a")

        assert backend.clear() == 2
        assert backend.size() == 0
