"""In-memory cache backend.

Lives for the lifetime of the process; nothing is persisted. Values are
deep-copied on the way in and out so callers never share state with the
cache. An optional TTL expires values (not sets) and ``max_entries`` evicts
the least recently used value once the limit is exceeded.

Sets are never expired or evicted. An entry that drops out this way stays in
its ``$type.*`` set and any ``$routes`` composites until it is cached again or
its routes are dropped with ``delete_route``. Until then ``routes()`` may list
slugs whose entry reads as missing. ``entries_of_type`` skips such ids.
"""
from __future__ import annotations

import copy
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from contentcache.backend import Batch, BackendError


class MemoryBackend:
    def __init__(
        self,
        ttl: float | None = None,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._values: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._sets: dict[str, set[str]] = {}

    def _expired(self, expires_at: float | None) -> bool:
        return expires_at is not None and self._clock() >= expires_at

    def _set(self, key: str, value: Any) -> None:
        expires_at = self._clock() + self.ttl if self.ttl else None
        self._values[key] = (copy.deepcopy(value), expires_at)
        self._values.move_to_end(key)
        if self.max_entries is not None:
            while len(self._values) > self.max_entries:
                self._values.popitem(last=False)

    def _delete(self, key: str) -> None:
        self._values.pop(key, None)
        self._sets.pop(key, None)

    def _add_member(self, key: str, member: str) -> None:
        self._sets.setdefault(key, set()).add(member)

    def _remove_member(self, key: str, member: str) -> None:
        members = self._sets.get(key)
        if members is None:
            return
        members.discard(member)
        if not members:
            del self._sets[key]

    async def get(self, key: str) -> Any:
        item = self._values.get(key)
        if item is None:
            return None
        value, expires_at = item
        if self._expired(expires_at):
            del self._values[key]
            return None
        self._values.move_to_end(key)
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any) -> None:
        self._set(key, value)

    async def delete(self, key: str) -> None:
        self._delete(key)

    async def add_member(self, key: str, member: str) -> None:
        self._add_member(key, member)

    async def remove_member(self, key: str, member: str) -> None:
        self._remove_member(key, member)

    async def members(self, key: str) -> set[str]:
        return set(self._sets.get(key, ()))

    async def apply(self, batch: Batch) -> None:
        # No await between the first and last write, so other tasks on the
        # loop never observe a half-applied batch.
        handlers = {
            "set": self._set,
            "delete": lambda key, _value: self._delete(key),
            "add_member": self._add_member,
            "remove_member": self._remove_member,
        }
        for op in batch:
            if op.kind not in handlers:
                raise BackendError(f"Unsupported operation: {op.kind}")
        for op in batch:
            handlers[op.kind](op.key, op.value)

    def clear(self) -> int:
        """Drop everything. Returns the number of keys cleared."""
        count = len(self._values) + len(self._sets)
        self._values.clear()
        self._sets.clear()
        return count

    def size(self) -> int:
        return len(self._values)
