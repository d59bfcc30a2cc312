"""Storage capability shared by the cache backends.

The cache service only talks to this interface. A backend stores plain JSON
values under string keys and named sets of strings, and can apply a group of
writes atomically.
"""
from __future__ import annotations

from typing import Any, Literal, NamedTuple, Protocol

OpKind = Literal["set", "delete", "add_member", "remove_member"]


class BackendError(RuntimeError):
    """Raised when the backend rejects or fails an operation."""


class BackendUnavailableError(BackendError):
    """Raised on connection-level failures (refused, reset, timed out)."""


class Op(NamedTuple):
    kind: OpKind
    key: str
    value: Any = None


class Batch:
    """An ordered group of writes applied in one go by ``CacheBackend.apply``."""

    def __init__(self) -> None:
        self.ops: list[Op] = []

    def set(self, key: str, value: Any) -> Batch:
        self.ops.append(Op("set", key, value))
        return self

    def delete(self, key: str) -> Batch:
        self.ops.append(Op("delete", key))
        return self

    def add_member(self, key: str, member: str) -> Batch:
        self.ops.append(Op("add_member", key, member))
        return self

    def remove_member(self, key: str, member: str) -> Batch:
        self.ops.append(Op("remove_member", key, member))
        return self

    def __len__(self) -> int:
        return len(self.ops)

    def __iter__(self):
        return iter(self.ops)


class CacheBackend(Protocol):
    async def get(self, key: str) -> Any:
        """Return the value stored under ``key`` or None."""
        ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def add_member(self, key: str, member: str) -> None: ...

    async def remove_member(self, key: str, member: str) -> None: ...

    async def members(self, key: str) -> set[str]:
        """Return the members of the set under ``key`` (empty if missing)."""
        ...

    async def apply(self, batch: Batch) -> None:
        """Apply every operation in ``batch`` or none of them."""
        ...
