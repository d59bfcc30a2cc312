"""Redis cache backend.

Values are stored as JSON text, sets as native Redis sets. Batches run inside
MULTI/EXEC so every write of a batch lands together or not at all.

The client is created lazily on first use and reused for the lifetime of the
backend. Call ``close()`` on shutdown.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from contentcache.backend import Batch, BackendError, BackendUnavailableError

log = logging.getLogger(__name__)


def _translate(exc: RedisError, action: str) -> BackendError:
    if isinstance(exc, (RedisConnectionError, RedisTimeoutError)):
        log.error("Redis unavailable during %s: %s", action, exc)
        return BackendUnavailableError(f"Redis unavailable during {action}: {exc}")
    log.error("Redis failed during %s: %s", action, exc)
    return BackendError(f"Redis failed during {action}: {exc}")


class RedisBackend:
    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        ttl: int | None = None,
        client: Redis | None = None,
    ):
        """
        Args:
            url: Connection URL, used when the client is first needed.
            ttl: Optional expiry in seconds applied to stored values. Sets
                never expire, so type and route members of an expired entry
                linger until it is cached again or its routes are deleted.
            client: Pre-built client, mostly for tests.
        """
        self.url = url
        self.ttl = ttl
        self._client = client

    def _get_client(self) -> Redis:
        if self._client is None:
            self._client = Redis.from_url(self.url, decode_responses=True)
        return self._client

    async def get(self, key: str) -> Any:
        try:
            raw = await self._get_client().get(key)
        except RedisError as e:
            raise _translate(e, f"get {key}") from e
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        try:
            await self._get_client().set(key, json.dumps(value), ex=self.ttl)
        except RedisError as e:
            raise _translate(e, f"set {key}") from e

    async def delete(self, key: str) -> None:
        try:
            await self._get_client().delete(key)
        except RedisError as e:
            raise _translate(e, f"delete {key}") from e

    async def add_member(self, key: str, member: str) -> None:
        try:
            await self._get_client().sadd(key, member)
        except RedisError as e:
            raise _translate(e, f"sadd {key}") from e

    async def remove_member(self, key: str, member: str) -> None:
        try:
            await self._get_client().srem(key, member)
        except RedisError as e:
            raise _translate(e, f"srem {key}") from e

    async def members(self, key: str) -> set[str]:
        try:
            return set(await self._get_client().smembers(key))
        except RedisError as e:
            raise _translate(e, f"smembers {key}") from e

    async def apply(self, batch: Batch) -> None:
        if not len(batch):
            return
        try:
            async with self._get_client().pipeline(transaction=True) as pipe:
                for op in batch:
                    if op.kind == "set":
                        pipe.set(op.key, json.dumps(op.value), ex=self.ttl)
                    elif op.kind == "delete":
                        pipe.delete(op.key)
                    elif op.kind == "add_member":
                        pipe.sadd(op.key, op.value)
                    elif op.kind == "remove_member":
                        pipe.srem(op.key, op.value)
                    else:
                        raise BackendError(f"Unsupported operation: {op.kind}")
                await pipe.execute()
        except RedisError as e:
            raise _translate(e, f"transaction of {len(batch)} ops") from e

    async def ping(self) -> bool:
        try:
            return bool(await self._get_client().ping())
        except RedisError as e:
            log.warning("Redis ping failed: %s", e)
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log.info("Redis connection closed")
