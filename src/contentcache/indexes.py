"""The three structures kept in a cache backend.

Reads go straight to the backend. Writes are staged onto a ``Batch`` so the
cache service can commit an entry and its index memberships together.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from contentcache import paths
from contentcache.backend import Batch, CacheBackend

ROUTE_KEY = "$routes"
TYPE_KEY = "$type"

Route = tuple[str, str]


class EntryStore:
    """Raw entry documents keyed by entry id."""

    def __init__(self, backend: CacheBackend):
        self.backend = backend

    async def get(self, entry_id: str) -> dict[str, Any] | None:
        return await self.backend.get(entry_id)

    def stage_put(self, batch: Batch, entry: Mapping[str, Any]) -> None:
        batch.set(paths.entry_id(entry), entry)

    def stage_delete(self, batch: Batch, entry_id: str) -> None:
        batch.delete(entry_id)


def encode_route(slug: str, type_id: str, entry_id: str) -> str:
    return f"{slug}:{type_id}:{entry_id}"


def decode_route(member: str) -> tuple[str, Route]:
    # Split from the right: ids never contain ":" but slugs might.
    slug, type_id, entry_id = member.rsplit(":", 2)
    return slug, (type_id, entry_id)


class RouteIndex:
    """Slug -> (content type, entry id), stored as one set of composites."""

    def __init__(self, backend: CacheBackend):
        self.backend = backend

    async def all_routes(self) -> dict[str, Route]:
        routes: dict[str, Route] = {}
        for member in sorted(await self.backend.members(ROUTE_KEY)):
            slug, route = decode_route(member)
            routes[slug] = route
        return routes

    def stage_add(
        self, batch: Batch, current: Mapping[str, Route], slug: str, route: Route
    ) -> None:
        existing = current.get(slug)
        if existing is not None and tuple(existing) != tuple(route):
            batch.remove_member(ROUTE_KEY, encode_route(slug, *existing))
        batch.add_member(ROUTE_KEY, encode_route(slug, *route))

    def stage_merge(
        self, batch: Batch, current: Mapping[str, Route], new: Mapping[str, Route]
    ) -> None:
        """Merge ``new`` over ``current`` slug by slug; other slugs survive."""
        for slug, route in new.items():
            self.stage_add(batch, current, slug, route)

    def stage_replace(self, batch: Batch, new: Mapping[str, Route]) -> None:
        batch.delete(ROUTE_KEY)
        for slug, (type_id, target) in new.items():
            batch.add_member(ROUTE_KEY, encode_route(slug, type_id, target))

    def stage_remove_entry(
        self, batch: Batch, current: Mapping[str, Route], entry_id: str
    ) -> list[str]:
        """Stage removal of every route pointing at ``entry_id``.

        The set is keyed by slug, so this is a reverse scan over all routes.
        Returns the slugs removed.
        """
        removed = []
        for slug, (type_id, target) in current.items():
            if target == entry_id:
                batch.remove_member(ROUTE_KEY, encode_route(slug, type_id, target))
                removed.append(slug)
        return removed


class TypeIndex:
    """Content type id -> set of entry ids."""

    def __init__(self, backend: CacheBackend):
        self.backend = backend

    @staticmethod
    def key(type_id: str) -> str:
        return f"{TYPE_KEY}.{type_id}"

    async def members_of(self, types: str | Iterable[str]) -> list[str]:
        """Entry ids for one or more types, concatenated in the order given."""
        if isinstance(types, str):
            types = [types]
        ids: list[str] = []
        for type_id in types:
            ids.extend(sorted(await self.backend.members(self.key(type_id))))
        return ids

    def stage_add(self, batch: Batch, type_id: str, entry_id: str) -> None:
        batch.add_member(self.key(type_id), entry_id)

    def stage_remove(self, batch: Batch, type_id: str, entry_id: str) -> None:
        batch.remove_member(self.key(type_id), entry_id)
