"""Cache service for CMS entries.

In addition to caching the individual entries, the service maintains a
mapping of the routes and content types so the whole space can be served
from cache:

- entries, keyed by ``sys.id``;
- routes, ``slug -> (content type, entry id)`` for entries with a slug;
- content type membership, ``content type -> {entry id, ...}``.

Every ``update`` and ``destroy`` commits the entry and its index changes as
one backend batch. Separate calls are not ordered against each other; a
``destroy`` racing an ``update`` of the same entry can leave the indexes
briefly out of step until the next sync.
"""
from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from contentcache import paths
from contentcache.backend import BackendError, Batch, CacheBackend
from contentcache.indexes import EntryStore, Route, RouteIndex, TypeIndex

log = logging.getLogger(__name__)

Entry = dict[str, Any]
UpdateListener = Callable[[Entry], Any]
DestroyListener = Callable[[str], Any]


class MalformedEntryError(ValueError):
    """Raised when an entry lacks the id or content type needed to index it."""


class HookError(RuntimeError):
    """Raised when an update/destroy listener fails after the write committed."""

    def __init__(self, hook: str, target: str):
        self.hook = hook
        self.target = target
        super().__init__(f"{hook} listener failed for {target}")


class CacheService:
    def __init__(
        self,
        backend: CacheBackend,
        lang: str = "en-US",
        on_update: UpdateListener | None = None,
        on_destroy: DestroyListener | None = None,
    ):
        self.backend = backend
        self.lang = lang
        self.on_update = on_update
        self.on_destroy = on_destroy
        self.entries = EntryStore(backend)
        self.route_index = RouteIndex(backend)
        self.type_index = TypeIndex(backend)

    async def _notify(self, hook: str, listener: Callable | None, arg: Any, target: str) -> None:
        if listener is None:
            return
        try:
            result = listener(arg)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            log.exception("%s listener failed for %s", hook, target)
            raise HookError(hook, target) from e

    def _identify(self, entry: Mapping[str, Any]) -> tuple[str, str]:
        eid, type_id = paths.entry_id(entry), paths.content_type_id(entry)
        if not eid or not type_id:
            raise MalformedEntryError(
                f"Entry is missing sys.id or sys.contentType (id: {eid!r})"
            )
        return eid, type_id

    # Entries
    # --

    async def update(self, entry: Entry) -> Entry:
        """Store an entry returned from the API and index it.

        Returns the entry as given.

        Raises:
            MalformedEntryError: If the entry has no id or content type.
            HookError: If the ``on_update`` listener fails (the entry stays cached).
        """
        eid, type_id = self._identify(entry)
        batch = Batch()
        self.type_index.stage_add(batch, type_id, eid)

        route = paths.slug(entry, self.lang)
        if route:
            current = await self.route_index.all_routes()
            self.route_index.stage_add(batch, current, route, (type_id, eid))

        self.entries.stage_put(batch, entry)
        await self.backend.apply(batch)
        log.debug("Cached %s entry %s", type_id, eid)

        await self._notify("on_update", self.on_update, entry, eid)
        return entry

    async def update_entries(self, entries: Iterable[Entry]) -> int:
        """Cache a page of entries returned from the API.

        Each entry is stored with its type membership in its own batch. The
        page's routes are merged in one write afterwards, for the entries that
        were actually stored, so no route ever points at an uncached entry.
        Entries without a slug are still cached; entries without an id or
        content type are skipped.

        Returns the number of entries cached. A backend failure stops the page:
        entries stored before it keep their routes and the error is re-raised.
        Listener failures are raised as the first ``HookError`` once the whole
        page is written.
        """
        valid: list[tuple[str, str, Entry, str | None]] = []
        for entry in entries:
            try:
                eid, type_id = self._identify(entry)
            except MalformedEntryError as e:
                log.warning("Skipping entry: %s", e)
                continue
            valid.append((eid, type_id, entry, paths.slug(entry, self.lang)))

        written: list[tuple[str, str, Entry, str | None]] = []
        failure: BackendError | None = None
        for item in valid:
            eid, type_id, entry, _ = item
            batch = Batch()
            self.type_index.stage_add(batch, type_id, eid)
            self.entries.stage_put(batch, entry)
            try:
                await self.backend.apply(batch)
            except BackendError as e:
                log.error("Backend failed after %d of %d entries: %s", len(written), len(valid), e)
                failure = e
                break
            written.append(item)

        # Later entries win a shared slug, the same as sequential updates.
        page_routes: dict[str, Route] = {}
        for eid, type_id, _, route in written:
            if route:
                page_routes[route] = (type_id, eid)
        if page_routes:
            try:
                await self.update_routes(page_routes)
            except BackendError:
                if failure is None:
                    raise
                log.warning("Routes for %d cached entries not written", len(page_routes))
        if failure is not None:
            raise failure

        hook_errors: list[HookError] = []
        for eid, _, entry, _ in written:
            try:
                await self._notify("on_update", self.on_update, entry, eid)
            except HookError as e:
                hook_errors.append(e)

        log.info("Cached %d entries (%d routes)", len(written), len(page_routes))
        if hook_errors:
            raise hook_errors[0]
        return len(written)

    async def destroy(self, entry_id: str) -> str | None:
        """Remove an entry from cache along with its routes and type membership.

        Typically used to unpublish an entry. Destroying an entry that is not
        cached is a no-op and returns None.

        Raises:
            HookError: If the ``on_destroy`` listener fails (the entry stays removed).
        """
        entry = await self.entries.get(entry_id)
        if not entry:
            log.debug("Entry %s not cached, nothing to destroy", entry_id)
            return None

        batch = Batch()
        self.entries.stage_delete(batch, entry_id)

        type_id = paths.content_type_id(entry)
        if type_id:
            self.type_index.stage_remove(batch, type_id, entry_id)
        else:
            log.warning("Entry %s has no content type; type index left as is", entry_id)

        current = await self.route_index.all_routes()
        self.route_index.stage_remove_entry(batch, current, entry_id)

        await self.backend.apply(batch)
        log.debug("Destroyed entry %s", entry_id)

        await self._notify("on_destroy", self.on_destroy, entry_id, entry_id)
        return entry_id

    async def entry(self, entry_id: str) -> Entry | None:
        """Get a single entry from cache, or None if it is not cached."""
        return await self.entries.get(entry_id)

    async def entries_of_type(
        self,
        types: str | Iterable[str],
        predicate: Callable[[Entry], bool] | None = None,
    ) -> list[Entry]:
        """Get all cached entries of one or more content types.

        Ids are not deduplicated across types. Ids whose entry has expired
        from the backend are skipped.
        """
        found = []
        for eid in await self.type_index.members_of(types):
            entry = await self.entries.get(eid)
            if entry is None:
                continue
            if predicate is None or predicate(entry):
                found.append(entry)
        return found

    # Routing
    # --

    async def routes(self) -> dict[str, Route]:
        """Get all routes that have been registered for content."""
        return await self.route_index.all_routes()

    async def update_routes(self, routes: Mapping[str, Route], merge: bool = True) -> None:
        """Merge new routes into the table, or replace it when ``merge`` is False."""
        batch = Batch()
        if merge:
            current = await self.route_index.all_routes()
            self.route_index.stage_merge(batch, current, routes)
        else:
            self.route_index.stage_replace(batch, routes)
        await self.backend.apply(batch)

    async def delete_route(self, entry_id: str) -> list[str]:
        """Delete the routes pointing at an entry. Returns the removed slugs."""
        batch = Batch()
        current = await self.route_index.all_routes()
        removed = self.route_index.stage_remove_entry(batch, current, entry_id)
        await self.backend.apply(batch)
        return removed
