"""Pull content from the CMS into the cache.

The CMS's own sync endpoint does not work against the preview API, so a full
sync walks the regular entries listing page by page instead. That works the
same way in development and production.
"""
from __future__ import annotations

import logging
from typing import Protocol

from contentcache.cache import CacheService, Entry
from contentcache.models import Cursor, Page, SyncResult

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 250


class RemoteSource(Protocol):
    async def fetch_page(self, limit: int, skip: int) -> Page: ...

    async def fetch_one(self, entry_id: str) -> Page: ...


async def sync(
    cache: CacheService, source: RemoteSource, limit: int = DEFAULT_PAGE_SIZE
) -> SyncResult:
    """Download every entry and cache it, one page at a time.

    Pages keep coming while the listing reports more entries than fetched so
    far. A failed fetch aborts the sync; pages cached before it stay cached.
    """
    cursor = Cursor(limit=limit)
    result = SyncResult()

    while True:
        page = await source.fetch_page(cursor.limit, cursor.skip)
        result.entries += await cache.update_entries(page.items)
        result.pages += 1
        result.total = page.total
        log.info(
            "Synced page %d (skip=%d, %d items, total=%d)",
            result.pages, cursor.skip, len(page.items), page.total,
        )
        # The server may cap the page size below what we asked for.
        fetched = Cursor(limit=page.limit or cursor.limit, skip=cursor.skip, total=page.total)
        if fetched.exhausted:
            break
        if not page.items:
            log.warning("Empty page at skip=%d before reaching total", cursor.skip)
            break
        cursor = fetched.advance()

    return result


async def sync_one(cache: CacheService, source: RemoteSource, entry_id: str) -> Entry | None:
    """Refresh a single entry without walking the whole listing."""
    page = await source.fetch_one(entry_id)
    if not page.items:
        log.info("Entry %s not found upstream", entry_id)
        return None
    return await cache.update(page.items[0])


async def read_through(cache: CacheService, source: RemoteSource, entry_id: str) -> Entry | None:
    """Return the cached entry, fetching it from the CMS on a miss."""
    entry = await cache.entry(entry_id)
    if entry is not None:
        return entry
    return await sync_one(cache, source, entry_id)
