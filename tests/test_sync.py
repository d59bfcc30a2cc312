"""Tests for the paginated sync driver."""

import httpx
import pytest

from contentcache.models import Cursor
from contentcache.sync import read_through, sync, sync_one


class TestCursor:
    def test_exhausted(self):
        assert not Cursor(limit=4, skip=4, total=11).exhausted
        assert Cursor(limit=4, skip=8, total=11).exhausted
        assert Cursor(limit=4, skip=0, total=4).exhausted
        assert not Cursor(limit=4).exhausted

    def test_advance(self):
        assert Cursor(limit=4, skip=4, total=11).advance() == Cursor(limit=4, skip=8, total=11)


class TestSync:
    async def test_walks_every_page(self, cache, sync_page, make_source):
        source = make_source(sync_page)

        result = await sync(cache, source, limit=4)

        assert source.page_requests == [(4, 0), (4, 4), (4, 8)]
        assert result.pages == 3
        assert result.entries == 11
        assert result.total == 11
        assert len(await cache.routes()) == 11
        assert len(await cache.entries_of_type("press")) == 8

    async def test_single_page(self, cache, sync_page, make_source):
        source = make_source(sync_page)

        result = await sync(cache, source)

        assert source.page_requests == [(250, 0)]
        assert result.pages == 1

    async def test_empty_space(self, cache, make_source):
        result = await sync(cache, make_source([]))

        assert result.pages == 1
        assert result.entries == 0

    async def test_follows_server_page_size(self, cache, sync_page, make_source):
        source = make_source(sync_page, max_limit=5)

        await sync(cache, source, limit=100)

        assert [skip for _, skip in source.page_requests] == [0, 5, 10]
        assert len(await cache.entries_of_type(["press", "page"])) == 11

    async def test_failed_page_keeps_earlier_pages(self, cache, sync_page, make_source):
        source = make_source(sync_page, fail_at_skip=8)

        with pytest.raises(httpx.ConnectError):
            await sync(cache, source, limit=4)

        cached = await cache.entries_of_type(["press", "page"])
        assert len(cached) == 8
        assert len(await cache.routes()) == 8


class TestSyncOne:
    async def test_caches_fetched_entry(self, cache, sync_page, make_source):
        source = make_source(sync_page)

        entry = await sync_one(cache, source, "page-home")

        assert entry["sys"]["id"] == "page-home"
        assert (await cache.routes())["home"] == ("page", "page-home")

    async def test_unknown_entry(self, cache, sync_page, make_source):
        assert await sync_one(cache, make_source(sync_page), "missing-id") is None
        assert await cache.entry("missing-id") is None

    async def test_read_through_hits_cache_first(self, cache, sync_page, make_source):
        source = make_source(sync_page)
        await cache.update(sync_page[0])

        await read_through(cache, source, "press-1")
        assert source.one_requests == []

        entry = await read_through(cache, source, "page-about")
        assert source.one_requests == ["page-about"]
        assert await cache.entry("page-about") == entry
