"""
Shared fixtures: entry builders, a synced page of sample content and the two
cache backends (in-memory and Redis via fakeredis).
"""

import os

import httpx
import pytest
from fakeredis import FakeAsyncRedis, FakeServer

from contentcache.backend import BackendUnavailableError
from contentcache.cache import CacheService
from contentcache.memory_backend import MemoryBackend
from contentcache.models import Page
from contentcache.redis_backend import RedisBackend

# Keep the app module from picking up a developer's .env settings.
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("CONTENTFUL_SPACE", "")


def build_entry(entry_id, content_type, slug=None, title=None, lang="en-US"):
    fields = {"title": {lang: title or f"Title of {entry_id}"}}
    if slug is not None:
        fields["slug"] = {lang: slug}
    return {
        "sys": {
            "id": entry_id,
            "type": "Entry",
            "updatedAt": "2024-03-01T12:00:00.000Z",
            "contentType": {"sys": {"type": "Link", "linkType": "ContentType", "id": content_type}},
        },
        "fields": fields,
    }


@pytest.fixture
def make_entry():
    return build_entry


@pytest.fixture
def sync_page():
    """Eleven entries: eight press releases and three pages, all with slugs."""
    press = [
        build_entry(f"press-{i}", "press", slug=f"press/release-{i}")
        for i in range(1, 9)
    ]
    pages = [
        build_entry("page-home", "page", slug="home"),
        build_entry("page-about", "page", slug="about"),
        build_entry("page-terms", "page", slug="terms-conditions"),
    ]
    return press + pages


@pytest.fixture(params=["memory", "redis"])
async def new_backend(request):
    """Factory for empty backends of the parametrized kind."""
    created = []

    def factory():
        if request.param == "memory":
            backend = MemoryBackend()
        else:
            client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
            backend = RedisBackend(client=client)
        created.append(backend)
        return backend

    yield factory

    for backend in created:
        if isinstance(backend, RedisBackend):
            await backend.close()


@pytest.fixture
def backend(new_backend):
    return new_backend()


@pytest.fixture
def cache(backend):
    return CacheService(backend)


class FailingBackend:
    """Wraps a backend and fails its Nth ``apply`` call.

    With ``stay_down`` every later ``apply`` fails too, like an outage that
    outlasts the operation.
    """

    def __init__(self, inner, fail_at, stay_down=False):
        self.inner = inner
        self.fail_at = fail_at
        self.stay_down = stay_down
        self.applied = 0

    def __getattr__(self, name):
        return getattr(self.inner, name)

    async def apply(self, batch):
        self.applied += 1
        if self.applied == self.fail_at or (self.stay_down and self.applied > self.fail_at):
            raise BackendUnavailableError(f"apply #{self.applied} failed")
        await self.inner.apply(batch)


@pytest.fixture
def failing_backend(new_backend):
    """Factory for a parametrized backend that fails on a given ``apply``."""

    def factory(fail_at, stay_down=False):
        return FailingBackend(new_backend(), fail_at, stay_down)

    return factory


class FakeSource:
    """Serves a fixed list of entries the way the delivery API pages them."""

    def __init__(self, entries, max_limit=None, fail_at_skip=None):
        self.entries = entries
        self.max_limit = max_limit
        self.fail_at_skip = fail_at_skip
        self.page_requests = []
        self.one_requests = []

    async def fetch_page(self, limit, skip):
        self.page_requests.append((limit, skip))
        if skip == self.fail_at_skip:
            raise httpx.ConnectError("connection reset")
        if self.max_limit:
            limit = min(limit, self.max_limit)
        return Page(
            items=self.entries[skip:skip + limit],
            total=len(self.entries),
            skip=skip,
            limit=limit,
        )

    async def fetch_one(self, entry_id):
        self.one_requests.append(entry_id)
        items = [e for e in self.entries if e["sys"]["id"] == entry_id]
        return Page(items=items, total=len(items), skip=0, limit=1)


@pytest.fixture
def make_source():
    return FakeSource
