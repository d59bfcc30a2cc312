from __future__ import annotations

import hmac
import logging
import os
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv
load_dotenv()

import logfire
logfire.configure(
    service_name="contentcache",
    environment=os.environ.get("CONTENTFUL_ENV", "development"),
    send_to_logfire="if-token-present",
)
logfire.instrument_httpx()
logfire.instrument_redis()

from fastapi import Body, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from contentcache import paths
from contentcache.backend import BackendError, BackendUnavailableError, CacheBackend
from contentcache.cache import CacheService, HookError, MalformedEntryError
from contentcache.client import ContentfulClient
from contentcache.config import Settings
from contentcache.memory_backend import MemoryBackend
from contentcache.models import RoutesResponse, SyncResult, WebhookOutcome
from contentcache.redis_backend import RedisBackend
from contentcache.sync import RemoteSource, read_through, sync
from contentcache.webhook import UnsupportedTopicError, handle_webhook

log = logging.getLogger(__name__)


def build_backend(settings: Settings) -> CacheBackend:
    if settings.cache_backend == "redis":
        return RedisBackend(settings.redis_url, ttl=settings.cache_ttl)
    return MemoryBackend(ttl=settings.cache_ttl)


def build_source(settings: Settings) -> ContentfulClient | None:
    if not settings.space or not settings.token:
        log.warning("No Contentful space or access token configured; syncing disabled")
        return None
    return ContentfulClient(settings.space, settings.token, preview=settings.preview)


def create_app(
    cache: CacheService | None = None,
    source: RemoteSource | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    if cache is None:
        cache = CacheService(build_backend(settings), lang=settings.lang)
    if source is None:
        source = build_source(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.sync_on_startup and source is not None:
            log.info("Contentful sync started")
            result = await sync(cache, source, settings.sync_page_size)
            log.info("Contentful sync complete: %d entries", result.entries)
        yield
        if hasattr(source, "aclose"):
            await source.aclose()
        if hasattr(cache.backend, "close"):
            await cache.backend.close()

    app = FastAPI(title="contentcache", description="Cache in front of a headless CMS", lifespan=lifespan)
    logfire.instrument_fastapi(app)
    app.state.cache = cache
    app.state.source = source
    app.state.settings = settings

    @app.exception_handler(BackendError)
    async def backend_error(request: Request, exc: BackendError):
        status = 503 if isinstance(exc, BackendUnavailableError) else 500
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    @app.exception_handler(HookError)
    async def hook_error(request: Request, exc: HookError):
        # The write itself went through; only the listener failed.
        return JSONResponse(status_code=500, content={"detail": str(exc), "committed": True})

    # ---------------------------------------------------------------------------
    # Health check
    # ---------------------------------------------------------------------------
    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # ---------------------------------------------------------------------------
    # CMS notifications
    # ---------------------------------------------------------------------------
    @app.post("/webhook", response_model=WebhookOutcome)
    async def webhook(
        payload: dict[str, Any] = Body(...),
        x_contentful_webhook_key: str = Header(default=""),
        x_contentful_topic: str = Header(default=""),
    ):
        """Apply a publish/unpublish/delete notification from the CMS."""
        token = settings.webhook_token
        if not token or not hmac.compare_digest(x_contentful_webhook_key.encode(), token.encode()):
            log.warning("Update request without a valid webhook token")
            raise HTTPException(status_code=403, detail="invalid token")

        log.debug("Update requested: %s", x_contentful_topic)
        try:
            return await handle_webhook(cache, x_contentful_topic, payload, settings.preview)
        except UnsupportedTopicError as e:
            log.error("%s", e)
            return WebhookOutcome(topic=x_contentful_topic, action="ignored")
        except MalformedEntryError as e:
            raise HTTPException(status_code=400, detail=str(e))

    @app.post("/refresh", response_model=SyncResult)
    async def refresh():
        """Run a full sync against the CMS."""
        if source is None:
            raise HTTPException(status_code=503, detail="No CMS source configured")
        return await sync(cache, source, settings.sync_page_size)

    # ---------------------------------------------------------------------------
    # Lookups
    # ---------------------------------------------------------------------------
    @app.get("/routes", response_model=RoutesResponse)
    async def list_routes():
        return RoutesResponse(routes=await cache.routes())

    @app.get("/entries/{entry_id}")
    async def get_entry(entry_id: str, locale: str | None = None):
        """Get an entry by ID, optionally flattened to one locale."""
        if source is not None:
            entry = await read_through(cache, source, entry_id)
        else:
            entry = await cache.entry(entry_id)
        if entry is None:
            raise HTTPException(status_code=404, detail="Entry not found")
        if locale:
            return paths.localize(entry, locale, settings.lang)
        return entry

    @app.get("/types/{type_ids}/entries")
    async def entries_of_type(type_ids: str, locale: str | None = None):
        """List cached entries of one or more (comma-separated) content types."""
        types = [t for t in type_ids.split(",") if t]
        entries = await cache.entries_of_type(types)
        if locale:
            return [paths.localize(e, locale, settings.lang) for e in entries]
        return entries

    return app


app = create_app()


def main():
    import uvicorn

    logging.basicConfig(level=logging.INFO, handlers=[logfire.LogfireLoggingHandler()])

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", 8000)))


if __name__ == "__main__":
    main()
