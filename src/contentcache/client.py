from __future__ import annotations

import httpx

from contentcache.models import Page

DELIVERY_HOST = "cdn.contentful.com"
PREVIEW_HOST = "preview.contentful.com"


class ContentfulClient:
    """Minimal async client for the Contentful delivery and preview APIs.

    In preview mode the client talks to the preview host, which also returns
    unpublished content, so the preview token must be used there.
    """

    def __init__(
        self,
        space: str,
        access_token: str,
        preview: bool = False,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.space = space
        self.access_token = access_token
        self.preview = preview
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def host(self) -> str:
        return PREVIEW_HOST if self.preview else DELIVERY_HOST

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"https://{self.host}/spaces/{self.space}",
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _entries(self, params: dict) -> Page:
        response = await self._get_client().get("/entries", params=params)
        response.raise_for_status()
        return Page.model_validate(response.json())

    async def fetch_page(self, limit: int, skip: int) -> Page:
        """Fetch one page of entries in every locale, newest first."""
        return await self._entries({
            "locale": "*",
            "include": 10,
            "limit": limit,
            "skip": skip,
            "order": "-sys.updatedAt",
        })

    async def fetch_one(self, entry_id: str) -> Page:
        return await self._entries({
            "sys.id": entry_id,
            "locale": "*",
            "include": 10,
        })

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
