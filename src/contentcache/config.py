"""Settings read from the environment (and a local ``.env`` via python-dotenv)."""
from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel

from contentcache.sync import DEFAULT_PAGE_SIZE


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    space: str = ""
    access_token: str = ""
    preview_token: str = ""
    env: str = "development"
    lang: str = "en-US"
    webhook_token: str = ""
    cache_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl: int | None = None
    sync_on_startup: bool = False
    sync_page_size: int = DEFAULT_PAGE_SIZE

    @property
    def preview(self) -> bool:
        """Anything but production reads drafts through the preview API."""
        return self.env != "production"

    @property
    def token(self) -> str:
        return self.preview_token if self.preview else self.access_token

    @classmethod
    def from_env(cls) -> Settings:
        ttl = os.environ.get("CACHE_TTL")
        return cls(
            space=os.environ.get("CONTENTFUL_SPACE", ""),
            access_token=os.environ.get("CONTENTFUL_ACCESS_TOKEN", ""),
            preview_token=os.environ.get("CONTENTFUL_PREVIEW_TOKEN", ""),
            env=os.environ.get("CONTENTFUL_ENV", os.environ.get("ENVIRONMENT", "development")),
            lang=os.environ.get("CONTENTFUL_LANG", "en-US"),
            webhook_token=os.environ.get("CONTENTFUL_WEBHOOK_TOKEN", ""),
            cache_backend=os.environ.get("CACHE_BACKEND", "memory"),
            redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
            cache_ttl=int(ttl) if ttl else None,
            sync_on_startup=_flag(os.environ.get("SYNC_ON_STARTUP")),
            sync_page_size=int(os.environ.get("SYNC_PAGE_SIZE", DEFAULT_PAGE_SIZE)),
        )
