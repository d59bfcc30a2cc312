from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Page(BaseModel):
    """One page of entries as returned by the CMS delivery API."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    skip: int = 0
    limit: int = 0


class Cursor(BaseModel):
    """Pagination progress over a remote listing."""

    limit: int = 250
    skip: int = 0
    total: int | None = None  # unknown until the first page arrives

    @property
    def exhausted(self) -> bool:
        return self.total is not None and self.skip + self.limit >= self.total

    def advance(self) -> Cursor:
        return self.model_copy(update={"skip": self.skip + self.limit})


class SyncResult(BaseModel):
    """Summary of a completed sync."""

    pages: int = 0
    entries: int = 0
    total: int = 0


class WebhookTopic(str, Enum):
    AUTO_SAVE = "ContentManagement.Entry.auto_save"
    SAVE = "ContentManagement.Entry.save"
    PUBLISH = "ContentManagement.Entry.publish"
    DELETE = "ContentManagement.Entry.delete"
    UNPUBLISH = "ContentManagement.Entry.unpublish"


class WebhookOutcome(BaseModel):
    """Response from the webhook endpoint."""

    topic: str
    action: str  # "update", "destroy" or "ignored"
    entry_id: str | None = None


class RoutesResponse(BaseModel):
    routes: dict[str, tuple[str, str]]
