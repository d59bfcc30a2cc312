"""Apply CMS webhook notifications to the cache.

Only a subset of topics is handled:

- ``publish`` may be a brand new entry or an update to an existing one.
- ``save`` / ``auto_save`` fire for unpublished drafts too, so they are only
  honored in preview mode.
- ``delete`` removes the entry for good.
- ``unpublish`` is only honored in preview mode as well. In production the
  entry disappears from the delivery API and is dropped on the next sync.
"""
from __future__ import annotations

import logging
from typing import Any

from contentcache.cache import CacheService, MalformedEntryError
from contentcache.models import WebhookOutcome, WebhookTopic
from contentcache.paths import entry_id

log = logging.getLogger(__name__)

UPDATE_TOPICS = {WebhookTopic.AUTO_SAVE, WebhookTopic.SAVE, WebhookTopic.PUBLISH}
PREVIEW_ONLY_TOPICS = {WebhookTopic.AUTO_SAVE, WebhookTopic.SAVE, WebhookTopic.UNPUBLISH}


class UnsupportedTopicError(ValueError):
    """Raised for webhook topics this service does not handle."""

    def __init__(self, topic: str):
        self.topic = topic
        super().__init__(f"{topic} not implemented")


async def handle_webhook(
    cache: CacheService, topic: str, payload: dict[str, Any], preview: bool
) -> WebhookOutcome:
    try:
        kind = WebhookTopic(topic)
    except ValueError:
        raise UnsupportedTopicError(topic) from None

    eid = entry_id(payload)
    if not eid:
        raise MalformedEntryError(f"{topic} payload has no sys.id")
    if kind in PREVIEW_ONLY_TOPICS and not preview:
        log.info("Ignoring %s for %s outside preview mode", topic, eid)
        return WebhookOutcome(topic=topic, action="ignored", entry_id=eid)

    if kind in UPDATE_TOPICS:
        await cache.update(payload)
        return WebhookOutcome(topic=topic, action="update", entry_id=eid)

    await cache.destroy(eid)
    return WebhookOutcome(topic=topic, action="destroy", entry_id=eid)
