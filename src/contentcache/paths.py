"""Path resolution over JSON documents and accessors for CMS entries.

Entries are plain dicts shaped like the Contentful delivery API returns them:

    {"sys": {"id": ..., "contentType": {"sys": {"id": ...}}, "updatedAt": ...},
     "fields": {"title": {"en-US": ...}, "slug": {"en-US": ...}}}
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

Path = str | Sequence[str]


def _split(path: Path) -> Sequence[str]:
    if isinstance(path, str):
        return path.split(".")
    return path


def _walk(document: Any, keys: Sequence[str]) -> Any:
    node = document
    for key in keys:
        if not isinstance(node, Mapping) or key not in node:
            return None
        node = node[key]
    return node


def resolve(document: Any, *paths: Path, default: Any = None) -> Any:
    """Return the value at the first path that resolves to something.

    Paths are dotted strings (``"sys.contentType.sys.id"``) or key sequences
    (``("fields", "slug", "en-US")``). A missing key, a non-mapping on the way
    down or an explicit ``None`` all fall through to the next path. When no
    path resolves, ``default`` is returned.
    """
    for path in paths:
        value = _walk(document, _split(path))
        if value is not None:
            return value
    return default


def entry_id(entry: Any) -> str | None:
    return resolve(entry, "sys.id")


def content_type_id(entry: Any) -> str | None:
    return resolve(entry, "sys.contentType.sys.id")


def slug(entry: Any, lang: str) -> str | None:
    value = resolve(entry, ("fields", "slug", lang))
    return value or None


def field_value(
    entry: Any, name: str, lang: str, fallback_lang: str | None = None
) -> Any:
    """Display value of a localized field, falling back to another language."""
    paths: list[Path] = [("fields", name, lang)]
    if fallback_lang and fallback_lang != lang:
        paths.append(("fields", name, fallback_lang))
    return resolve(entry, *paths)


def localize(entry: Mapping[str, Any], lang: str, fallback_lang: str | None = None) -> dict:
    """Flatten an entry into a single-language dict for templates."""
    flat: dict[str, Any] = {
        "id": entry_id(entry),
        "type": content_type_id(entry),
        "updatedAt": resolve(entry, "sys.updatedAt"),
    }
    for name in resolve(entry, "fields", default={}):
        flat[name] = field_value(entry, name, lang, fallback_lang)
    return flat
