"""Locate an image URL inside an arbitrary upstream JSON response.

Search order, first match wins:

1. The explicit dotted field path, when one is configured.
2. Each known container key (``sticker``, ``data``, ...) holding an object,
   searched for the candidate field names.
3. The candidate field names on the top-level object.

Only strings that look like image file URLs are accepted. A miss is not an
error; callers decide what to do with ``None``.
"""

import re
from collections.abc import Sequence
from typing import Any

from .config import DEFAULT_MEDIA_CANDIDATE_FIELDS, DEFAULT_MEDIA_CONTAINER_KEYS

IMAGE_URL_RE = re.compile(r"\.(jpeg|jpg|gif|png|webp|bmp|svg)", re.IGNORECASE)

_MISSING = object()


def looks_like_image_url(value: Any) -> bool:
    return isinstance(value, str) and IMAGE_URL_RE.search(value) is not None


def get_by_dotted_path(obj: Any, path: str) -> Any:
    """Resolve ``a.b.0.c`` against nested dicts/lists; returns None when any step is missing."""
    current = obj
    for key in path.split("."):
        if isinstance(current, dict):
            current = current.get(key, _MISSING)
        elif isinstance(current, list) and key.isdecimal() and int(key) < len(current):
            current = current[int(key)]
        else:
            return None
        if current is _MISSING:
            return None
    return current


def _search_fields(obj: dict, fields: Sequence[str]) -> str | None:
    for name in fields:
        value = obj.get(name)
        if looks_like_image_url(value):
            return value
    return None


def extract_media_url(
    payload: Any,
    field_path: str | None = None,
    *,
    container_keys: Sequence[str] = DEFAULT_MEDIA_CONTAINER_KEYS,
    candidate_fields: Sequence[str] = DEFAULT_MEDIA_CANDIDATE_FIELDS,
) -> str | None:
    if not isinstance(payload, dict):
        return None

    if field_path:
        candidate = get_by_dotted_path(payload, field_path)
        if looks_like_image_url(candidate):
            return candidate

    fields = list(candidate_fields)
    if field_path:
        requested = field_path.rsplit(".", 1)[-1]
        if requested in fields:
            fields.remove(requested)
        fields.insert(0, requested)

    for key in container_keys:
        nested = payload.get(key)
        if isinstance(nested, dict):
            found = _search_fields(nested, fields)
            if found:
                return found

    return _search_fields(payload, fields)
