from __future__ import annotations

import base64
import hashlib
from typing import Union

HashItem = Union[str, int, bytes, bytearray, memoryview]

# Bump to invalidate every existing cache key.
CACHE_FORMAT_VERSION = 1


def _item_bytes(item: HashItem) -> bytes:
    # bool is an int subclass; reject it rather than hash "True".
    if isinstance(item, bool):
        raise TypeError("bool is not a hashable item")
    if isinstance(item, str):
        return item.encode("utf-8")
    if isinstance(item, int):
        return str(item).encode("ascii")
    if isinstance(item, (bytes, bytearray, memoryview)):
        return bytes(item)
    raise TypeError(f"unsupported hash item type: {type(item).__name__}")


def digest(*items: HashItem) -> str:
    """SHA-256 of the items in order, as URL-safe base64.

    The output is safe as a path segment and as a header value, and never
    contains a dot.
    """
    h = hashlib.sha256()
    for item in items:
        h.update(_item_bytes(item))
    return base64.urlsafe_b64encode(h.digest()).decode("ascii")


def cache_key(url: str, width: int, quality: int, media_type: str) -> str:
    return digest(CACHE_FORMAT_VERSION, url, width, quality, media_type)
