"""On-disk cache of transcoded images.

Layout::

    <root>/<cache_key>/<max_age>.<expire_at>.<identity_tag><ext>

There is no index and no sweeper. Expired entries are removed when a read
trips over them; keys that are never requested again stay on disk.
"""

from __future__ import annotations

import logging
import os
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .cache_codec import EntryMetadata, decode_entry_name, encode_entry_name
from .errors import CacheReadError, CacheWriteError, MalformedEntryName

logger = logging.getLogger(__name__)

EXTENSIONS = {
    "image/webp": ".webp",
    "image/avif": ".avif",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
}
CONTENT_TYPES = {ext: ct for ct, ext in EXTENSIONS.items()}
CONTENT_TYPES[".jpeg"] = "image/jpeg"


def extension_for(content_type: str) -> str:
    return EXTENSIONS.get(content_type, ".bin")


def content_type_for(extension: str) -> str:
    return CONTENT_TYPES.get(extension.lower(), "application/octet-stream")


# Fire-and-forget hook, e.g. BackgroundTasks.add_task.
Schedule = Callable[..., Any]


@dataclass
class CachedImage:
    meta: EntryMetadata
    payload: bytes

    @property
    def content_type(self) -> str:
        return content_type_for(self.meta.extension)


class CacheStore(ABC):
    """Key/value store for transcoded images with per-entry expiry."""

    @abstractmethod
    def read(self, cache_key: str, schedule: Optional[Schedule] = None) -> Optional[CachedImage]:
        """Return the live entry for ``cache_key`` or None.

        Cleanup of expired entries goes through ``schedule`` when given.
        """

    @abstractmethod
    def write(
        self,
        cache_key: str,
        max_age: int,
        identity_tag: str,
        payload: bytes,
        content_type: str = "image/webp",
    ) -> None:
        """Store a new entry expiring ``max_age`` seconds from now."""


class FileSystemCacheStore(CacheStore):
    def __init__(
        self,
        root: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.root = root
        self._clock = clock

    def _dir(self, cache_key: str) -> str:
        return os.path.join(self.root, cache_key)

    def read(self, cache_key: str, schedule: Optional[Schedule] = None) -> Optional[CachedImage]:
        now = int(self._clock())
        directory = self._dir(cache_key)
        try:
            names = sorted(os.listdir(directory))
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as e:
            raise CacheReadError(f"cannot list {directory}: {e}") from e

        for name in names:
            try:
                meta = decode_entry_name(name)
            except MalformedEntryName as e:
                logger.warning("skipping cache entry: %s", e)
                continue

            path = os.path.join(directory, name)
            if meta.expire_at < now:
                if schedule is None:
                    _remove_quietly(path)
                else:
                    schedule(_remove_quietly, path)
                return None

            try:
                with open(path, "rb") as f:
                    payload = f.read()
            except FileNotFoundError:
                # removed by a concurrent reader
                return None
            except OSError as e:
                raise CacheReadError(f"cannot read {path}: {e}") from e
            return CachedImage(meta=meta, payload=payload)

        return None

    def write(
        self,
        cache_key: str,
        max_age: int,
        identity_tag: str,
        payload: bytes,
        content_type: str = "image/webp",
    ) -> None:
        expire_at = int(self._clock()) + max_age
        name = encode_entry_name(max_age, expire_at, identity_tag, extension_for(content_type))
        directory = self._dir(cache_key)
        path = os.path.join(directory, name)
        # dotfiles have no extension, so readers skip the partial file
        tmp = os.path.join(directory, f".tmp-{uuid.uuid4().hex}")
        try:
            os.makedirs(directory, exist_ok=True)
            with open(tmp, "wb") as f:
                f.write(payload)
            os.replace(tmp, path)
        except OSError as e:
            try:
                os.remove(tmp)
            except OSError:
                pass
            raise CacheWriteError(f"cannot write {path}: {e}") from e
        logger.debug("cached %s (%d bytes)", path, len(payload))


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
        logger.debug("evicted expired cache entry %s", path)
    except OSError:
        pass


class MemoryCacheStore(CacheStore):
    """Process-local store with the same lazy-expiry rules as the disk store."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[str, CachedImage] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def read(self, cache_key: str, schedule: Optional[Schedule] = None) -> Optional[CachedImage]:
        now = int(self._clock())
        with self._lock:
            entry = self._entries.get(cache_key)
            if entry is None:
                return None
            if entry.meta.expire_at < now:
                del self._entries[cache_key]
                return None
            return entry

    def write(
        self,
        cache_key: str,
        max_age: int,
        identity_tag: str,
        payload: bytes,
        content_type: str = "image/webp",
    ) -> None:
        meta = EntryMetadata(
            max_age=max_age,
            expire_at=int(self._clock()) + max_age,
            identity_tag=identity_tag,
            extension=extension_for(content_type),
        )
        with self._lock:
            self._entries[cache_key] = CachedImage(meta=meta, payload=bytes(payload))

    def __len__(self) -> int:
        return len(self._entries)
