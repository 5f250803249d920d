"""Request orchestration: validate, look up the cache, fetch, transcode, store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal, Optional

import httpx
from fastapi import BackgroundTasks

from .cache import CacheStore
from .cache_control import parse_max_age
from .config import Settings
from .errors import CacheError, MethodNotAllowedError
from .hashing import cache_key, digest
from .transcode import Transcoder
from .upstream import fetch_image
from .utils import check_domain, negotiated_media_type, resolve_source_url, url_host

logger = logging.getLogger(__name__)


@dataclass
class ImageRequest:
    url: str
    width: int = 0
    quality: int = 0
    accept: Optional[str] = None
    method: str = "GET"


@dataclass
class ImageResult:
    body: bytes
    content_type: str
    max_age: int
    etag: str
    cache: Literal["HIT", "MISS"]


def target_width(requested: int, native: int) -> int:
    """Width to ask the transcoder for; 0 keeps the native size. Never upscales."""
    return requested if native > requested else 0


class ImageProxy:
    def __init__(
        self,
        store: CacheStore,
        transcoder: Transcoder,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.store = store
        self.transcoder = transcoder
        self.settings = settings
        self.transport = transport

    async def handle(self, req: ImageRequest, background_tasks: BackgroundTasks) -> ImageResult:
        """Serve one request. Cache writes and expired-entry removal are
        queued on ``background_tasks`` and run after the response is sent."""
        if req.method.upper() != "GET":
            raise MethodNotAllowedError("method not allowed")

        src = resolve_source_url(req.url, self.settings.base_url)
        check_domain(url_host(src), self.settings.allow_domains, self.settings.domain_match_mode)

        key = cache_key(src, req.width, req.quality, negotiated_media_type(req.accept))
        width = max(req.width, 0)
        quality = min(max(req.quality, 0), 100)

        cached = await self._read_cache(key, background_tasks)
        if cached is not None:
            return ImageResult(
                body=cached.payload,
                content_type=cached.content_type,
                max_age=cached.meta.max_age,
                etag=cached.meta.identity_tag,
                cache="HIT",
            )

        upstream = await fetch_image(
            src,
            timeout_s=self.settings.http_timeout_s,
            user_agent=self.settings.user_agent,
            transport=self.transport,
        )
        max_age = parse_max_age(upstream.headers.get("cache-control"), self.settings.default_max_age_s)

        info = await asyncio.to_thread(self.transcoder.inspect, upstream.content)
        output = await asyncio.to_thread(
            self.transcoder.transcode,
            upstream.content,
            target_width(width, info.width),
            quality,
        )

        etag = digest(output)
        background_tasks.add_task(self._populate, key, max_age, etag, output)

        return ImageResult(
            body=output,
            content_type=self.transcoder.content_type,
            max_age=max_age,
            etag=etag,
            cache="MISS",
        )

    async def _read_cache(self, key: str, background_tasks: BackgroundTasks):
        try:
            return await asyncio.to_thread(self.store.read, key, background_tasks.add_task)
        except (CacheError, OSError) as e:
            logger.warning("cache read failed for %s, treating as miss: %s", key, e)
            return None

    def _populate(self, key: str, max_age: int, etag: str, output: bytes) -> None:
        try:
            self.store.write(key, max_age, etag, output, self.transcoder.content_type)
        except CacheError as e:
            logger.warning("cannot write image to cache: %s", e)
