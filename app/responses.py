from __future__ import annotations

import time
from email.utils import formatdate
from typing import Optional

from fastapi import Response

from .cache_control import MAX_DELTA_SECONDS
from .config import Settings
from .proxy import ImageResult

CACHE_HEADER = "X-Image-Cache"

SECURITY_HEADERS = {
    "Content-Security-Policy": "script-src 'none'; frame-src 'none'; sandbox;",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
}


def etag_header(identity_tag: str) -> str:
    return f'"{identity_tag}"'


def image_headers(result: ImageResult, settings: Settings, now: Optional[float] = None) -> dict[str, str]:
    now = time.time() if now is None else now
    max_age = result.max_age
    return {
        "Vary": "Accept",
        "Cache-Control": (
            f"public, max-age={max_age}, must-revalidate, "
            f"stale-while-revalidate={settings.stale_while_revalidate_s}, "
            f"stale-if-error={settings.stale_if_error_s}"
        ),
        "CDN-Cache-Control": f"max-age={max_age}",
        "Expires": formatdate(now + min(max_age, MAX_DELTA_SECONDS), usegmt=True),
        "ETag": etag_header(result.etag),
        CACHE_HEADER: result.cache,
        **SECURITY_HEADERS,
    }


def image_response(result: ImageResult, settings: Settings, if_none_match: Optional[str] = None) -> Response:
    headers = image_headers(result, settings)
    if if_none_match and if_none_match.strip() in (headers["ETag"], f"W/{headers['ETag']}", "*"):
        return Response(status_code=304, headers=headers)
    return Response(content=result.body, media_type=result.content_type, headers=headers)
