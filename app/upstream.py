from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from .errors import UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class UpstreamImage:
    content: bytes
    headers: Dict[str, str]
    status: int


async def fetch_image(
    url: str,
    timeout_s: float,
    user_agent: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> UpstreamImage:
    """
    Fetch the source image with a single GET, no retries.
    Raises UpstreamError on network failure or a non-2xx status.
    """
    headers = {"User-Agent": user_agent, "Accept": "image/*,*/*;q=0.8"}
    timeout = httpx.Timeout(
        connect=timeout_s,
        read=timeout_s,
        write=timeout_s,
        pool=timeout_s
    )

    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            headers=headers,
            follow_redirects=True,
            transport=transport,
        ) as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        logger.warning("upstream fetch failed for %s: %s", url, e)
        raise UpstreamError("cannot get upstream url") from e

    if not response.is_success:
        logger.warning("upstream returned %d for %s", response.status_code, url)
        raise UpstreamError(f"upstream returned {response.status_code}")

    return UpstreamImage(
        content=response.content,
        headers={k.lower(): v for k, v in response.headers.items()},
        status=response.status_code,
    )
