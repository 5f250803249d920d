import time
import uuid
from typing import Optional
from urllib.parse import urlparse

from pydantic import AnyHttpUrl, TypeAdapter

from .errors import PolicyError, ValidationError

_HTTP_URL = TypeAdapter(AnyHttpUrl)


def get_request_id() -> str:
    """Generate a unique request ID."""
    return str(uuid.uuid4())


def elapsed_ms(start: float) -> int:
    """Calculate elapsed milliseconds from start time."""
    return int((time.perf_counter() - start) * 1000)


def parse_int(value: Optional[str], default: int = 0) -> int:
    """Lenient integer parse for query parameters."""
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def validate_url(u: str) -> str:
    """Validate URL format and length."""
    if len(u) > 2048:
        raise ValidationError("url too long")
    if not (u.startswith("http://") or u.startswith("https://")):
        raise ValidationError("Invalid url")

    try:
        _HTTP_URL.validate_python(u)  # only for validation
    except ValueError:
        raise ValidationError("Invalid url") from None
    return u


def resolve_source_url(src: str, base_url: str = "") -> str:
    """Turn the ``url`` query parameter into an absolute http(s) URL.

    Sources that do not start with ``http`` are appended to ``base_url`` as a
    path.
    """
    src = src.strip()
    if not src:
        raise ValidationError("missing url")
    if not src.startswith("http"):
        if not base_url:
            raise ValidationError("Invalid url")
        src = base_url.rstrip("/") + "/" + src.lstrip("/")
    return validate_url(src)


def url_host(url: str) -> str:
    host = urlparse(url).hostname
    if not host:
        raise ValidationError("Invalid url")
    return host.lower()


def check_domain(host: str, allow_domains: str, mode: str = "exact") -> None:
    """Raise PolicyError unless ``host`` may be proxied.

    An empty allowlist admits every host. ``exact`` compares against the
    comma-separated entries; ``contains`` is the legacy substring test against
    the raw allowlist string.
    """
    if not allow_domains.strip():
        return
    if mode == "contains":
        allowed = host in allow_domains
    else:
        allowed = host in {d.strip().lower() for d in allow_domains.split(",") if d.strip()}
    if not allowed:
        raise PolicyError("Domain not allowed")


def negotiated_media_type(accept: Optional[str]) -> str:
    """Best-effort media type from an Accept header: the first entry, without
    parameters, lower-cased. Empty when absent or unparseable."""
    if not accept:
        return ""
    first = accept.split(",", 1)[0]
    media_type = first.split(";", 1)[0].strip().lower()
    if media_type.count("/") != 1:
        return ""
    return media_type
