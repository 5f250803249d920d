from __future__ import annotations

DEFAULT_MAX_AGE = 7 * 24 * 60 * 60
# RFC 9111 delta-seconds ceiling; larger values are treated as unparseable.
MAX_DELTA_SECONDS = 2**31


def parse_cache_control(value: str | None) -> dict[str, str]:
    """Split a Cache-Control header into ``{directive: value}``.

    Directives are lower-cased; values are unquoted and lower-cased. A bare
    directive maps to an empty string.
    """
    directives: dict[str, str] = {}
    if not value:
        return directives
    for part in value.split(","):
        token, _, arg = part.strip().partition("=")
        token = token.strip().lower()
        if not token:
            continue
        directives[token] = arg.strip().strip('"').lower()
    return directives


def parse_max_age(value: str | None, default: int = DEFAULT_MAX_AGE) -> int:
    """Effective freshness window in seconds.

    ``s-maxage`` takes precedence over ``max-age``. Unknown freshness falls
    back to ``default`` instead of zero so upstream stays shielded.
    """
    directives = parse_cache_control(value)
    age = directives.get("s-maxage") or directives.get("max-age")
    if not age or not (age.isascii() and age.isdigit()):
        return default
    seconds = int(age)
    if seconds > MAX_DELTA_SECONDS:
        return default
    return seconds
