from __future__ import annotations


class ProxyError(Exception):
    """Base for failures that are reported to the client."""

    status_code = 500
    error_type = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ProxyError):
    status_code = 400
    error_type = "invalid_request"


class PolicyError(ProxyError):
    status_code = 403
    error_type = "forbidden"


class MethodNotAllowedError(ProxyError):
    status_code = 405
    error_type = "method_not_allowed"


class UpstreamError(ProxyError):
    status_code = 500
    error_type = "upstream_error"


class ProcessingError(ProxyError):
    status_code = 500
    error_type = "processing_error"


class CacheError(Exception):
    """Cache subsystem failure. Never surfaced to the client."""


class CacheReadError(CacheError):
    pass


class MalformedEntryName(CacheReadError):
    pass


class CacheWriteError(CacheError):
    pass
