"""Image Resize Proxy – FastAPI entrypoint"""

from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .cache import CacheStore, FileSystemCacheStore, MemoryCacheStore
from .config import Settings, settings
from .errors import ProxyError
from .models import ErrorResponse, HealthResponse
from .proxy import ImageProxy, ImageRequest
from .responses import CACHE_HEADER, image_response
from .transcode import PillowTranscoder
from .utils import elapsed_ms, get_request_id, parse_int

VERSION = "1.0.0"

logger = logging.getLogger("app")
access_logger = logging.getLogger("app.access")

# Error Responses (structured)
error_responses = {
    400: {"model": ErrorResponse, "description": "Bad Request - missing or invalid url"},
    403: {"model": ErrorResponse, "description": "Forbidden - source domain not allowed"},
    405: {"model": ErrorResponse, "description": "Method Not Allowed - only GET is served"},
    500: {"model": ErrorResponse, "description": "Upstream fetch or image processing failed"},
}

TAGS_METADATA = [
    {"name": "Health", "description": "Health check endpoint"},
    {"name": "Core", "description": "Resize and transcode remote images"},
]

APP_DESCRIPTION = """
Image Resize Proxy

Fetches a remote image, resizes it to the requested width, re-encodes it and
caches the result on disk.

Example:

    curl 'http://localhost:8080/?url=https://example.com/a.jpg&w=320&q=80'
"""

_proxy: Optional[ImageProxy] = None


def build_store(cfg: Settings) -> CacheStore:
    if cfg.cache_backend == "memory":
        return MemoryCacheStore()
    return FileSystemCacheStore(cfg.cache_dir)


def build_proxy(cfg: Settings) -> ImageProxy:
    return ImageProxy(
        store=build_store(cfg),
        transcoder=PillowTranscoder(cfg.output_format),
        settings=cfg,
    )


def get_proxy() -> ImageProxy:
    global _proxy
    if _proxy is None:
        _proxy = build_proxy(settings)
    return _proxy


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("allow domains: %s", settings.allow_domains.split(",") if settings.allow_domains else "*")
    yield


# Initialize app
app = FastAPI(
    title="Image Resize Proxy",
    version=VERSION,
    description=APP_DESCRIPTION,
    openapi_tags=TAGS_METADATA,
    lifespan=lifespan,
)

# uptime
start_time = time.time()


# Routes
@app.get("/v1/health", tags=["Health"], response_model=HealthResponse)
async def health():
    return {"status": "ok", "version": VERSION, "uptime_s": int(time.time() - start_time)}


@app.api_route(
    "/",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"],
    tags=["Core"],
    responses={200: {"content": {"image/webp": {}}, "description": "Resized image"}, **error_responses},
)
async def resize(
    request: Request,
    background_tasks: BackgroundTasks,
    proxy: ImageProxy = Depends(get_proxy),
) -> Response:
    params = request.query_params
    result = await proxy.handle(
        ImageRequest(
            url=params.get("url", ""),
            width=parse_int(params.get("w")),
            quality=parse_int(params.get("q")),
            accept=request.headers.get("accept"),
            method=request.method,
        ),
        background_tasks,
    )
    return image_response(result, proxy.settings, request.headers.get("if-none-match"))


# Exception handlers
def _error(status: int, type_: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": {"type": type_, "message": message, "status": status, "details": None}})


@app.exception_handler(ProxyError)
async def _proxy_error_handler(request: Request, exc: ProxyError):
    return _error(exc.status_code, exc.error_type, exc.message)


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, "http_error", str(exc.detail))


@app.exception_handler(Exception)
async def _fallback_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s", request.url.path)
    return _error(500, "internal_error", "unexpected error")


# Middlewares: security + request-id
class SecurityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = get_request_id()
        start = time.perf_counter()
        response = await call_next(request)
        response.headers.setdefault("X-Request-ID", request_id)
        access_logger.info(json.dumps({
            "ts": int(time.time()),
            "rid": request_id,
            "ip": request.client.host if request.client else "-",
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "cache": response.headers.get(CACHE_HEADER, "-"),
            "lat_ms": elapsed_ms(start),
            "user_agent": request.headers.get("user-agent", "-"),
        }))
        return response


app.add_middleware(SecurityMiddleware)
app.add_middleware(RequestIDMiddleware)
