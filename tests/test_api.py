import os

import pytest
from fastapi.testclient import TestClient

from app.cache import FileSystemCacheStore
from app.cache_codec import decode_entry_name
from app.main import app, get_proxy
from app.proxy import ImageProxy, ImageResult
from app.responses import image_headers
from app.transcode import PillowTranscoder


@pytest.fixture
def proxy(settings, upstream, png_500):
    upstream.content = png_500
    store = FileSystemCacheStore(settings.cache_dir)
    return ImageProxy(store, PillowTranscoder(), settings, transport=upstream.transport)


@pytest.fixture
def client(proxy):
    """TestClient fixture with the proxy wired to a mocked upstream."""
    app.dependency_overrides[get_proxy] = lambda: proxy
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_resize_miss_then_hit(client, upstream, settings):
    params = {"url": "https://example.com/a.jpg", "w": "100", "q": "80"}

    r1 = client.get("/", params=params)
    assert r1.status_code == 200
    assert r1.headers["content-type"] == "image/webp"
    assert r1.headers["x-image-cache"] == "MISS"
    assert r1.headers["cache-control"] == (
        "public, max-age=3600, must-revalidate, stale-while-revalidate=86400, stale-if-error=604800"
    )
    assert r1.headers["cdn-cache-control"] == "max-age=3600"
    assert r1.headers["content-length"] == str(len(r1.content))
    assert r1.headers["etag"].startswith('"')
    assert r1.headers["vary"] == "Accept"
    assert "expires" in r1.headers
    assert "script-src 'none'" in r1.headers["content-security-policy"]
    assert r1.headers["strict-transport-security"].startswith("max-age=31536000")

    # background tasks have run by the time TestClient returns
    assert len(os.listdir(settings.cache_dir)) == 1

    r2 = client.get("/", params=params)
    assert r2.status_code == 200
    assert r2.headers["x-image-cache"] == "HIT"
    assert r2.content == r1.content
    assert r2.headers["etag"] == r1.headers["etag"]
    assert len(upstream.requests) == 1


@pytest.mark.parametrize("cache_control", ["max-age=300000000000", "max-age=10000000000000000000"])
def test_oversized_max_age_is_served_and_cached(client, upstream, settings, cache_control):
    upstream.headers = {"Cache-Control": cache_control, "Content-Type": "image/png"}
    params = {"url": "https://example.com/a.jpg", "w": "100"}

    r1 = client.get("/", params=params)
    assert r1.status_code == 200
    assert r1.headers["cdn-cache-control"] == f"max-age={settings.default_max_age_s}"

    (key,) = os.listdir(settings.cache_dir)
    (name,) = os.listdir(os.path.join(settings.cache_dir, key))
    assert decode_entry_name(name).max_age == settings.default_max_age_s

    r2 = client.get("/", params=params)
    assert r2.status_code == 200
    assert r2.headers["x-image-cache"] == "HIT"
    assert len(upstream.requests) == 1


def test_expires_header_survives_huge_stored_max_age(settings):
    result = ImageResult(body=b"x", content_type="image/webp", max_age=10**15, etag="t", cache="HIT")
    headers = image_headers(result, settings, now=0)
    assert headers["CDN-Cache-Control"] == f"max-age={10**15}"
    assert headers["Expires"].endswith("GMT")


def test_app_serves_across_restarts(proxy):
    app.dependency_overrides[get_proxy] = lambda: proxy
    try:
        for _ in range(2):
            with TestClient(app) as c:
                r = c.get("/", params={"url": "https://example.com/a.jpg", "w": "100"})
                assert r.status_code == 200
    finally:
        app.dependency_overrides.clear()


def test_if_none_match_returns_304(client):
    params = {"url": "https://example.com/a.jpg", "w": "50"}
    r1 = client.get("/", params=params)

    r2 = client.get("/", params=params, headers={"If-None-Match": r1.headers["etag"]})
    assert r2.status_code == 304
    assert r2.content == b""
    assert r2.headers["etag"] == r1.headers["etag"]


def test_unparseable_width_and_quality_default_to_zero(client):
    r = client.get("/", params={"url": "https://example.com/a.jpg", "w": "wide", "q": ""})
    assert r.status_code == 200


def test_missing_url(client):
    r = client.get("/")
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "invalid_request"


def test_forbidden_domain(client, settings, upstream):
    settings.allow_domains = "a.com"
    r = client.get("/", params={"url": "https://b.com/x.jpg"})
    assert r.status_code == 403
    assert r.json()["error"]["message"] == "Domain not allowed"
    assert upstream.requests == []
    assert not os.path.exists(settings.cache_dir)


def test_post_not_allowed(client):
    r = client.post("/", params={"url": "https://example.com/a.jpg"})
    assert r.status_code == 405
    assert r.json()["error"]["status"] == 405


def test_upstream_failure_is_500(client, upstream):
    upstream.status = 502
    r = client.get("/", params={"url": "https://example.com/a.jpg"})
    assert r.status_code == 500
    assert r.json()["error"]["type"] == "upstream_error"


def test_non_image_upstream_is_500(client, upstream):
    upstream.content = b"<html>not an image</html>"
    r = client.get("/", params={"url": "https://example.com/a.jpg"})
    assert r.status_code == 500
    assert r.json()["error"]["message"] == "cannot get metadata"
