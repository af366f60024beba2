"""
Tests for the HTTP fetcher module.
"""

import asyncio
import time
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from adstats.fetchers.http_fetcher import (
    FetchError,
    HTTPFetcher,
    build_ad_library_url,
    parse_retry_after,
)


def make_fetcher(handler) -> HTTPFetcher:
    return HTTPFetcher(transport=httpx.MockTransport(handler), timeout=5)


def trickling_handler(request: httpx.Request) -> httpx.Response:
    """Serve a body one byte per 100 ms, well under any read timeout."""

    async def trickle():
        for _ in range(20):
            await asyncio.sleep(0.1)
            yield b"x"

    return httpx.Response(200, content=trickle())


class TestBuildAdLibraryUrl:
    """Tests for build_ad_library_url."""

    def test_query(self):
        url = build_ad_library_url("12345", "US")
        query = parse_qs(urlparse(url).query)

        assert url.startswith("https://www.facebook.com/ads/library/?")
        assert query["view_all_page_id"] == ["12345"]
        assert query["country"] == ["US"]
        assert query["active_status"] == ["active"]
        assert query["search_type"] == ["page"]

    def test_custom_base(self):
        assert build_ad_library_url("1", base_url="http://test/").startswith("http://test/?")


class TestParseRetryAfter:
    """Tests for parse_retry_after."""

    def test_values(self):
        assert parse_retry_after("120") == 120.0
        assert parse_retry_after(None) is None
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None


class TestHTTPFetcher:
    """Tests for HTTPFetcher class."""

    @pytest.mark.asyncio
    async def test_fetch_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["ua"] = request.headers.get("user-agent")
            return httpx.Response(200, text='{"count": 3}')

        result = await make_fetcher(handler).fetch("https://example.com/page")

        assert result.success
        assert result.content == '{"count": 3}'
        assert result.final_url == "https://example.com/page"
        assert seen["ua"].startswith("Mozilla/5.0")

    @pytest.mark.asyncio
    async def test_fetch_uses_given_headers(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=request.headers["user-agent"])

        result = await make_fetcher(handler).fetch("https://example.com", headers={"User-Agent": "custom-agent"})
        assert result.content == "custom-agent"

    @pytest.mark.asyncio
    async def test_fetch_page_rate_limited(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, headers={"Retry-After": "90"}, text="slow down")

        with pytest.raises(FetchError) as exc_info:
            await make_fetcher(handler).fetch_page("https://example.com")

        error = exc_info.value
        assert error.status_code == 429
        assert error.retry_after == 90.0
        assert error.body == "slow down"
        assert str(error) == "HTTP 429"

    @pytest.mark.asyncio
    async def test_fetch_page_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(FetchError) as exc_info:
            await make_fetcher(handler).fetch_page("https://example.com")

        assert exc_info.value.timed_out is True
        assert exc_info.value.status_code == 0

    @pytest.mark.asyncio
    async def test_fetch_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        result = await make_fetcher(handler).fetch("https://example.com")

        assert not result.success
        assert result.status_code == 0
        assert result.error == "connection refused"
        assert not result.timed_out

    @pytest.mark.asyncio
    async def test_redirect_followed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/ads":
                return httpx.Response(302, headers={"Location": "https://example.com/checkpoint/"})
            return httpx.Response(400, text="verify")

        with pytest.raises(FetchError) as exc_info:
            await make_fetcher(handler).fetch_page("https://example.com/ads")

        assert exc_info.value.final_url == "https://example.com/checkpoint/"

    @pytest.mark.asyncio
    async def test_slow_body_hits_overall_deadline(self):
        """Test a body trickling in under the read timeout still ends at the deadline."""
        fetcher = HTTPFetcher(transport=httpx.MockTransport(trickling_handler), timeout=0.3)

        start = time.monotonic()
        result = await fetcher.fetch("https://example.com")
        elapsed = time.monotonic() - start

        assert result.timed_out is True
        assert result.status_code == 0
        assert elapsed < 1.0

    @pytest.mark.asyncio
    async def test_per_call_timeout_overrides_default(self):
        with pytest.raises(FetchError) as exc_info:
            await make_fetcher(trickling_handler).fetch_page("https://example.com", timeout=0.3)

        assert exc_info.value.timed_out is True
