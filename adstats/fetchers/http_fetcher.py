"""
HTTP Fetcher Module

Async HTTP client for Ad Library pages.
Uses httpx with browser-like headers and a hard per-request timeout.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlencode

import httpx

from adstats.config import config
from adstats.stealth.user_agents import UserAgentRotator


def build_ad_library_url(page_id: str, country: str = "ALL", base_url: str | None = None) -> str:
    """Build the Ad Library URL listing a page's active ads."""
    params = {
        "active_status": "active",
        "ad_type": "all",
        "country": country,
        "is_targeted_country": "false",
        "media_type": "all",
        "search_type": "page",
        "view_all_page_id": page_id,
    }
    return f"{base_url or config.fetch.base_url}?{urlencode(params)}"


def parse_retry_after(value: str | None) -> Optional[float]:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class FetchError(Exception):
    """Raised when a page could not be fetched."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        timed_out: bool = False,
        retry_after: float | None = None,
        final_url: str = "",
        body: str = "",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.timed_out = timed_out
        self.retry_after = retry_after
        self.final_url = final_url
        self.body = body


@dataclass
class FetchResult:
    """Result of a fetch operation."""

    url: str
    status_code: int
    content: str = ""
    headers: dict = field(default_factory=dict)
    response_time: float = 0.0
    error: Optional[str] = None
    final_url: str = ""
    timed_out: bool = False

    @property
    def success(self) -> bool:
        """Check if fetch was successful."""
        return 200 <= self.status_code < 300 and self.error is None

    def to_error(self) -> FetchError:
        """Describe a failed fetch as a FetchError."""
        if self.error:
            message = self.error
        else:
            message = f"HTTP {self.status_code}"
        return FetchError(
            message,
            status_code=self.status_code,
            timed_out=self.timed_out,
            retry_after=parse_retry_after(self.headers.get("retry-after")),
            final_url=self.final_url or self.url,
            body=self.content[:2000],
        )


class HTTPFetcher:
    """
    Async HTTP fetcher for Ad Library pages.

    Features:
    - User-Agent rotation per request
    - Automatic header management
    - Hard timeout per request
    - Response time tracking

    Example:
        fetcher = HTTPFetcher()
        html = await fetcher.fetch_page(build_ad_library_url("123", "US"))
    """

    def __init__(
        self,
        user_agent_rotator: UserAgentRotator | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the HTTP fetcher.

        Args:
            user_agent_rotator: UA rotator instance (creates default if None)
            timeout: Request timeout in seconds (default from config)
            transport: Custom httpx transport (mainly for tests)
        """
        self._ua_rotator = user_agent_rotator or UserAgentRotator()
        self._timeout = timeout or config.fetch.timeout
        self._transport = transport

    async def fetch(
        self,
        url: str,
        headers: dict | None = None,
        timeout: float | None = None,
    ) -> FetchResult:
        """
        Fetch a URL and return the content.

        Args:
            url: The URL to fetch
            headers: Optional headers (rotated browser headers if None)
            timeout: Per-call timeout override in seconds

        Returns:
            FetchResult with content and metadata
        """
        request_headers = headers if headers is not None else self._ua_rotator.get_headers()
        timeout = timeout or self._timeout

        start_time = time.time()

        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                http2=config.fetch.http2,
                transport=self._transport,
            ) as client:
                # httpx limits each phase; the whole request gets one deadline
                response = await asyncio.wait_for(
                    client.get(url, headers=request_headers),
                    timeout,
                )

                return FetchResult(
                    url=url,
                    status_code=response.status_code,
                    content=response.text,
                    headers=dict(response.headers),
                    response_time=time.time() - start_time,
                    final_url=str(response.url),
                )

        except (httpx.TimeoutException, asyncio.TimeoutError):
            return FetchResult(
                url=url,
                status_code=0,
                error="Request timed out",
                response_time=time.time() - start_time,
                timed_out=True,
            )
        except httpx.RequestError as e:
            return FetchResult(
                url=url,
                status_code=0,
                error=str(e) or e.__class__.__name__,
                response_time=time.time() - start_time,
            )

    async def fetch_page(
        self,
        url: str,
        headers: dict | None = None,
        timeout: float | None = None,
    ) -> str:
        """
        Fetch a page body.

        Raises:
            FetchError: On timeout, connection failure or non-2xx status
        """
        result = await self.fetch(url, headers=headers, timeout=timeout)
        if not result.success:
            raise result.to_error()
        return result.content
