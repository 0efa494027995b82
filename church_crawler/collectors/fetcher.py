"""
Async HTML fetcher for the site crawler.

One anonymous GET at a time with a fixed browser User-Agent. HTTP and
network failures never raise: they come back as a failed FetchResult with
an error string, and callers decide whether the failure is fatal.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import httpx

from ..constants import (
    CONNECT_TIMEOUT_SECONDS,
    DEFAULT_HEADERS,
    HEAD_TIMEOUT_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

META_CHARSET_RE = re.compile(rb"""<meta[^>]+charset=["']?([\w-]+)""", re.IGNORECASE)


@dataclass
class FetchResult:
    """Result of one page fetch."""

    url: str
    success: bool
    html: Optional[str] = None
    final_url: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None


def decode_html(response: httpx.Response) -> str:
    """
    Decode a response body.

    Many Korean sites serve EUC-KR without a charset header, so the
    <meta charset> declaration wins when the header is silent.
    """
    if response.charset_encoding:
        return response.text
    match = META_CHARSET_RE.search(response.content[:4096])
    encoding = match.group(1).decode("ascii", "ignore") if match else "utf-8"
    try:
        return response.content.decode(encoding, errors="replace")
    except LookupError:
        return response.content.decode("utf-8", errors="replace")


class PageFetcher:
    """
    Thin wrapper around httpx.AsyncClient.

    Usage:
        async with PageFetcher() as fetcher:
            result = await fetcher.fetch("https://church.org/")
            if result.success:
                ...
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        """
        Args:
            transport: Optional httpx transport (tests pass httpx.MockTransport)
            timeout: Per-request timeout in seconds
        """
        self._transport = transport
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None
        self.fetch_count = 0

    async def __aenter__(self) -> "PageFetcher":
        self._client = httpx.AsyncClient(
            headers=DEFAULT_HEADERS,
            follow_redirects=True,
            timeout=httpx.Timeout(self._timeout, connect=CONNECT_TIMEOUT_SECONDS),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("PageFetcher used outside 'async with'")
        return self._client

    async def fetch(self, url: str) -> FetchResult:
        """
        GET a page.

        Returns:
            FetchResult; success only for HTTP 200
        """
        self.fetch_count += 1
        try:
            response = await self.client.get(url)
        except httpx.TimeoutException:
            logger.debug(f"Timeout fetching {url}")
            return FetchResult(url=url, success=False, error="Timeout")
        except httpx.HTTPError as e:
            logger.debug(f"Network error fetching {url}: {e}")
            return FetchResult(url=url, success=False, error=str(e) or type(e).__name__)

        if response.status_code != 200:
            return FetchResult(
                url=url,
                success=False,
                status_code=response.status_code,
                error=f"HTTP {response.status_code}",
            )

        return FetchResult(
            url=url,
            success=True,
            html=decode_html(response),
            final_url=str(response.url),
            status_code=200,
        )

    async def head_ok(self, url: str) -> bool:
        """HEAD probe; True only for a 2xx answer."""
        try:
            response = await self.client.head(url, timeout=HEAD_TIMEOUT_SECONDS)
        except httpx.HTTPError:
            return False
        return response.is_success
