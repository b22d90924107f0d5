"""HTTP client for upstream schedule pages, with retries."""
import logging

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from outage_snapshots.config import config
from outage_snapshots.errors import UpstreamError

logger = logging.getLogger(__name__)


class RetryableStatus(Exception):
    """Raised inside the retry loop for 429/5xx responses."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code} for {response.url}")
        self.response = response


def is_retryable_status(response: httpx.Response) -> bool:
    """Check if status code is retryable."""
    return response.status_code in (429, 500, 502, 503, 504)


class SourceClient:
    """Async client that downloads the HTML pages embedding schedule literals."""

    def __init__(self, timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.client = httpx.AsyncClient(
            timeout=timeout or config.FETCH_TIMEOUT,
            follow_redirects=True,
            headers={
                "User-Agent": config.USER_AGENT,
                "Accept": "text/html,application/xhtml+xml",
                "Accept-Language": "uk-UA,uk;q=0.9,en;q=0.5",
            },
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(config.MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError, RetryableStatus)),
        reraise=True,
    )
    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self.client.get(url)
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            logger.warning(f"Network error for {url}: {e}")
            raise
        if is_retryable_status(response):
            logger.warning(f"Retryable status {response.status_code} for {url}")
            raise RetryableStatus(response)
        return response

    async def fetch_page(self, url: str) -> str:
        """Fetch ``url`` and return its body, raising UpstreamError on failure."""
        try:
            response = await self._get(url)
        except RetryableStatus as e:
            raise UpstreamError(str(e), code=e.response.status_code) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Request to {url} failed: {e}") from e

        if response.status_code >= 400:
            raise UpstreamError(f"HTTP {response.status_code} for {url}", code=response.status_code)
        logger.info(f"Fetched {url} ({len(response.content)} bytes)")
        return response.text
