"""HTTP feed fetcher with retries."""

import asyncio
import time
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit, unquote

import aiohttp
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential
import structlog

from .interfaces import FetcherInterface, FetchResult
from ..config.settings import settings
from ..errors import FetchError

logger = structlog.get_logger()

_RETRYABLE = (aiohttp.ClientConnectionError, aiohttp.ServerTimeoutError, asyncio.TimeoutError)


class HTTPFetcher(FetcherInterface):
    """Async feed fetcher. Handles http(s) and file URLs."""

    def __init__(self, timeout_seconds: int = None, user_agent: str = None):
        self.session: Optional[aiohttp.ClientSession] = None
        self.timeout_seconds = timeout_seconds or settings.fetch_timeout_seconds
        self.user_agent = user_agent or settings.user_agent

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            headers={"User-Agent": self.user_agent}
        )
        return self

    async def __aexit__(self, *args):
        if self.session:
            await self.session.close()
            self.session = None

    async def fetch(self, url: str) -> FetchResult:
        """Download one feed."""
        start_time = time.time()
        scheme = urlsplit(url).scheme.lower()

        try:
            if scheme == "file":
                result = await self._read_file(url)
            elif scheme in ("http", "https"):
                result = await self._get(url)
            else:
                raise FetchError(url, f"unsupported URL scheme {scheme!r}")
        except FetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.warning("feed_fetch_failed", feed=url, error=str(e))
            raise FetchError(url, str(e) or type(e).__name__, e) from e

        logger.debug(
            "feed_downloaded",
            feed=url,
            size=len(result.raw),
            time_ms=int((time.time() - start_time) * 1000)
        )
        return result

    @retry(
        stop=stop_after_attempt(settings.fetch_max_retries),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(_RETRYABLE),
        reraise=True
    )
    async def _get(self, url: str) -> FetchResult:
        if self.session is None:
            raise FetchError(url, "fetcher used outside of its context manager")
        async with self.session.get(url) as response:
            if response.status >= 400:
                raise FetchError(url, f"HTTP {response.status}")
            raw = await response.read()
            return FetchResult(url=str(response.url), raw=raw, encoding=response.charset)

    async def _read_file(self, url: str) -> FetchResult:
        path = Path(unquote(urlsplit(url).path))
        raw = await asyncio.to_thread(path.read_bytes)
        return FetchResult(url=url, raw=raw, encoding=None)
