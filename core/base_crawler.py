from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config.logging_config import log
from config.settings import CrawlTarget
from core.errors import CrawlError
from core.models import Listing


class BaseCrawler(ABC):
    source_name: str

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = "Mozilla/5.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent},
            follow_redirects=True,
            transport=transport,
        )

    async def close(self):
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get(self, url: str) -> httpx.Response:
        r = await self.client.get(url)
        r.raise_for_status()
        return r

    async def fetch(self, url: str) -> httpx.Response:
        try:
            return await self._get(url)
        except httpx.HTTPError as e:
            log.error(f"[{self.source_name}] Request failed for {url}: {e}")
            raise CrawlError(f"Request failed for {url}: {e}", context=self.source_name) from e

    def skeleton(self, target: CrawlTarget) -> Listing:
        return Listing.skeleton(self.source_name, target.city)

    @abstractmethod
    def crawl(self, target: CrawlTarget) -> AsyncIterator[Listing]:
        """
        Yields skeleton or filled listings for one crawl-target.
        Should handle pagination internally and raise CrawlError on failure.
        """
