from typing import AsyncIterator

from pydantic import ValidationError

from config.logging_config import log
from config.settings import CrawlTarget
from core.base_crawler import BaseCrawler
from core.errors import CrawlError
from core.models import Listing, ListingDetail


class JsonFeedCrawler(BaseCrawler):
    """
    Reads a JSON array of listing details from the target's `address` URL.

    Each item carries the ListingDetail fields except contract and property
    type, which come from the target. Items that do not validate are yielded
    as skeletons so the round can count them.
    """

    source_name = "jsonfeed"

    async def crawl(self, target: CrawlTarget) -> AsyncIterator[Listing]:
        response = await self.fetch(target.address)
        try:
            items = response.json()
        except ValueError as e:
            raise CrawlError(f"Feed is not JSON: {e}", context=self.source_name) from e
        if not isinstance(items, list):
            raise CrawlError("Feed must be a JSON array", context=self.source_name)

        for item in items:
            listing = self.skeleton(target)
            try:
                detail = ListingDetail(
                    contract_type=target.contract_type,
                    property_type=target.property_type,
                    **{k: v for k, v in item.items() if k not in ("contract_type", "property_type")},
                )
            except (ValidationError, AttributeError, TypeError) as e:
                log.warning(f"[{self.source_name}] Skipping malformed feed item: {e}")
                yield listing
                continue
            yield listing.fill(detail)
