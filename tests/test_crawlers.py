import asyncio

import httpx
import pytest

from helpers import make_target

from core.errors import ConfigError, CrawlError
from crawlers import CRAWLERS, JsonFeedCrawler, build_crawler


def collect(crawler, target):
    async def run():
        try:
            return [listing async for listing in crawler.crawl(target)]
        finally:
            await crawler.close()

    return asyncio.run(run())


def feed(handler):
    return JsonFeedCrawler(transport=httpx.MockTransport(handler))


def test_registry_knows_jsonfeed():
    assert CRAWLERS["jsonfeed"] is JsonFeedCrawler
    crawler = build_crawler("jsonfeed", timeout=5.0)
    assert isinstance(crawler, JsonFeedCrawler)
    asyncio.run(crawler.close())


def test_unknown_crawler_is_config_error():
    with pytest.raises(ConfigError):
        build_crawler("does-not-exist")


def test_feed_items_become_filled_listings():
    items = [
        {"price": 950, "squaremeters": 55, "address": "Hauptstr. 3", "title": "Cosy flat",
         "externalid": "a1", "rooms": 2, "tags": ["balcony"], "url": "https://feed.test/a1"},
        {"title": "broken item without price"},
    ]
    target = make_target(crawler="jsonfeed", address="https://feed.test/items.json")

    listings = collect(feed(lambda request: httpx.Response(200, json=items)), target)

    assert len(listings) == 2
    first, second = listings
    assert first.identity() == "jsonfeed-a1"
    assert first.city == "Munich"
    assert first.detail.contract_type is target.contract_type
    assert first.detail.tags == frozenset({"balcony"})
    assert second.is_skeleton


def test_feed_http_error_is_crawl_error():
    target = make_target(crawler="jsonfeed", address="https://feed.test/items.json")
    with pytest.raises(CrawlError):
        collect(feed(lambda request: httpx.Response(500)), target)


def test_feed_must_be_a_list():
    target = make_target(crawler="jsonfeed", address="https://feed.test/items.json")
    with pytest.raises(CrawlError):
        collect(feed(lambda request: httpx.Response(200, json={"items": []})), target)
