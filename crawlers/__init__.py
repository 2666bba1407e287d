from typing import Dict, Type

from core.base_crawler import BaseCrawler
from core.errors import ConfigError
from crawlers.json_feed import JsonFeedCrawler

CRAWLERS: Dict[str, Type[BaseCrawler]] = {
    JsonFeedCrawler.source_name: JsonFeedCrawler,
}


def register_crawler(crawler_cls: Type[BaseCrawler]) -> Type[BaseCrawler]:
    CRAWLERS[crawler_cls.source_name] = crawler_cls
    return crawler_cls


def build_crawler(name: str, **kwargs) -> BaseCrawler:
    try:
        crawler_cls = CRAWLERS[name]
    except KeyError:
        raise ConfigError(f"Unknown crawler '{name}'. Known: {sorted(CRAWLERS)}")
    return crawler_cls(**kwargs)


__all__ = ["CRAWLERS", "BaseCrawler", "JsonFeedCrawler", "build_crawler", "register_crawler"]
