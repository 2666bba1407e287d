import os
import sys
from datetime import datetime, timezone

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from config.settings import CrawlTarget, Settings
from core.models import ContractType, Listing, ListingDetail, PropertyType


def make_detail(**overrides) -> ListingDetail:
    values = dict(
        price=1000.0,
        contract_type=ContractType.RENT,
        property_type=PropertyType.FLAT,
        squaremeters=70.0,
        address="Leopoldstr. 1",
        title="Nice Flat",
        externalid="123",
        rooms=3.0,
        tags=frozenset(),
        url="https://example.com/123",
    )
    values.update(overrides)
    return ListingDetail(**values)


def make_listing(source="siteA", city="Munich", observed_at=None, **detail_overrides) -> Listing:
    listing = Listing(
        source=source,
        city=city,
        observed_at=observed_at or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )
    return listing.fill(make_detail(**detail_overrides))


def make_target(**overrides) -> CrawlTarget:
    values = dict(
        city="Munich",
        address="https://feeds.example.com/munich.json",
        crawler="fake",
        contract_type=ContractType.RENT,
        property_type=PropertyType.FLAT,
    )
    values.update(overrides)
    return CrawlTarget(**values)


def make_settings(**overrides) -> Settings:
    values = dict(history_path=None, timeout=5.0)
    values.update(overrides)
    return Settings(**values)
