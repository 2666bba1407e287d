import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


_NON_ALNUM_RE = re.compile(r"[^0-9a-z]+")


class ContractType(str, Enum):
    RENT = "rent"
    BUY = "buy"


class PropertyType(str, Enum):
    HOUSE = "house"
    FLAT = "flat"


def normalize_title(title: str) -> str:
    """Lower-cases and keeps only ASCII letters and digits."""
    return _NON_ALNUM_RE.sub("", (title or "").lower())


class ListingDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    price: float
    contract_type: ContractType
    property_type: PropertyType
    squaremeters: float
    plot_squaremeters: Optional[float] = None  # houses / plots only
    address: str
    title: str
    externalid: str
    rooms: float  # 3.5 rooms is a thing
    tags: FrozenSet[str] = Field(default_factory=frozenset)
    url: str = ""

    @field_validator("address", "title", "externalid", "url", mode="before")
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return ""
        return str(v).strip()


class Listing(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    city: str
    observed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    detail: Optional[ListingDetail] = None
    # side-channel data (latitude, longitude, ...); never part of identity
    enrichments: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def skeleton(cls, source: str, city: str) -> "Listing":
        return cls(source=source, city=city)

    @property
    def is_skeleton(self) -> bool:
        return self.detail is None

    def fill(self, detail: ListingDetail) -> "Listing":
        return self.model_copy(update={"detail": detail})

    def with_enrichments(self, **values: str) -> "Listing":
        merged = dict(self.enrichments)
        merged.update({k: str(v) for k, v in values.items()})
        return self.model_copy(update={"enrichments": merged})

    def identity(self) -> str:
        if self.detail is not None:
            return f"{self.source}-{self.detail.externalid}"
        return f"{self.source}-{int(self.observed_at.timestamp())}"

    def same_listing(self, other: "Listing") -> bool:
        return self._same_external_id(other) or self._same_title(other)

    def _same_external_id(self, other: "Listing") -> bool:
        return (
            self.city == other.city
            and self.source == other.source
            and self.detail is not None
            and other.detail is not None
            and self.detail.externalid == other.detail.externalid
        )

    def _same_title(self, other: "Listing") -> bool:
        # two skeletons are never the same listing
        if self.detail is None or other.detail is None:
            return False
        return self.city == other.city and normalize_title(self.detail.title) == normalize_title(
            other.detail.title
        )

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(mode="json")
        if self.detail is not None:
            doc["detail"]["tags"] = sorted(self.detail.tags)
        doc["identity"] = self.identity()
        return doc


def identity(listing: Listing) -> str:
    return listing.identity()


def same_listing(a: Listing, b: Listing) -> bool:
    return a.same_listing(b)
