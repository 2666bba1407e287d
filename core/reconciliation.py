import asyncio
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from config.logging_config import log
from core.errors import ReconciliationError
from core.models import Listing, normalize_title
from database.history import HistoryStore


class Classification(Enum):
    NEW = "new"
    DUPLICATE = "duplicate"
    UPDATED = "updated"

    @property
    def deliverable(self) -> bool:
        return self is not Classification.DUPLICATE


@dataclass(frozen=True)
class ReconcileResult:
    classification: Classification
    listing: Listing
    # set when a fuzzy match moved the history entry to a new identity
    previous_identity: Optional[str] = None


class Reconciler:
    """
    Classifies freshly crawled listings against history as new, duplicate or updated.

    Lookup is by identity first. On a miss, the most recent `window` listings
    of the same city and source are scanned with the normalised-title rule, so
    listings that were reissued under a new external id are still recognised.
    Titles shorter than `min_title_length` (after normalisation) never match
    that way.
    """

    def __init__(self, history: HistoryStore, window: int = 500, min_title_length: int = 0):
        self.history = history
        self.window = window
        self.min_title_length = min_title_length
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def classify(self, listing: Listing) -> ReconcileResult:
        if listing.detail is None:
            raise ValueError(f"Cannot reconcile skeleton listing {listing.identity()}")

        key = listing.identity()
        try:
            stored = self.history.get(key)
            if stored is not None and listing.same_listing(stored):
                if stored.detail == listing.detail:
                    return ReconcileResult(Classification.DUPLICATE, listing)
                return ReconcileResult(Classification.UPDATED, listing)

            match = self._fuzzy_match(listing)
        except ReconciliationError:
            raise
        except Exception as e:
            raise ReconciliationError(f"History unavailable: {e}", context=key) from e

        if match is not None:
            return ReconcileResult(Classification.UPDATED, listing, previous_identity=match.identity())
        return ReconcileResult(Classification.NEW, listing)

    def _fuzzy_match(self, listing: Listing) -> Optional[Listing]:
        title = normalize_title(listing.detail.title)
        if len(title) < self.min_title_length:
            return None

        best = None
        for candidate in self.history.recent(listing.city, listing.source, self.window):
            if candidate.detail is None or normalize_title(candidate.detail.title) != title:
                continue
            # newest observation wins
            if best is None or candidate.observed_at > best.observed_at:
                best = candidate
        return best

    async def reconcile(self, listing: Listing) -> ReconcileResult:
        key = listing.identity()
        async with self._locks[key]:
            result = self.classify(listing)
            if result.classification.deliverable:
                try:
                    self.history.put(key, listing, previous=result.previous_identity)
                except Exception as e:
                    raise ReconciliationError(f"Could not write history: {e}", context=key) from e
                if result.previous_identity and result.previous_identity != key:
                    log.info(f"[{key}] Repointed history from {result.previous_identity}")
            return result
