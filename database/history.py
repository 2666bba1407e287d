import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from config.logging_config import log
from core.errors import ReconciliationError
from core.models import Listing


class HistoryStore(ABC):
    """Identity-keyed record of the last seen state of every listing."""

    @abstractmethod
    def get(self, identity: str) -> Optional[Listing]:
        ...

    @abstractmethod
    def put(self, identity: str, listing: Listing, previous: Optional[str] = None) -> None:
        """Stores `listing` under `identity`. A different `previous` key is dropped (repointing)."""

    @abstractmethod
    def recent(self, city: str, source: str, limit: int) -> List[Listing]:
        """Newest-first listings of one city and source, at most `limit`."""

    @abstractmethod
    def __len__(self) -> int:
        ...


class MemoryHistoryStore(HistoryStore):
    def __init__(self, snapshot_path: Optional[Path] = None):
        self.snapshot_path = Path(snapshot_path) if snapshot_path else None
        self._items: Dict[str, Listing] = {}
        self._lock = threading.RLock()

    def get(self, identity: str) -> Optional[Listing]:
        with self._lock:
            return self._items.get(identity)

    def put(self, identity: str, listing: Listing, previous: Optional[str] = None) -> None:
        with self._lock:
            if previous and previous != identity:
                self._items.pop(previous, None)
            self._items[identity] = listing

    def recent(self, city: str, source: str, limit: int) -> List[Listing]:
        with self._lock:
            scoped = [l for l in self._items.values() if l.city == city and l.source == source]
        scoped.sort(key=lambda l: l.observed_at, reverse=True)
        return scoped[:limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def load(self) -> int:
        """
        Loads the JSON snapshot, if any. Returns the number of listings read.
        Structure: {identity: listing document}
        """
        if not self.snapshot_path or not self.snapshot_path.exists():
            return 0
        try:
            raw = json.loads(self.snapshot_path.read_text(encoding="utf-8"))
            items = {key: Listing.model_validate(doc) for key, doc in raw.items()}
        except (OSError, ValueError, AttributeError, ValidationError) as e:
            raise ReconciliationError(f"Could not load history snapshot: {e}", context=str(self.snapshot_path)) from e
        with self._lock:
            self._items = items
        log.info(f"History loaded: {len(items)} listings from {self.snapshot_path}")
        return len(items)

    def save(self) -> None:
        if not self.snapshot_path:
            return
        with self._lock:
            payload = {key: listing.to_document() for key, listing in self._items.items()}
        self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.snapshot_path.with_suffix(".tmp")
        tmp.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.snapshot_path)
