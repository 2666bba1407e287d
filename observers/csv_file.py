import asyncio
import csv
import io
import threading
from pathlib import Path
from typing import Any, Dict, List, Tuple

from config.logging_config import log
from config.settings import Settings
from core.errors import DeliveryError, SchemaDriftError
from core.models import Listing
from observers.base import Observer


FIELDNAMES: List[str] = [
    "source",
    "source_id",
    "title",
    "url",
    "date",
    "city",
    "price",
    "squaremeters",
    "plot_squaremeters",
    "address",
    "rooms",
    "tags",
    "latitude",
    "longitude",
]


def _as_float(value: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def to_row(listing: Listing) -> Dict[str, Any]:
    detail = listing.detail
    return {
        "source": listing.source,
        "source_id": detail.externalid,
        "title": detail.title,
        "url": detail.url,
        "date": int(listing.observed_at.timestamp()),
        "city": listing.city,
        "price": detail.price,
        "squaremeters": detail.squaremeters,
        "plot_squaremeters": detail.plot_squaremeters or 0.0,
        "address": detail.address,
        "rooms": detail.rooms,
        "tags": ",".join(sorted(detail.tags)),
        "latitude": _as_float(listing.enrichments.get("latitude", "0")),
        "longitude": _as_float(listing.enrichments.get("longitude", "0")),
    }


def render(listing: Listing) -> Tuple[str, str]:
    """Returns (header line, data line), both with their line terminator."""
    buf = io.StringIO()
    w = csv.DictWriter(buf, fieldnames=FIELDNAMES)
    w.writeheader()
    header_end = buf.tell()
    w.writerow(to_row(listing))
    text = buf.getvalue()
    return text[:header_end], text[header_end:]


class CsvObserver(Observer):
    name = "csv"

    def __init__(self):
        self._lock = threading.Lock()

    def _append(self, path: Path, listing: Listing) -> None:
        header, row = render(listing)
        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a+", newline="", encoding="utf-8") as f:
                f.seek(0)
                first_line = f.readline()
                if not first_line:
                    f.write(header)
                elif first_line.rstrip("\r\n") != header.rstrip("\r\n"):
                    log.critical(f"CSV file {path} already present, but columns are not compatible!")
                    log.critical(f"Expected: '{header.strip()}', but was: '{first_line.strip()}'")
                    raise SchemaDriftError(
                        f"CSV header mismatch in {path}", context=self.name
                    )
                f.write(row)

    async def deliver(self, settings: Settings, listing: Listing) -> None:
        path = Path(settings.csv.filename)
        try:
            await asyncio.to_thread(self._append, path, listing)
        except OSError as e:
            raise DeliveryError(f"Could not write {path}: {e}", context=self.name) from e
