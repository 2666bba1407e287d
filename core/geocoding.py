from typing import Optional, Protocol

import httpx
from pydantic import BaseModel
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config.logging_config import log
from core.errors import EnrichmentError


class Coordinates(BaseModel):
    latitude: float
    longitude: float
    uncertainty: float = 0.0


class Geocoder(Protocol):
    async def geocode(self, address: str) -> Optional[Coordinates]:
        ...


class NominatimGeocoder:
    """
    Geocoder backed by a Nominatim search endpoint.
    Returns None when nothing matched, raises EnrichmentError when the lookup failed.
    """

    def __init__(
        self,
        nominatim_url: str,
        user_agent: str = "propwatch",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.nominatim_url = nominatim_url
        self.user_agent = user_agent
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": user_agent},
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> "NominatimGeocoder":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self):
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _search(self, address: str) -> list:
        r = await self.client.get(
            self.nominatim_url,
            params={"q": address, "format": "jsonv2", "limit": 1},
        )
        r.raise_for_status()
        return r.json()

    async def geocode(self, address: str) -> Optional[Coordinates]:
        try:
            payload = await self._search(address)
        except (httpx.HTTPError, ValueError) as e:
            raise EnrichmentError(f"Geocoding failed: {e}", context=address) from e

        if not isinstance(payload, list) or not payload:
            log.debug(f"No geocoding result for address: {address}")
            return None

        row = payload[0]
        try:
            lat = float(row["lat"])
            lon = float(row["lon"])
        except (KeyError, TypeError, ValueError):
            raise EnrichmentError("Geocoding result missing lat/lon", context=address)

        return Coordinates(latitude=lat, longitude=lon, uncertainty=_bbox_uncertainty(row.get("boundingbox")))


def _bbox_uncertainty(bbox) -> float:
    # Nominatim: [south, north, west, east] as strings
    try:
        south, north, west, east = (float(v) for v in bbox)
    except (TypeError, ValueError):
        return 0.0
    return max(abs(north - south), abs(east - west)) / 2
