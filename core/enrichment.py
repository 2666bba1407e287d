import asyncio
from typing import Optional

from config.logging_config import log
from core.errors import EnrichmentError
from core.geocoding import Geocoder
from core.models import Listing


def query_address(listing: Listing) -> Optional[str]:
    if listing.detail is None:
        return None
    parts = [p for p in (listing.detail.address, listing.city) if p]
    return ", ".join(parts) or None


async def enrich(listing: Listing, geocoder: Geocoder, timeout: Optional[float] = None) -> Listing:
    """
    Attaches latitude, longitude and uncertainty to a copy of the listing.

    Failures are not fatal: the original listing is returned and the failure
    is logged with the listing identity.
    """
    address = query_address(listing)
    if address is None:
        return listing

    try:
        coordinates = await asyncio.wait_for(geocoder.geocode(address), timeout=timeout)
    except asyncio.TimeoutError:
        log.warning(f"[{listing.identity()}] Geocoding timed out for '{address}'")
        return listing
    except EnrichmentError as e:
        log.warning(f"[{listing.identity()}] {e}")
        return listing
    except Exception as e:
        log.error(f"[{listing.identity()}] Unexpected geocoder failure: {e}")
        return listing

    if coordinates is None:
        log.warning(f"[{listing.identity()}] No geocoding match for '{address}'")
        return listing

    return listing.with_enrichments(
        latitude=coordinates.latitude,
        longitude=coordinates.longitude,
        uncertainty=coordinates.uncertainty,
    )
