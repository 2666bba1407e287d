from typing import Optional

import httpx

from config.settings import Settings
from core.errors import ConfigError, DeliveryError
from core.models import Listing
from observers.base import Observer, contract_label, fmt_number, fmt_rooms, property_label


TELEGRAM_API_URL = "https://api.telegram.org/bot{api_key}/sendMessage"

EXPOSE_URLS = {
    "immoscout": "http://www.immobilienscout24.de/expose/{}",
    "immowelt": "https://www.immowelt.de/expose/{}",
    "sueddeutsche": "https://immobilienmarkt.sueddeutsche.de/Wohnungen/mieten/Muenchen/Wohnung/{}?comeFromTL=1",
    "wggesucht": "https://www.wg-gesucht.de/{}",
    "wohnungsboerse": "https://www.wohnungsboerse.net/immodetail/{}",
}


def listing_url(listing: Listing) -> str:
    detail = listing.detail
    if detail.url:
        return detail.url
    template = EXPOSE_URLS.get(listing.source)
    return template.format(detail.externalid) if template else ""


def format_message(listing: Listing) -> str:
    detail = listing.detail
    kind = property_label(detail.property_type)
    lines = [
        f"Hey guys, found *a new {kind} on {listing.source}*!",
        detail.address,
        f"[{detail.title}]({listing_url(listing)})",
        f"{contract_label(detail.contract_type)} the {kind} costs *{fmt_number(detail.price)} €*.",
        f"It has *{fmt_rooms(detail.rooms)} rooms* and *{fmt_number(detail.squaremeters)} sqm*.",
    ]
    if detail.plot_squaremeters is not None:
        lines.append(f"Plot of land has a size of *{fmt_number(detail.plot_squaremeters)} sqm*.")
    return "\n".join(lines)


class TelegramObserver(Observer):
    name = "telegram"

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    def init(self, settings: Settings) -> None:
        if not settings.telegram.api_key or not settings.telegram.chat_id:
            raise ConfigError("telegram.api_key and telegram.chat_id are required", context=self.name)

    async def deliver(self, settings: Settings, listing: Listing) -> None:
        payload = {
            "chat_id": settings.telegram.chat_id,
            "text": format_message(listing),
            "parse_mode": "Markdown",
        }
        url = TELEGRAM_API_URL.format(api_key=settings.telegram.api_key)
        try:
            async with httpx.AsyncClient(timeout=settings.timeout, transport=self.transport) as client:
                r = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise DeliveryError(f"Telegram request failed: {e}", context=self.name) from e

        if r.status_code != 200:
            raise DeliveryError(f"Telegram answered {r.status_code}: {r.text}", context=self.name)
