from abc import ABC, abstractmethod

from config.settings import Settings
from core.models import ContractType, Listing, PropertyType


class Observer(ABC):
    """A delivery channel for new or updated listings."""

    name: str

    def init(self, settings: Settings) -> None:
        """
        Called once at startup. Raise ConfigError to disable this observer.
        """

    @abstractmethod
    async def deliver(self, settings: Settings, listing: Listing) -> None:
        """
        Delivers one listing. Raise DeliveryError on failure; no retries are
        made by the caller.
        """


def property_label(property_type: PropertyType) -> str:
    return "house" if property_type is PropertyType.HOUSE else "flat"


def contract_label(contract_type: ContractType) -> str:
    return "Buying" if contract_type is ContractType.BUY else "Renting"


def fmt_number(value: float) -> str:
    # 1234567.8 -> "1,234,567"
    return f"{int(value):,}"


def fmt_rooms(rooms: float) -> str:
    return f"{rooms:g}"
