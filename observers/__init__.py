from typing import Dict, List, Type

from config.settings import Settings
from observers.base import Observer
from observers.csv_file import CsvObserver
from observers.database import DatabaseObserver
from observers.mail import MailObserver
from observers.telegram import TelegramObserver

OBSERVERS: Dict[str, Type[Observer]] = {
    "telegram": TelegramObserver,
    "mail": MailObserver,
    "csv": CsvObserver,
    "database": DatabaseObserver,
}


def build_observers(settings: Settings) -> List[Observer]:
    """Instantiates the observers whose config block is enabled."""
    observers = []
    for name, observer_cls in OBSERVERS.items():
        if getattr(settings, name).enabled:
            observers.append(observer_cls())
    return observers


__all__ = [
    "Observer",
    "OBSERVERS",
    "build_observers",
    "TelegramObserver",
    "MailObserver",
    "CsvObserver",
    "DatabaseObserver",
]
