import asyncio
from typing import Callable, Optional

import psycopg

from config.settings import Settings
from core.errors import ConfigError, DeliveryError
from core.models import Listing
from database.document_store import DocumentStore
from observers.base import Observer


class DatabaseObserver(Observer):
    name = "database"

    def __init__(self, store_factory: Callable[[str, str], DocumentStore] = DocumentStore):
        self.store_factory = store_factory
        self.store: Optional[DocumentStore] = None

    def init(self, settings: Settings) -> None:
        if not settings.database.dsn:
            raise ConfigError("database.dsn is required", context=self.name)
        store = self.store_factory(settings.database.dsn, settings.database.collection_name)
        try:
            store.setup_schema()
        except psycopg.Error as e:
            raise ConfigError(f"Could not prepare collection: {e}", context=self.name) from e
        self.store = store

    async def deliver(self, settings: Settings, listing: Listing) -> None:
        if self.store is None:
            raise DeliveryError("Observer used before init", context=self.name)
        try:
            await asyncio.to_thread(self.store.upsert, listing.to_document())
        except psycopg.Error as e:
            raise DeliveryError(f"Could not store {listing.identity()}: {e}", context=self.name) from e
