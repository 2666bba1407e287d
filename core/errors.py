from typing import Optional


class PropwatchError(Exception):
    """Base error. `context` names the target, observer or listing involved."""

    def __init__(self, message: str, context: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            return f"[{self.context}] {self.message}"
        return self.message


class ConfigError(PropwatchError):
    """Invalid configuration. Fatal at startup, or for a single observer during init."""


class CrawlError(PropwatchError):
    """A crawl-target failed to produce listings. Isolated to that target."""


class EnrichmentError(PropwatchError):
    """Geocoding failed. The listing continues unenriched."""


class ReconciliationError(PropwatchError):
    """History store unavailable. The listing is skipped and seen again next round."""


class DeliveryError(PropwatchError):
    """One observer failed for one listing."""


class SchemaDriftError(PropwatchError):
    """An existing CSV file has a different header than the one we would write."""
