import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from config.logging_config import log
from config.settings import Settings
from core.errors import ConfigError, SchemaDriftError
from core.models import Listing
from observers.base import Observer


@dataclass(frozen=True)
class DeliveryOutcome:
    ok: bool
    error: Optional[str] = None
    skipped: bool = False


@dataclass
class DispatchResult:
    identity: str
    outcomes: Dict[str, DeliveryOutcome] = field(default_factory=dict)

    @property
    def failures(self) -> Dict[str, str]:
        return {name: o.error for name, o in self.outcomes.items() if not o.ok}

    @property
    def succeeded(self) -> List[str]:
        return [name for name, o in self.outcomes.items() if o.ok and not o.skipped]


class ObserverDispatcher:
    """
    Fans a reconciled listing out to every enabled observer.

    Deliveries run concurrently and are isolated from each other: an error or a
    timeout in one observer is recorded as that observer's outcome and never
    affects the others. A listing is delivered at most once per observer per run.
    """

    def __init__(self, observers: List[Observer], settings: Settings, timeout: Optional[float] = None):
        self.observers = list(observers)
        self.settings = settings
        self.timeout = timeout if timeout is not None else settings.timeout
        self.enabled: List[Observer] = []
        self._delivered: Set[Tuple[str, str]] = set()

    def init_all(self) -> Dict[str, str]:
        failures = {}
        self.enabled = []
        for observer in self.observers:
            try:
                observer.init(self.settings)
            except ConfigError as e:
                log.error(f"Observer {observer.name} disabled: {e}")
                failures[observer.name] = str(e)
                continue
            except Exception as e:
                log.error(f"Observer {observer.name} disabled, init failed: {e}")
                failures[observer.name] = str(e)
                continue
            self.enabled.append(observer)
        log.info(f"Observers enabled: {[o.name for o in self.enabled]}")
        return failures

    def begin_run(self) -> None:
        self._delivered.clear()

    async def _deliver_one(self, observer: Observer, listing: Listing) -> DeliveryOutcome:
        key = (listing.identity(), observer.name)
        if key in self._delivered:
            return DeliveryOutcome(ok=True, skipped=True)
        self._delivered.add(key)

        try:
            await asyncio.wait_for(observer.deliver(self.settings, listing), timeout=self.timeout)
        except SchemaDriftError:
            raise
        except asyncio.TimeoutError:
            log.error(f"[{listing.identity()}] Observer {observer.name} timed out after {self.timeout}s")
            return DeliveryOutcome(ok=False, error="timeout")
        except Exception as e:
            log.error(f"[{listing.identity()}] Observer {observer.name} failed: {e}")
            return DeliveryOutcome(ok=False, error=str(e))
        return DeliveryOutcome(ok=True)

    async def dispatch(self, listing: Listing) -> DispatchResult:
        if listing.detail is None:
            raise ValueError(f"Refusing to dispatch skeleton listing {listing.identity()}")

        result = DispatchResult(identity=listing.identity())
        outcomes = await asyncio.gather(
            *(self._deliver_one(observer, listing) for observer in self.enabled)
        )
        for observer, outcome in zip(self.enabled, outcomes):
            result.outcomes[observer.name] = outcome
        return result
