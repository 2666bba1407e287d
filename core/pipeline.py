import asyncio
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from config.logging_config import log
from config.settings import CrawlTarget, Settings
from core.base_crawler import BaseCrawler
from core.dispatch import DispatchResult, ObserverDispatcher
from core.enrichment import enrich
from core.errors import ReconciliationError, SchemaDriftError
from core.geocoding import Geocoder, NominatimGeocoder
from core.models import Listing
from core.reconciliation import Classification, Reconciler
from crawlers import build_crawler
from database.history import HistoryStore, MemoryHistoryStore


@dataclass
class TargetStats:
    target: str
    fetched: int = 0
    incomplete: int = 0
    new: int = 0
    updated: int = 0
    duplicate: int = 0
    enrich_failed: int = 0
    skipped: int = 0
    delivery_failures: int = 0
    error: Optional[str] = None

    def summary(self) -> str:
        return (
            f"Finished {self.target}: Fetched={self.fetched} | New={self.new} | Updated={self.updated} "
            f"| Duplicate={self.duplicate} | Incomplete={self.incomplete} | Skipped={self.skipped} "
            f"| EnrichFailed={self.enrich_failed} | DeliveryFailures={self.delivery_failures}"
        )


@dataclass
class RoundReport:
    targets: List[TargetStats] = field(default_factory=list)
    dispatches: List[DispatchResult] = field(default_factory=list)

    @property
    def failed_targets(self) -> List[TargetStats]:
        return [t for t in self.targets if t.error]

    def total(self, counter: str) -> int:
        return sum(getattr(t, counter) for t in self.targets)


def default_geocoder_factory(settings: Settings) -> Optional[Callable[[], Geocoder]]:
    if not settings.geocoding.enabled:
        return None
    return lambda: NominatimGeocoder(
        settings.geocoding.nominatim_url,
        user_agent=settings.geocoding.user_agent,
        timeout=settings.timeout,
    )


class Pipeline:
    """
    One crawl round: crawl every target, enrich, reconcile against history and
    hand new or updated listings to the dispatcher.
    """

    def __init__(
        self,
        settings: Settings,
        dispatcher: ObserverDispatcher,
        history: Optional[HistoryStore] = None,
        crawler_factory: Callable[..., BaseCrawler] = build_crawler,
        geocoder_factory: Optional[Callable[[], Geocoder]] = None,
    ):
        self.settings = settings
        self.dispatcher = dispatcher
        self.history = history if history is not None else MemoryHistoryStore(settings.history_path)
        self.crawler_factory = crawler_factory
        self.geocoder_factory = geocoder_factory

    async def run_round(self) -> RoundReport:
        log.info(f"Starting crawl round over {len(self.settings.watcher)} targets...")
        report = RoundReport()
        reconciler = Reconciler(
            self.history,
            window=self.settings.history_window,
            min_title_length=self.settings.min_title_length,
        )
        sem = asyncio.Semaphore(self.settings.thread_count)
        geocoder = self.geocoder_factory() if self.geocoder_factory else None
        self.dispatcher.begin_run()

        try:
            report.targets = list(
                await asyncio.gather(
                    *(self._run_target(t, reconciler, geocoder, sem, report) for t in self.settings.watcher)
                )
            )
        finally:
            if geocoder is not None and hasattr(geocoder, "close"):
                await geocoder.close()
            if not self.settings.test:
                self._save_history()

        log.info(
            f"Round completed: New={report.total('new')} | Updated={report.total('updated')} "
            f"| Duplicate={report.total('duplicate')} | FailedTargets={len(report.failed_targets)}"
        )
        return report

    def _save_history(self) -> None:
        save = getattr(self.history, "save", None)
        if save is None:
            return
        try:
            save()
        except OSError as e:
            log.error(f"Failed to save history snapshot: {e}")

    async def _run_target(
        self,
        target: CrawlTarget,
        reconciler: Reconciler,
        geocoder: Optional[Geocoder],
        sem: asyncio.Semaphore,
        report: RoundReport,
    ) -> TargetStats:
        stats = TargetStats(target=target.name)
        async with sem:
            log.info(f"Running crawler: {target.name}")
            try:
                crawler = self.crawler_factory(target.crawler, timeout=self.settings.timeout)
                try:
                    await self._crawl(crawler, target, reconciler, geocoder, stats, report)
                finally:
                    await crawler.close()
            except SchemaDriftError:
                raise
            except asyncio.TimeoutError:
                stats.error = f"timed out after {self.settings.timeout}s"
                log.error(f"Crawler {target.name} failed: {stats.error}")
            except Exception as e:
                stats.error = str(e)
                log.error(f"Crawler {target.name} failed: {e}")
        log.info(stats.summary())
        return stats

    async def _crawl(self, crawler, target, reconciler, geocoder, stats, report) -> None:
        stream = crawler.crawl(target).__aiter__()
        try:
            while True:
                try:
                    listing = await asyncio.wait_for(anext(stream), timeout=self.settings.timeout)
                except StopAsyncIteration:
                    break
                stats.fetched += 1
                await self._process(listing, reconciler, geocoder, stats, report)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _process(self, listing: Listing, reconciler, geocoder, stats: TargetStats, report: RoundReport):
        if listing.is_skeleton:
            stats.incomplete += 1
            return

        if geocoder is not None:
            enriched = await enrich(listing, geocoder, timeout=self.settings.timeout)
            if "latitude" not in enriched.enrichments:
                stats.enrich_failed += 1
            listing = enriched

        try:
            if self.settings.test:
                # dry runs leave history untouched
                result = reconciler.classify(listing)
            else:
                result = await reconciler.reconcile(listing)
        except ReconciliationError as e:
            log.error(f"[{stats.target}] {e}; listing skipped until next round")
            stats.skipped += 1
            return

        if result.classification is Classification.DUPLICATE:
            stats.duplicate += 1
            return
        if result.classification is Classification.NEW:
            stats.new += 1
        else:
            stats.updated += 1

        if self.settings.test:
            log.info(f"[test] {result.classification.value}: {listing.identity()} {listing.detail.title}")
            return

        dispatched = await self.dispatcher.dispatch(result.listing)
        stats.delivery_failures += len(dispatched.failures)
        report.dispatches.append(dispatched)
