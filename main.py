import argparse
import asyncio
import sys

from config.logging_config import configure_logging, log
from config.settings import Settings, load_settings
from core.dispatch import ObserverDispatcher
from core.errors import ConfigError, ReconciliationError, SchemaDriftError
from core.pipeline import Pipeline, default_geocoder_factory
from crawlers import CRAWLERS
from database.history import MemoryHistoryStore
from observers import build_observers
from scheduler import Scheduler


def validate_targets(settings: Settings) -> None:
    if not settings.watcher:
        raise ConfigError("No [[watcher]] crawl-targets configured")
    unknown = sorted({t.crawler for t in settings.watcher if t.crawler not in CRAWLERS})
    if unknown:
        raise ConfigError(f"Unknown crawlers {unknown}. Known: {sorted(CRAWLERS)}")


def build_pipeline(settings: Settings) -> Pipeline:
    validate_targets(settings)

    dispatcher = ObserverDispatcher(build_observers(settings), settings)
    dispatcher.init_all()

    history = MemoryHistoryStore(settings.history_path)
    try:
        history.load()
    except ReconciliationError as e:
        log.error(f"{e}; starting with empty history")

    return Pipeline(
        settings,
        dispatcher,
        history,
        geocoder_factory=default_geocoder_factory(settings),
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="propwatch - real-estate listing watcher")
    parser.add_argument("action", nargs="?", choices=["run", "schedule"],
                        help="run: a single round, schedule: follow run_periodically from the config")
    parser.add_argument("--config", help="Path to the TOML configuration file")
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    configure_logging(settings)
    pipeline = build_pipeline(settings)

    run_periodically = settings.run_periodically if args.action != "run" else False
    scheduler = Scheduler(
        lambda: asyncio.run(pipeline.run_round()),
        run_periodically=run_periodically,
        initial_run=settings.initial_run,
        interval=settings.interval,
    )
    scheduler.install_signal_handlers()
    scheduler.start()
    return 0


def cli(argv=None):
    try:
        sys.exit(main(argv))
    except KeyboardInterrupt:
        log.info("Stopping...")
        sys.exit(0)
    except (ConfigError, SchemaDriftError) as e:
        log.critical(f"Fatal: {e}")
        sys.exit(1)
    except Exception as e:
        log.critical(f"Unhandled exception: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
