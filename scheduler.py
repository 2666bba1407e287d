import signal
import time
from enum import Enum, auto
from typing import Callable

import schedule

from config.logging_config import log
from core.errors import ConfigError, SchemaDriftError


class SchedulerState(Enum):
    IDLE = auto()
    RUNNING = auto()
    SLEEPING = auto()
    DONE = auto()


class Scheduler:
    """
    Runs `job` once, or every `interval` seconds until shutdown.

    With `initial_run` the first round starts immediately, otherwise after one
    interval. A shutdown lets the round in flight finish and prevents the next.
    """

    def __init__(
        self,
        job: Callable[[], object],
        run_periodically: bool = True,
        initial_run: bool = False,
        interval: int = 300,
        sleep: Callable[[float], None] = time.sleep,
        poll_seconds: float = 1.0,
    ):
        self.job = job
        self.run_periodically = run_periodically
        self.initial_run = initial_run
        self.interval = interval
        self.sleep = sleep
        self.poll_seconds = poll_seconds
        self.state = SchedulerState.IDLE
        self.running = True
        self.total_rounds = 0
        self.failed_rounds = 0
        self._schedule = schedule.Scheduler()

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self.shutdown)
        signal.signal(signal.SIGTERM, self.shutdown)

    def shutdown(self, signum=None, frame=None) -> None:
        log.info("Shutdown signal received, finishing current round...")
        self.running = False
        self._schedule.clear()

    def run_round(self) -> None:
        if not self.running:
            return
        self.state = SchedulerState.RUNNING
        self.total_rounds += 1
        log.info(f"Round #{self.total_rounds} started")
        try:
            self.job()
        except (SchemaDriftError, ConfigError):
            self.state = SchedulerState.DONE
            raise
        except Exception as e:
            self.failed_rounds += 1
            log.error(f"Round #{self.total_rounds} failed: {e}")
        finally:
            if self.state is SchedulerState.RUNNING:
                self.state = SchedulerState.SLEEPING if self._continues() else SchedulerState.DONE

    def _continues(self) -> bool:
        return self.run_periodically and self.running

    def start(self) -> SchedulerState:
        if not self.run_periodically:
            log.info("Running a single round")
            self.run_round()
            self.state = SchedulerState.DONE
            return self.state

        log.info(f"Scheduler started. Running every {self.interval} seconds.")
        self._schedule.every(self.interval).seconds.do(self.run_round)
        if self.initial_run:
            self.run_round()
        else:
            self.state = SchedulerState.SLEEPING

        while self.running:
            self._schedule.run_pending()
            if self.running:
                self.sleep(self.poll_seconds)

        self.state = SchedulerState.DONE
        log.info("Scheduler stopped gracefully")
        return self.state
