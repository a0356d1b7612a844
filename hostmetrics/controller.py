"""Scraper controller: schedules collection rounds and merges their results."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .config.models import ControllerConfig
from .scrapers.base import Scraper
from .services.consumers import MetricsConsumer
from .services.scheduling import create_interval_scheduler, remove_job, shutdown_scheduler
from .utils.errors import (
    ConfigurationError,
    PartialScrapeError,
    ScrapeError,
    ScrapeRoundFailedError,
    ScraperStartError
)
from .utils.metrics import MetricsBatch, Resource, ScopeMetrics, ScrapeFailure, ScrapeResult


JOB_ID = "scrape_round"


@dataclass
class ControllerStats:
    """Round counters since the controller started."""

    rounds_started: int = 0
    rounds_completed: int = 0
    rounds_failed: int = 0
    rounds_skipped: int = 0


class ScraperController:
    """
    Runs a fixed set of scrapers on one recurring schedule.

    Every round scrapes all scrapers concurrently, merges whatever succeeded
    into one batch and forwards it to the consumer. Rounds never overlap: a
    tick that fires while a round is still running is skipped.
    """

    def __init__(
        self,
        config: ControllerConfig,
        scrapers: Sequence[Tuple[str, Scraper]],
        consumer: MetricsConsumer,
        logger: Optional[logging.Logger] = None,
        resource: Optional[Resource] = None,
        shared_setup: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        shutdown_timeout: float = 30.0
    ):
        """
        Initialize controller.

        Args:
            config: Scheduling settings
            scrapers: (key, scraper) pairs in construction order
            consumer: Receives the merged batch of every round
            logger: Logger instance
            resource: Host resource attached to every batch
            shared_setup: One-time setup run before the first scraper starts
            on_error: Called with the error of every failed or partial scheduled
                round; a consumer failure is passed through as raised
            shutdown_timeout: Seconds to wait for an in-flight round on shutdown

        Raises:
            ConfigurationError: If no scrapers are given
            ValueError: If the collection interval is not positive
        """
        if not scrapers:
            raise ConfigurationError("at least one scraper must be configured")
        if config.collection_interval <= 0:
            raise ValueError(f"collection_interval must be positive, got {config.collection_interval}")

        self.config = config
        self.scrapers: List[Tuple[str, Scraper]] = list(scrapers)
        self.consumer = consumer
        self.logger = (logger or logging.getLogger("hostmetrics")).getChild(self.__class__.__name__)
        self.resource = resource or Resource()
        self.shared_setup = shared_setup
        self.on_error = on_error
        self.shutdown_timeout = shutdown_timeout

        self.stats = ControllerStats()
        self.last_error: Optional[Exception] = None

        self._scheduler: Optional[AsyncIOScheduler] = None
        self._inflight: Optional[asyncio.Task] = None
        self._round_lock = asyncio.Lock()
        self._setup_done = False
        self._started = False
        self._shut_down = False

    @property
    def keys(self) -> List[str]:
        return [key for key, _ in self.scrapers]

    async def start(self, schedule: bool = True) -> None:
        """
        Start every scraper, then the collection schedule.

        Args:
            schedule: Start the recurring collection job; False leaves rounds
                to explicit scrape_once() calls

        Raises:
            ScraperStartError: If any scraper fails to start; scrapers started
                before it are shut down first
            RuntimeError: If the controller was already shut down
        """
        if self._shut_down:
            raise RuntimeError("controller has been shut down")
        if self._started:
            return

        if self.shared_setup is not None and not self._setup_done:
            self.shared_setup()
            self._setup_done = True

        started: List[Tuple[str, Scraper]] = []
        for key, scraper in self.scrapers:
            try:
                await scraper.start()
            except ScraperStartError as e:
                self.logger.error(f"Scraper '{key}' failed to start: {e}")
                for started_key, started_scraper in started:
                    err = await started_scraper.shutdown()
                    if err is not None:
                        self.logger.error(f"Scraper '{started_key}' shutdown failed: {err}")
                raise
            started.append((key, scraper))

        self._started = True
        if not schedule:
            return

        self._scheduler = create_interval_scheduler(
            self._tick,
            interval=self.config.collection_interval,
            job_id=JOB_ID,
            name="Host metrics collection",
            initial_delay=self.config.initial_delay,
            on_skipped=self._on_skipped
        )
        self._scheduler.start()

        self.logger.info(
            f"Started {len(self.scrapers)} scraper(s), collecting every {self.config.collection_interval}s",
            extra={"scrapers": self.keys}
        )

    async def scrape_once(self) -> Optional[PartialScrapeError]:
        """
        Run one collection round and forward the merged batch.

        A call made while another round is running waits for that round to
        finish first.

        Returns:
            Optional[PartialScrapeError]: Set when some scrapers failed or
                returned partial data; the batch was still forwarded

        Raises:
            ScrapeRoundFailedError: If every scraper failed; nothing was forwarded
        """
        async with self._round_lock:
            return await self._run_round()

    async def _run_round(self) -> Optional[PartialScrapeError]:
        self.stats.rounds_started += 1

        results = await asyncio.gather(
            *(self._scrape_one(key, scraper) for key, scraper in self.scrapers),
            return_exceptions=True
        )

        batch = MetricsBatch(resource=self.resource)
        failed: Dict[str, BaseException] = {}
        partial: Dict[str, List[ScrapeFailure]] = {}

        for (key, _), result in zip(self.scrapers, results):
            if isinstance(result, BaseException):
                self.logger.warning(f"Scraper '{key}' failed: {result}")
                failed[key] = result
                continue

            batch.scope_metrics.append(ScopeMetrics(scope=key, metrics=result.metrics))
            if result.partial:
                self.logger.warning(
                    f"Scraper '{key}' returned partial data: {len(result.errors)} reading(s) missing",
                    extra={"errors": [f"{f.item}: {f.error}" for f in result.errors]}
                )
                partial[key] = result.errors

        if len(failed) == len(self.scrapers):
            self.stats.rounds_failed += 1
            raise ScrapeRoundFailedError(failed)

        try:
            await self.consumer.consume_metrics(batch)
        except Exception:
            self.stats.rounds_failed += 1
            raise

        self.stats.rounds_completed += 1
        self.logger.debug(
            f"Round complete: {batch.data_point_count()} data point(s) from {len(batch.scope_metrics)} scraper(s)"
        )

        if failed or partial:
            return PartialScrapeError(failed, partial)
        return None

    async def shutdown(self) -> List[BaseException]:
        """
        Stop collecting and shut every scraper down. Safe to call more than once.

        Returns:
            List[BaseException]: Errors raised while shutting scrapers down
        """
        if self._shut_down:
            return []
        self._shut_down = True

        remove_job(self._scheduler, JOB_ID)
        await self._wait_inflight()
        shutdown_scheduler(self._scheduler)

        errors: List[BaseException] = []
        for key, scraper in self.scrapers:
            err = await scraper.shutdown()
            if err is not None:
                errors.append(err)

        if errors:
            self.logger.error(f"{len(errors)} scraper(s) failed to shut down cleanly")
        self.logger.info("Controller shut down", extra={"stats": vars(self.stats)})
        return errors

    async def _scrape_one(self, key: str, scraper: Scraper) -> ScrapeResult:
        if not self.config.timeout:
            return await scraper.scrape()
        try:
            return await asyncio.wait_for(scraper.scrape(), timeout=self.config.timeout)
        except asyncio.TimeoutError:
            raise ScrapeError(f"{key} scraper timed out after {self.config.timeout}s") from None

    async def _tick(self) -> None:
        self._inflight = asyncio.current_task()
        try:
            error = await self.scrape_once()
        except ScrapeRoundFailedError as e:
            self.logger.error(f"Collection round failed: {e}")
            error = e
        except Exception as e:
            self.logger.error(f"Collection round failed: {e}", exc_info=True)
            error = e
        finally:
            self._inflight = None

        self.last_error = error
        if error is not None and self.on_error is not None:
            self.on_error(error)

    async def _wait_inflight(self) -> None:
        task = self._inflight
        if task is None or task.done() or task is asyncio.current_task():
            return

        _, pending = await asyncio.wait({task}, timeout=self.shutdown_timeout)
        if pending:
            self.logger.warning(f"Collection round still running after {self.shutdown_timeout}s, cancelling")
            task.cancel()
            await asyncio.wait({task})

    def _on_skipped(self) -> None:
        self.stats.rounds_skipped += 1
        self.logger.warning("Skipped collection tick: previous round still running")
