"""Aggregate process count scraper."""

from collections import Counter
import logging

import psutil
from pydantic import ConfigDict

from ..config.models import ScraperConfig
from ..utils.metrics import MetricsBuilder, ScrapeResult
from .base import ReceiverSettings, Scraper, ScraperFactory


TYPE = "processes"

# psutil status -> status attribute value
PROCESS_STATUSES = {
    psutil.STATUS_RUNNING: "running",
    psutil.STATUS_SLEEPING: "sleeping",
    psutil.STATUS_DISK_SLEEP: "blocked",
    psutil.STATUS_STOPPED: "stopped",
    psutil.STATUS_TRACING_STOP: "stopped",
    psutil.STATUS_ZOMBIE: "zombies",
    psutil.STATUS_DEAD: "dead",
    psutil.STATUS_IDLE: "idle",
    psutil.STATUS_WAKING: "running",
}


class ProcessesScraperConfig(ScraperConfig):
    """Configuration for the processes scraper."""
    model_config = ConfigDict(extra="forbid")


class ProcessesScraper:
    """Counts processes by scheduler status."""

    def __init__(self, config: ProcessesScraperConfig, logger: logging.Logger):
        self.config = config
        self.logger = logger

    def scrape(self) -> ScrapeResult:
        statuses: Counter = Counter()
        for proc in psutil.process_iter(["status"]):
            status = proc.info.get("status")
            if status is None:
                continue
            statuses[PROCESS_STATUSES.get(status, "unknown")] += 1

        builder = MetricsBuilder()
        for status, count in sorted(statuses.items()):
            builder.sum("system.processes.count", "{process}", count, {"status": status}, monotonic=False)
        return ScrapeResult(metrics=builder.emit())


class ProcessesScraperFactory(ScraperFactory):
    """Factory for the processes scraper."""

    type = TYPE
    config_class = ProcessesScraperConfig

    def create_metrics_scraper(self, settings: ReceiverSettings, config: ScraperConfig) -> Scraper:
        cfg = self.coerce_config(config)
        s = ProcessesScraper(cfg, settings.logger)
        return Scraper(TYPE, s.scrape, logger=settings.logger)
