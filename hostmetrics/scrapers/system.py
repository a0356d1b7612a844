"""System uptime scraper."""

import logging
import time

from pydantic import ConfigDict

from ..config.models import ScraperConfig
from ..services.host import boot_time
from ..utils.metrics import MetricsBuilder, ScrapeResult
from .base import ReceiverSettings, Scraper, ScraperFactory


TYPE = "system"


class SystemScraperConfig(ScraperConfig):
    """Configuration for the system scraper."""
    model_config = ConfigDict(extra="forbid")


class SystemScraper:
    """Reports seconds since the host booted."""

    def __init__(self, config: SystemScraperConfig, logger: logging.Logger):
        self.config = config
        self.logger = logger

    def start(self) -> None:
        # Fails early when the boot time cannot be read on this host
        boot_time()

    def scrape(self) -> ScrapeResult:
        builder = MetricsBuilder()
        builder.gauge("system.uptime", "s", max(time.time() - boot_time(), 0.0))
        return ScrapeResult(metrics=builder.emit())


class SystemScraperFactory(ScraperFactory):
    """Factory for the system scraper."""

    type = TYPE
    config_class = SystemScraperConfig

    def create_metrics_scraper(self, settings: ReceiverSettings, config: ScraperConfig) -> Scraper:
        cfg = self.coerce_config(config)
        s = SystemScraper(cfg, settings.logger)
        return Scraper(TYPE, s.scrape, start=s.start, logger=settings.logger)
