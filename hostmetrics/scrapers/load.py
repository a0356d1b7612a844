"""Load average scraper."""

import logging

import psutil
from pydantic import ConfigDict

from ..config.models import ScraperConfig
from ..utils.metrics import MetricsBuilder, ScrapeResult
from .base import ReceiverSettings, Scraper, ScraperFactory


TYPE = "load"


class LoadScraperConfig(ScraperConfig):
    """Configuration for the load scraper."""
    model_config = ConfigDict(extra="forbid")

    cpu_average: bool = False  # Divide load averages by the logical CPU count


class LoadScraper:
    """Reads the 1, 5 and 15 minute load averages."""

    def __init__(self, config: LoadScraperConfig, logger: logging.Logger):
        self.config = config
        self.logger = logger

    def start(self) -> None:
        # On Windows the first call starts psutil's background load sampler
        psutil.getloadavg()

    def scrape(self) -> ScrapeResult:
        load1, load5, load15 = psutil.getloadavg()

        if self.config.cpu_average:
            cpus = psutil.cpu_count() or 1
            load1, load5, load15 = load1 / cpus, load5 / cpus, load15 / cpus

        builder = MetricsBuilder()
        builder.gauge("system.cpu.load_average.1m", "{thread}", load1)
        builder.gauge("system.cpu.load_average.5m", "{thread}", load5)
        builder.gauge("system.cpu.load_average.15m", "{thread}", load15)
        return ScrapeResult(metrics=builder.emit())


class LoadScraperFactory(ScraperFactory):
    """Factory for the load scraper."""

    type = TYPE
    config_class = LoadScraperConfig

    def create_metrics_scraper(self, settings: ReceiverSettings, config: ScraperConfig) -> Scraper:
        cfg = self.coerce_config(config)
        s = LoadScraper(cfg, settings.logger)
        return Scraper(TYPE, s.scrape, start=s.start, logger=settings.logger)
