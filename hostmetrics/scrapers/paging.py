"""Paging (swap) scraper."""

import logging

import psutil
from pydantic import ConfigDict

from ..config.models import ScraperConfig
from ..services.host import boot_time_ns
from ..utils.metrics import MetricsBuilder, ScrapeResult
from .base import ReceiverSettings, Scraper, ScraperFactory


TYPE = "paging"


class PagingScraperConfig(ScraperConfig):
    """Configuration for the paging scraper."""
    model_config = ConfigDict(extra="forbid")


class PagingScraper:
    """Reads swap usage and cumulative swap traffic."""

    def __init__(self, config: PagingScraperConfig, logger: logging.Logger):
        self.config = config
        self.logger = logger

    def scrape(self) -> ScrapeResult:
        builder = MetricsBuilder(start_timestamp=boot_time_ns())

        swap = psutil.swap_memory()
        for state in ("used", "free"):
            builder.sum("system.paging.usage", "By", getattr(swap, state), {"state": state}, monotonic=False)
            if swap.total > 0:
                builder.gauge("system.paging.utilization", "1", getattr(swap, state) / swap.total, {"state": state})

        builder.sum("system.paging.io", "By", swap.sin, {"direction": "page_in"})
        builder.sum("system.paging.io", "By", swap.sout, {"direction": "page_out"})
        return ScrapeResult(metrics=builder.emit())


class PagingScraperFactory(ScraperFactory):
    """Factory for the paging scraper."""

    type = TYPE
    config_class = PagingScraperConfig

    def create_metrics_scraper(self, settings: ReceiverSettings, config: ScraperConfig) -> Scraper:
        cfg = self.coerce_config(config)
        s = PagingScraper(cfg, settings.logger)
        return Scraper(TYPE, s.scrape, logger=settings.logger)
