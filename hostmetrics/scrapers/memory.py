"""Memory usage scraper."""

import logging

import psutil
from pydantic import ConfigDict

from ..config.models import ScraperConfig
from ..utils.errors import ScrapeError
from ..utils.metrics import MetricsBuilder, ScrapeResult
from .base import ReceiverSettings, Scraper, ScraperFactory


TYPE = "memory"

# psutil virtual_memory field -> state attribute value. Only fields that do
# not overlap each other are listed, so utilization states sum to at most 1.
LINUX_MEMORY_STATES = {
    "used": "used",
    "free": "free",
    "buffers": "buffered",
    "cached": "cached",
}

DARWIN_MEMORY_STATES = {
    "used": "used",
    "free": "free",
    "inactive": "inactive",
}

DEFAULT_MEMORY_STATES = {
    "used": "used",
    "free": "free",
}


def memory_states():
    if psutil.LINUX:
        return LINUX_MEMORY_STATES
    if psutil.MACOS:
        return DARWIN_MEMORY_STATES
    return DEFAULT_MEMORY_STATES


class MemoryScraperConfig(ScraperConfig):
    """Configuration for the memory scraper."""
    model_config = ConfigDict(extra="forbid")


class MemoryScraper:
    """Reads physical memory usage per state."""

    def __init__(self, config: MemoryScraperConfig, logger: logging.Logger):
        self.config = config
        self.logger = logger

    def scrape(self) -> ScrapeResult:
        vmem = psutil.virtual_memory()
        if vmem.total <= 0:
            raise ScrapeError(f"invalid total memory: {vmem.total}")

        builder = MetricsBuilder()
        for field, state in memory_states().items():
            if not hasattr(vmem, field):
                continue
            value = getattr(vmem, field)
            builder.sum("system.memory.usage", "By", value, {"state": state}, monotonic=False)
            builder.gauge("system.memory.utilization", "1", value / vmem.total, {"state": state})

        builder.sum("system.memory.limit", "By", vmem.total, monotonic=False)
        return ScrapeResult(metrics=builder.emit())


class MemoryScraperFactory(ScraperFactory):
    """Factory for the memory scraper."""

    type = TYPE
    config_class = MemoryScraperConfig

    def create_metrics_scraper(self, settings: ReceiverSettings, config: ScraperConfig) -> Scraper:
        cfg = self.coerce_config(config)
        s = MemoryScraper(cfg, settings.logger)
        return Scraper(TYPE, s.scrape, logger=settings.logger)
