"""Disk I/O scraper."""

import logging

import psutil
from pydantic import ConfigDict, Field

from ..config.models import MatchConfig, ScraperConfig
from ..services.host import boot_time_ns
from ..utils.metrics import MetricsBuilder, ScrapeResult
from .base import ReceiverSettings, Scraper, ScraperFactory


TYPE = "disk"


class DiskScraperConfig(ScraperConfig):
    """Configuration for the disk scraper."""
    model_config = ConfigDict(extra="forbid")

    devices: MatchConfig = Field(default_factory=MatchConfig)


class DiskScraper:
    """Reads cumulative per-device I/O counters."""

    def __init__(self, config: DiskScraperConfig, logger: logging.Logger):
        self.config = config
        self.logger = logger

    def scrape(self) -> ScrapeResult:
        counters = psutil.disk_io_counters(perdisk=True) or {}
        builder = MetricsBuilder(start_timestamp=boot_time_ns())

        for device, io in counters.items():
            if not self.config.devices.allows(device):
                continue

            read = {"device": device, "direction": "read"}
            write = {"device": device, "direction": "write"}

            builder.sum("system.disk.io", "By", io.read_bytes, read)
            builder.sum("system.disk.io", "By", io.write_bytes, write)
            builder.sum("system.disk.operations", "{operation}", io.read_count, read)
            builder.sum("system.disk.operations", "{operation}", io.write_count, write)
            builder.sum("system.disk.operation_time", "s", io.read_time / 1000.0, read)
            builder.sum("system.disk.operation_time", "s", io.write_time / 1000.0, write)

            # Linux only
            if hasattr(io, "busy_time"):
                builder.sum("system.disk.io_time", "s", io.busy_time / 1000.0, {"device": device})
            if hasattr(io, "read_merged_count"):
                builder.sum("system.disk.merged", "{operation}", io.read_merged_count, read)
                builder.sum("system.disk.merged", "{operation}", io.write_merged_count, write)

        return ScrapeResult(metrics=builder.emit())


class DiskScraperFactory(ScraperFactory):
    """Factory for the disk scraper."""

    type = TYPE
    config_class = DiskScraperConfig

    def create_metrics_scraper(self, settings: ReceiverSettings, config: ScraperConfig) -> Scraper:
        cfg = self.coerce_config(config)
        s = DiskScraper(cfg, settings.logger)
        return Scraper(TYPE, s.scrape, logger=settings.logger)
