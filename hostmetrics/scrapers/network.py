"""Network interface and connection scraper."""

from collections import Counter
import logging

import psutil
from pydantic import ConfigDict, Field

from ..config.models import MatchConfig, ScraperConfig
from ..services.host import boot_time_ns
from ..utils.metrics import MetricsBuilder, ScrapeResult
from .base import ReceiverSettings, Scraper, ScraperFactory


TYPE = "network"

# psutil io counter fields per metric, as (transmit, receive)
INTERFACE_COUNTERS = {
    "system.network.io": ("By", "bytes_sent", "bytes_recv"),
    "system.network.packets": ("{packet}", "packets_sent", "packets_recv"),
    "system.network.errors": ("{error}", "errout", "errin"),
    "system.network.dropped": ("{packet}", "dropout", "dropin"),
}


class NetworkScraperConfig(ScraperConfig):
    """Configuration for the network scraper."""
    model_config = ConfigDict(extra="forbid")

    interfaces: MatchConfig = Field(default_factory=MatchConfig)
    include_connections: bool = True


class NetworkScraper:
    """Reads per-interface traffic counters and TCP connection states."""

    def __init__(self, config: NetworkScraperConfig, logger: logging.Logger):
        self.config = config
        self.logger = logger

    def scrape(self) -> ScrapeResult:
        result = ScrapeResult()
        builder = MetricsBuilder(start_timestamp=boot_time_ns())

        counters = psutil.net_io_counters(pernic=True) or {}
        for device, io in counters.items():
            if not self.config.interfaces.allows(device):
                continue
            for name, (unit, transmit, receive) in INTERFACE_COUNTERS.items():
                builder.sum(name, unit, getattr(io, transmit), {"device": device, "direction": "transmit"})
                builder.sum(name, unit, getattr(io, receive), {"device": device, "direction": "receive"})

        if self.config.include_connections:
            try:
                states = Counter(conn.status for conn in psutil.net_connections(kind="tcp"))
            except psutil.AccessDenied as e:
                result.add_error("connections", e)
            else:
                for state, count in sorted(states.items()):
                    builder.sum("system.network.connections", "{connection}", count,
                                {"protocol": "tcp", "state": state}, monotonic=False)

        result.metrics = builder.emit()
        return result


class NetworkScraperFactory(ScraperFactory):
    """Factory for the network scraper."""

    type = TYPE
    config_class = NetworkScraperConfig

    def create_metrics_scraper(self, settings: ReceiverSettings, config: ScraperConfig) -> Scraper:
        cfg = self.coerce_config(config)
        s = NetworkScraper(cfg, settings.logger)
        return Scraper(TYPE, s.scrape, logger=settings.logger)
