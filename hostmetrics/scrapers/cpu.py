"""CPU time and utilization scraper."""

import logging
from typing import Dict, List, Optional

import psutil
from pydantic import ConfigDict

from ..config.models import ScraperConfig
from ..services.host import boot_time_ns
from ..utils.metrics import MetricsBuilder, ScrapeResult
from .base import ReceiverSettings, Scraper, ScraperFactory


TYPE = "cpu"

# psutil cpu_times field -> state attribute value
CPU_STATES = {
    "user": "user",
    "system": "system",
    "idle": "idle",
    "nice": "nice",
    "iowait": "wait",
    "irq": "interrupt",
    "softirq": "softirq",
    "steal": "steal",
}


class CPUScraperConfig(ScraperConfig):
    """Configuration for the CPU scraper."""
    model_config = ConfigDict(extra="forbid")

    per_cpu: bool = True  # One series per logical CPU instead of a host total


class CPUScraper:
    """
    Reads cumulative CPU times and derives utilization.

    Utilization is the share of each state in the time elapsed since the
    previous pass, so the first pass only reports times.
    """

    def __init__(self, config: CPUScraperConfig, logger: logging.Logger):
        self.config = config
        self.logger = logger
        self._previous: Optional[List[Dict[str, float]]] = None

    def start(self) -> None:
        self._previous = None

    def scrape(self) -> ScrapeResult:
        current = self._read_times()
        builder = MetricsBuilder(start_timestamp=boot_time_ns())

        for label, times in self._labelled(current):
            for state, seconds in times.items():
                builder.sum("system.cpu.time", "s", seconds, self._attributes(label, state))

        if self._previous is not None and len(self._previous) == len(current):
            for (label, times), previous in zip(self._labelled(current), self._previous):
                for state, share in _utilization(previous, times).items():
                    builder.gauge("system.cpu.utilization", "1", share, self._attributes(label, state))

        builder.gauge("system.cpu.logical.count", "{cpu}", psutil.cpu_count(logical=True) or 0)

        self._previous = current
        return ScrapeResult(metrics=builder.emit())

    def _read_times(self) -> List[Dict[str, float]]:
        if self.config.per_cpu:
            samples = psutil.cpu_times(percpu=True)
        else:
            samples = [psutil.cpu_times(percpu=False)]

        return [
            {state: getattr(sample, field) for field, state in CPU_STATES.items() if hasattr(sample, field)}
            for sample in samples
        ]

    def _labelled(self, times: List[Dict[str, float]]):
        if not self.config.per_cpu:
            return [(None, times[0])]
        return [(f"cpu{i}", t) for i, t in enumerate(times)]

    @staticmethod
    def _attributes(label: Optional[str], state: str) -> Dict[str, str]:
        if label is None:
            return {"state": state}
        return {"cpu": label, "state": state}


def _utilization(previous: Dict[str, float], current: Dict[str, float]) -> Dict[str, float]:
    deltas = {state: max(current[state] - previous.get(state, 0.0), 0.0) for state in current}
    total = sum(deltas.values())
    if total <= 0:
        return {state: 0.0 for state in deltas}
    return {state: delta / total for state, delta in deltas.items()}


class CPUScraperFactory(ScraperFactory):
    """Factory for the CPU scraper."""

    type = TYPE
    config_class = CPUScraperConfig

    def create_metrics_scraper(self, settings: ReceiverSettings, config: ScraperConfig) -> Scraper:
        cfg = self.coerce_config(config)
        s = CPUScraper(cfg, settings.logger)
        return Scraper(TYPE, s.scrape, start=s.start, logger=settings.logger)
