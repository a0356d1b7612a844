"""Per-process resource usage scraper."""

import logging
import time
from typing import Any, Optional

import psutil
from pydantic import ConfigDict, Field, field_validator

from ..config.models import MatchConfig, ScraperConfig, parse_duration
from ..utils.errors import (
    HandleCountAccessDeniedError,
    HandleCountNotFoundError,
    HandleCountUnsupportedError
)
from ..utils.metrics import MetricsBuilder, ScrapeResult
from . import handlecount
from .base import ReceiverSettings, Scraper, ScraperFactory


TYPE = "process"


class ProcessScraperConfig(ScraperConfig):
    """Configuration for the process scraper."""
    model_config = ConfigDict(extra="forbid")

    names: MatchConfig = Field(default_factory=MatchConfig)
    mute_process_name_error: bool = False
    mute_process_exe_error: bool = False
    mute_process_io_error: bool = False
    mute_process_user_error: bool = False
    mute_process_handle_error: bool = False
    scrape_process_delay: float = Field(default=0.0, ge=0)

    @field_validator('scrape_process_delay', mode='before')
    @classmethod
    def parse_delay(cls, v: Any) -> Any:
        """Accept duration strings such as "10s"."""
        return parse_duration(v)


class ProcessScraper:
    """
    Reads CPU, memory, disk, thread and handle usage for each process.

    Processes that exit mid-scrape are skipped quietly. Readings denied by
    the OS are reported as partial failures unless the matching ``mute_*``
    option is set.
    """

    def __init__(self, config: ProcessScraperConfig, logger: logging.Logger, handles=None):
        self.config = config
        self.logger = logger
        self.handles = handles if handles is not None else handlecount.new_manager()
        self.handle_metric = "process.handles" if psutil.WINDOWS else "process.open_file_descriptors"

    def scrape(self) -> ScrapeResult:
        result = ScrapeResult()
        builder = MetricsBuilder()

        handles_available = True
        try:
            self.handles.refresh()
        except HandleCountUnsupportedError as e:
            handles_available = False
            self.logger.debug(f"Skipping {self.handle_metric}: {e}")

        now = time.time()
        for proc in psutil.process_iter():
            try:
                with proc.oneshot():
                    self._scrape_process(proc, now, builder, result, handles_available)
            except (psutil.NoSuchProcess, psutil.ZombieProcess):
                continue

        result.metrics = builder.emit()
        return result

    def _scrape_process(
        self,
        proc: psutil.Process,
        now: float,
        builder: MetricsBuilder,
        result: ScrapeResult,
        handles_available: bool
    ) -> None:
        pid = proc.pid
        create_time = proc.create_time()
        if self.config.scrape_process_delay and now - create_time < self.config.scrape_process_delay:
            return

        name = self._read(proc.name, f"pid {pid} name", self.config.mute_process_name_error, result)
        if name is None:
            return
        if not self.config.names.allows(name):
            return

        exe = self._read(proc.exe, f"pid {pid} exe", self.config.mute_process_exe_error, result) or ""
        owner = self._read(proc.username, f"pid {pid} owner", self.config.mute_process_user_error, result) or ""

        attributes = {
            "process.pid": pid,
            "process.parent_pid": proc.ppid(),
            "process.executable.name": name,
            "process.executable.path": exe,
            "process.owner": owner,
        }
        builder.start_timestamp = int(create_time * 1_000_000_000)

        try:
            cpu = proc.cpu_times()
            builder.sum("process.cpu.time", "s", cpu.user, {**attributes, "state": "user"})
            builder.sum("process.cpu.time", "s", cpu.system, {**attributes, "state": "system"})
        except psutil.AccessDenied as e:
            result.add_error(f"pid {pid} cpu", e)

        try:
            mem = proc.memory_info()
            builder.sum("process.memory.usage", "By", mem.rss, attributes, monotonic=False)
            builder.sum("process.memory.virtual", "By", mem.vms, attributes, monotonic=False)
        except psutil.AccessDenied as e:
            result.add_error(f"pid {pid} memory", e)

        # Not available on macOS
        if hasattr(proc, "io_counters"):
            io = self._read(proc.io_counters, f"pid {pid} io", self.config.mute_process_io_error, result)
            if io is not None:
                builder.sum("process.disk.io", "By", io.read_bytes, {**attributes, "direction": "read"})
                builder.sum("process.disk.io", "By", io.write_bytes, {**attributes, "direction": "write"})

        try:
            builder.sum("process.threads", "{thread}", proc.num_threads(), attributes, monotonic=False)
        except psutil.AccessDenied as e:
            result.add_error(f"pid {pid} threads", e)

        if handles_available:
            try:
                count = self.handles.get_process_handle_count(pid)
            except HandleCountAccessDeniedError as e:
                if not self.config.mute_process_handle_error:
                    result.add_error(f"pid {pid} handles", e)
            except HandleCountNotFoundError as e:
                result.add_error(f"pid {pid} handles", e)
            else:
                builder.sum(self.handle_metric, "{count}", count, attributes, monotonic=False)

    def _read(self, getter, item: str, muted: bool, result: ScrapeResult) -> Optional[Any]:
        try:
            return getter()
        except psutil.AccessDenied as e:
            if not muted:
                result.add_error(item, e)
            return None


class ProcessScraperFactory(ScraperFactory):
    """Factory for the process scraper."""

    type = TYPE
    config_class = ProcessScraperConfig

    def create_metrics_scraper(self, settings: ReceiverSettings, config: ScraperConfig) -> Scraper:
        cfg = self.coerce_config(config)
        s = ProcessScraper(cfg, settings.logger)
        return Scraper(TYPE, s.scrape, logger=settings.logger)
