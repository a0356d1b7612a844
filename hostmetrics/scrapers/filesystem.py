"""Filesystem usage scraper."""

import logging
import os
import posixpath
from typing import Dict, Optional

import psutil
from pydantic import ConfigDict, Field

from ..config.models import MatchConfig, ScraperConfig
from ..utils.metrics import MetricsBuilder, ScrapeResult
from .base import ReceiverSettings, Scraper, ScraperFactory


TYPE = "filesystem"


class FilesystemScraperConfig(ScraperConfig):
    """Configuration for the filesystem scraper."""
    model_config = ConfigDict(extra="forbid")

    devices: MatchConfig = Field(default_factory=MatchConfig)
    fs_types: MatchConfig = Field(default_factory=MatchConfig)
    mount_points: MatchConfig = Field(default_factory=MatchConfig)
    include_virtual_filesystems: bool = False


class FilesystemScraper:
    """
    Reads space and inode usage for every mounted filesystem.

    When the host root is mounted elsewhere (``root_path``), usage is read
    through the relocated path but reported under the host mount point.
    """

    def __init__(
        self,
        config: FilesystemScraperConfig,
        logger: logging.Logger,
        root_path: str = "",
        host_paths: Optional[Dict[str, str]] = None
    ):
        self.config = config
        self.logger = logger
        self.root_path = root_path
        self.host_paths = host_paths or {}

    def scrape(self) -> ScrapeResult:
        result = ScrapeResult()
        builder = MetricsBuilder()

        for partition in psutil.disk_partitions(all=self.config.include_virtual_filesystems):
            if not self._included(partition):
                continue

            attributes = {
                "device": partition.device,
                "mountpoint": partition.mountpoint,
                "type": partition.fstype,
                "mode": "ro" if "ro" in partition.opts.split(",") else "rw",
            }
            path = self._translate(partition.mountpoint)

            try:
                usage = psutil.disk_usage(path)
            except (PermissionError, OSError) as e:
                result.add_error(partition.mountpoint, e)
                continue

            reserved = max(usage.total - usage.used - usage.free, 0)
            for state, value in (("used", usage.used), ("free", usage.free), ("reserved", reserved)):
                builder.sum("system.filesystem.usage", "By", value, {**attributes, "state": state}, monotonic=False)
            if usage.total > 0:
                builder.gauge("system.filesystem.utilization", "1", usage.used / usage.total, attributes)

            if hasattr(os, "statvfs"):
                try:
                    stat = os.statvfs(path)
                except OSError as e:
                    result.add_error(f"{partition.mountpoint} inodes", e)
                    continue
                builder.sum("system.filesystem.inodes.usage", "{inode}", stat.f_files - stat.f_ffree,
                            {**attributes, "state": "used"}, monotonic=False)
                builder.sum("system.filesystem.inodes.usage", "{inode}", stat.f_ffree,
                            {**attributes, "state": "free"}, monotonic=False)

        result.metrics = builder.emit()
        return result

    def _included(self, partition) -> bool:
        return (
            self.config.devices.allows(partition.device)
            and self.config.fs_types.allows(partition.fstype)
            and self.config.mount_points.allows(partition.mountpoint)
        )

    def _translate(self, mountpoint: str) -> str:
        # Mount info read from a dedicated file already holds usable paths
        if self.host_paths.get("HOST_PROC_MOUNTINFO") or self.root_path in ("", "/"):
            return mountpoint
        return posixpath.join(self.root_path, mountpoint.lstrip("/"))


class FilesystemScraperFactory(ScraperFactory):
    """Factory for the filesystem scraper."""

    type = TYPE
    config_class = FilesystemScraperConfig

    def create_metrics_scraper(self, settings: ReceiverSettings, config: ScraperConfig) -> Scraper:
        cfg = self.coerce_config(config)
        s = FilesystemScraper(cfg, settings.logger, settings.root_path, settings.host_paths)
        return Scraper(TYPE, s.scrape, logger=settings.logger)
