"""Host entity events, emitted on their own schedule."""

import asyncio
import logging
import platform
import socket
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

import distro
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .services.consumers import LogsConsumer
from .services.host import boot_time
from .services.scheduling import create_interval_scheduler, remove_job, shutdown_scheduler
from .utils.metrics import LogRecord, now_ns


JOB_ID = "host_entity"


@dataclass
class HostEntityRecord:
    """Identity of the host at the time of emission."""

    hostname: str
    host_id: str
    os_type: str
    os_description: str
    arch: str
    boot_time: float

    def to_log_record(self) -> LogRecord:
        """Entity-state event describing this host."""
        return LogRecord(
            timestamp=now_ns(),
            attributes={
                "otel.entity.event.type": "entity_state",
                "otel.entity.type": "host",
                "otel.entity.id": {"host.id": self.host_id},
                "otel.entity.attributes": {
                    "host.name": self.hostname,
                    "host.arch": self.arch,
                    "os.type": self.os_type,
                    "os.description": self.os_description,
                    "host.boot_time": self.boot_time,
                },
            },
        )


def _machine_id(etc_path: str) -> Optional[str]:
    for path in (Path(etc_path) / "machine-id", Path("/var/lib/dbus/machine-id")):
        if path.exists():
            value = path.read_text().strip()
            if value:
                return value
    return None


def collect_host_entity(host_paths: Optional[Dict[str, str]] = None) -> HostEntityRecord:
    """
    Read the host identity.

    The host id is the systemd machine id when one exists, otherwise the
    hostname.
    """
    host_paths = host_paths or {}
    hostname = socket.gethostname()
    os_type = platform.system().lower()

    os_description = distro.name(pretty=True) or f"{platform.system()} {platform.release()}"

    return HostEntityRecord(
        hostname=hostname,
        host_id=_machine_id(host_paths.get("HOST_ETC", "/etc")) or hostname,
        os_type=os_type,
        os_description=os_description,
        arch=platform.machine(),
        boot_time=boot_time(),
    )


class HostEntitiesReceiver:
    """
    Emits one host entity event per ``interval``, starting immediately.

    Runs independently of the metrics controller; its cadence is its own.
    """

    def __init__(
        self,
        interval: float,
        consumer: LogsConsumer,
        logger: Optional[logging.Logger] = None,
        collect: Optional[Callable[[], HostEntityRecord]] = None
    ):
        """
        Initialize entity receiver.

        Args:
            interval: Seconds between emissions
            consumer: Receives the entity log records
            logger: Logger instance
            collect: Builds the record; defaults to reading the local host
        """
        if interval <= 0:
            raise ValueError(f"metadata_collection_interval must be positive, got {interval}")

        self.interval = interval
        self.consumer = consumer
        self.logger = (logger or logging.getLogger("hostmetrics")).getChild(self.__class__.__name__)
        self.collect = collect or collect_host_entity

        self.emitted = 0
        self.skipped = 0
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._started = False
        self._shut_down = False

    async def start(self) -> None:
        """Emit the first record now and schedule the rest."""
        if self._shut_down:
            raise RuntimeError("entity receiver has been shut down")
        if self._started:
            return
        self._started = True

        await self.emit_once()

        self._scheduler = create_interval_scheduler(
            self.emit_once,
            interval=self.interval,
            job_id=JOB_ID,
            name="Host entity emission",
            initial_delay=self.interval
        )
        self._scheduler.start()
        self.logger.info(f"Emitting host entity every {self.interval}s")

    async def emit_once(self) -> bool:
        """
        Build and forward one entity record.

        Returns:
            bool: True if a record was forwarded
        """
        try:
            record = await asyncio.get_running_loop().run_in_executor(None, self.collect)
        except Exception as e:
            self.skipped += 1
            self.logger.error(f"Failed to read host entity: {e}", exc_info=True)
            return False

        try:
            await self.consumer.consume_logs([record.to_log_record()])
        except Exception as e:
            self.skipped += 1
            self.logger.error(f"Failed to forward host entity: {e}", exc_info=True)
            return False

        self.emitted += 1
        self.logger.debug("Host entity emitted", extra={"entity": asdict(record)})
        return True

    async def shutdown(self) -> None:
        """Stop emitting. Safe to call more than once."""
        if self._shut_down:
            return
        self._shut_down = True
        remove_job(self._scheduler, JOB_ID)
        shutdown_scheduler(self._scheduler)
