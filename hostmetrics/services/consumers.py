"""Downstream consumers for metric batches and entity log records."""

import json
import logging
from typing import List, Protocol

from ..utils.metrics import LogRecord, MetricsBatch


class MetricsConsumer(Protocol):
    """Receives one batch per successful collection round."""

    async def consume_metrics(self, batch: MetricsBatch) -> None:
        ...


class LogsConsumer(Protocol):
    """Receives entity events from the host-entity emitter."""

    async def consume_logs(self, records: List[LogRecord]) -> None:
        ...


class LoggingExporter:
    """
    Consumer that writes telemetry to the structured log.

    ``basic`` verbosity logs a one-line summary per batch; ``detailed``
    also logs the full OTLP/JSON payload.
    """

    def __init__(self, logger: logging.Logger, verbosity: str = "basic"):
        """
        Initialize logging exporter.

        Args:
            logger: Logger instance
            verbosity: "basic" or "detailed"
        """
        if verbosity not in ("basic", "detailed"):
            raise ValueError(f"Unknown verbosity: {verbosity}")
        self.logger = logger.getChild(self.__class__.__name__)
        self.verbosity = verbosity

    async def consume_metrics(self, batch: MetricsBatch) -> None:
        self.logger.info(
            f"Metrics batch: {len(batch.metrics())} metric(s), "
            f"{batch.data_point_count()} data point(s)",
            extra={"scopes": batch.scopes()}
        )
        if self.verbosity == "detailed":
            self.logger.info(json.dumps(batch.to_dict()))

    async def consume_logs(self, records: List[LogRecord]) -> None:
        self.logger.info(f"Logs batch: {len(records)} record(s)")
        if self.verbosity == "detailed":
            for record in records:
                self.logger.info(json.dumps(record.to_dict()))
