"""Main application entry point for the host metrics receiver."""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from .config.loader import ConfigLoader
from .config.models import ReceiverConfig
from .controller import ScraperController
from .entities import HostEntitiesReceiver
from .receiver import create_logs_receiver, create_metrics_receiver
from .scrapers.base import ReceiverSettings
from .services.consumers import LoggingExporter
from .utils.errors import PartialScrapeError
from .utils.logger import setup_logger


class HostMetricsApp:
    """
    Host metrics application.

    Runs the metrics controller and the host entity emitter side by side,
    exporting both through the structured log, until a shutdown signal.
    """

    def __init__(
        self,
        config_path: str = "config/config.yaml",
        verbosity: str = "basic",
        log_level: str = "INFO"
    ):
        """
        Initialize host metrics application.

        Args:
            config_path: Path to configuration file
            verbosity: Exporter verbosity ("basic" or "detailed")
            log_level: Log level for the application logger
        """
        self.config_path = config_path
        self.logger = setup_logger("hostmetrics", log_level)
        self.exporter = LoggingExporter(self.logger, verbosity)
        self.settings = ReceiverSettings(logger=self.logger)
        self.controller: Optional[ScraperController] = None
        self.entities: Optional[HostEntitiesReceiver] = None
        self._stop = asyncio.Event()

        self.config = self._load_config()

    def _load_config(self) -> ReceiverConfig:
        """
        Load and validate configuration.

        Raises:
            SystemExit: If configuration is invalid
        """
        try:
            self.logger.info(f"Loading configuration from {self.config_path}")
            config = ConfigLoader.load_from_file(self.config_path, self.settings.environment)
            self.logger.info(
                "Configuration loaded successfully",
                extra={"scrapers": list(config.scrapers)}
            )
            return config

        except FileNotFoundError:
            self.logger.error(
                f"Configuration file not found: {self.config_path}\n"
                "Please create config/config.yaml from config/config.example.yaml"
            )
            sys.exit(1)

        except Exception as e:
            self.logger.error(
                f"Failed to load configuration: {e}",
                exc_info=True
            )
            sys.exit(1)

    def _build(self) -> None:
        self.controller = create_metrics_receiver(self.settings, self.config, self.exporter)
        self.entities = create_logs_receiver(self.settings, self.config, self.exporter)

    def _signal_handler(self, signum: int) -> None:
        """Handle shutdown signals."""
        signal_name = signal.Signals(signum).name
        self.logger.info(f"Received {signal_name}, initiating graceful shutdown...")
        self._stop.set()

    async def run_once(self) -> Optional[PartialScrapeError]:
        """
        Collect one round and one host entity, then shut down.

        Raises:
            ScrapeRoundFailedError: If every scraper failed
        """
        self._build()
        try:
            await self.controller.start(schedule=False)
            await self.entities.emit_once()
            error = await self.controller.scrape_once()
            if error is not None:
                self.logger.warning(f"Collection round incomplete: {error}")
            return error
        finally:
            await self.shutdown()

    async def run(self) -> None:
        """Run scheduled collection until SIGTERM/SIGINT."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._signal_handler, sig)

        self._build()
        try:
            await self.controller.start()
            await self.entities.start()
            self.logger.info("Receiver running. Press Ctrl+C to exit.")
            await self._stop.wait()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        if self.entities is not None:
            await self.entities.shutdown()
        if self.controller is not None:
            await self.controller.shutdown()
            self.logger.info("Receiver stopped", extra={"stats": vars(self.controller.stats)})


def main():
    """
    CLI entry point.

    Parses command-line arguments and starts the receiver.
    """
    parser = argparse.ArgumentParser(
        description='Host metrics receiver',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with scheduler (default)
  hostmetrics

  # Collect once and exit (useful for testing)
  hostmetrics --run-once --verbosity detailed

  # Use custom config file
  hostmetrics --config /path/to/config.yaml
        """
    )

    parser.add_argument(
        '--config',
        default='config/config.yaml',
        help='Path to configuration file (default: config/config.yaml)'
    )

    parser.add_argument(
        '--run-once',
        action='store_true',
        help='Collect one round and exit (no scheduler)'
    )

    parser.add_argument(
        '--verbosity',
        default='basic',
        choices=['basic', 'detailed'],
        help='Exporter verbosity: batch summaries or full OTLP/JSON payloads'
    )

    parser.add_argument(
        '--log-level',
        default=os.getenv('LOG_LEVEL', 'INFO'),
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO or LOG_LEVEL env var)'
    )

    args = parser.parse_args()

    async def _run() -> int:
        app = HostMetricsApp(
            config_path=args.config,
            verbosity=args.verbosity,
            log_level=args.log_level
        )
        if args.run_once:
            await app.run_once()
        else:
            await app.run()
        return 0

    try:
        sys.exit(asyncio.run(_run()))
    except SystemExit:
        raise
    except Exception as e:
        logging.error(f"Receiver failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
