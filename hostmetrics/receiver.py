"""Receiver factory: turns a ReceiverConfig into running components."""

import dataclasses
import functools
from typing import Dict, List, Mapping, Tuple

from pydantic import ValidationError

from .config.models import ReceiverConfig, ScraperConfig
from .controller import ScraperController
from .entities import HostEntitiesReceiver, collect_host_entity
from .scrapers.base import ReceiverSettings, Scraper, ScraperFactory
from .scrapers.registry import SCRAPER_FACTORIES
from .services.consumers import LogsConsumer, MetricsConsumer
from .services.host import enable_shared_optimizations, host_resource
from .utils.errors import ConfigurationError


def create_default_config() -> ReceiverConfig:
    """Receiver defaults: 60s collection, 1s initial delay, 5m entity interval, no scrapers."""
    return ReceiverConfig()


def get_scraper_factory(key: str, factories: Mapping[str, ScraperFactory] = SCRAPER_FACTORIES) -> ScraperFactory:
    """
    Look up the factory registered for ``key``.

    Raises:
        ConfigurationError: If no factory is registered under the key
    """
    factory = factories.get(key)
    if factory is None:
        raise ConfigurationError(f'host metrics scraper factory not found for key: "{key}"')
    return factory


def create_scrapers(
    settings: ReceiverSettings,
    scraper_configs: Dict[str, ScraperConfig],
    factories: Mapping[str, ScraperFactory] = SCRAPER_FACTORIES
) -> List[Tuple[str, Scraper]]:
    """
    Build one scraper per configured key, in configuration order.

    Every key is resolved before any scraper is built.

    Raises:
        ConfigurationError: If a key is unknown or its section is invalid
    """
    resolved = [(key, get_scraper_factory(key, factories), cfg) for key, cfg in scraper_configs.items()]

    scrapers = []
    for key, factory, cfg in resolved:
        try:
            scraper = factory.create_metrics_scraper(settings, cfg)
        except ValidationError as e:
            raise ConfigurationError(f'invalid configuration for scraper "{key}": {e}') from e
        scrapers.append((key, scraper))
    return scrapers


def create_metrics_receiver(
    settings: ReceiverSettings,
    config: ReceiverConfig,
    consumer: MetricsConsumer,
    factories: Mapping[str, ScraperFactory] = SCRAPER_FACTORIES
) -> ScraperController:
    """
    Build the metrics controller for ``config``.

    Raises:
        ConfigurationError: If no scrapers are configured, or one cannot be built
    """
    if not config.scrapers:
        raise ConfigurationError("must specify at least one scraper when using hostmetrics receiver")

    settings = dataclasses.replace(settings, root_path=config.root_path)
    scrapers = create_scrapers(settings, config.scrapers, factories)

    return ScraperController(
        config.controller_config(),
        scrapers,
        consumer,
        logger=settings.logger,
        resource=host_resource(),
        shared_setup=functools.partial(enable_shared_optimizations, settings.host_paths, settings.logger)
    )


def create_logs_receiver(
    settings: ReceiverSettings,
    config: ReceiverConfig,
    consumer: LogsConsumer
) -> HostEntitiesReceiver:
    """Build the host entity emitter for ``config``."""
    settings = dataclasses.replace(settings, root_path=config.root_path)
    return HostEntitiesReceiver(
        config.metadata_collection_interval,
        consumer,
        logger=settings.logger,
        collect=functools.partial(collect_host_entity, settings.host_paths)
    )
