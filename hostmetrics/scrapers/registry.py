"""Fixed table of scraper factories, keyed by metric domain."""

from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from .base import ScraperFactory
from .cpu import CPUScraperFactory
from .disk import DiskScraperFactory
from .filesystem import FilesystemScraperFactory
from .load import LoadScraperFactory
from .memory import MemoryScraperFactory
from .network import NetworkScraperFactory
from .paging import PagingScraperFactory
from .process import ProcessScraperFactory
from .processes import ProcessesScraperFactory
from .system import SystemScraperFactory


def _build_registry(factories: Iterable[ScraperFactory]) -> Mapping[str, ScraperFactory]:
    registry = {}
    for factory in factories:
        if factory.type in registry:
            raise ValueError(f"duplicate scraper factory for key: {factory.type!r}")
        registry[factory.type] = factory
    return MappingProxyType(registry)


SCRAPER_FACTORIES: Mapping[str, ScraperFactory] = _build_registry([
    CPUScraperFactory(),
    DiskScraperFactory(),
    FilesystemScraperFactory(),
    LoadScraperFactory(),
    MemoryScraperFactory(),
    NetworkScraperFactory(),
    PagingScraperFactory(),
    ProcessesScraperFactory(),
    ProcessScraperFactory(),
    SystemScraperFactory(),
])


def resolve(key: str) -> Tuple[Optional[ScraperFactory], bool]:
    """
    Look up the factory for a scraper key.

    Returns:
        Tuple[Optional[ScraperFactory], bool]: The factory and whether it was found
    """
    factory = SCRAPER_FACTORIES.get(key)
    return factory, factory is not None
