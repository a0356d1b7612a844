"""Scraper capability, lifecycle wrapper and factory base class."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Type, Union
import asyncio
import inspect
import logging

from ..config.models import ScraperConfig
from ..config.settings import Environment, OsEnvironment, resolve_host_paths
from ..utils.errors import ScrapeError, ScraperStartError
from ..utils.metrics import ScrapeResult
from ..utils.status import ScraperState


ScrapeFunc = Callable[[], Union[ScrapeResult, Awaitable[ScrapeResult]]]
LifecycleFunc = Callable[[], Union[None, Awaitable[None]]]


@dataclass
class ReceiverSettings:
    """Shared context handed to every scraper factory of a receiver."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("hostmetrics"))
    environment: Environment = field(default_factory=OsEnvironment)
    root_path: str = ""

    @property
    def host_paths(self) -> Dict[str, str]:
        return resolve_host_paths(self.root_path, self.environment)


async def _invoke(func: Callable[[], Any]) -> Any:
    """Await coroutine functions; run blocking ones in the default thread pool."""
    if inspect.iscoroutinefunction(func):
        return await func()
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func)


class Scraper:
    """
    One pluggable collection unit with a start/scrape/shutdown lifecycle.

    The domain logic is supplied as callables, so every metric domain shares
    the same state machine: uninitialized -> started -> (scrape)* -> shutdown.
    Blocking callables run in a worker thread; coroutine functions are awaited.
    """

    def __init__(
        self,
        scraper_type: str,
        scrape: ScrapeFunc,
        start: Optional[LifecycleFunc] = None,
        shutdown: Optional[LifecycleFunc] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize scraper.

        Args:
            scraper_type: Metric domain key (e.g. "load")
            scrape: Performs one collection pass
            start: Optional resource allocation hook
            shutdown: Optional resource release hook
            logger: Logger instance
        """
        self.type = scraper_type
        self.state = ScraperState.UNINITIALIZED
        self.logger = (logger or logging.getLogger("hostmetrics")).getChild(f"scraper.{scraper_type}")
        self._scrape = scrape
        self._start = start
        self._shutdown = shutdown

    async def start(self) -> None:
        """
        Allocate per-domain resources.

        Raises:
            ScraperStartError: If the domain cannot be collected on this host
        """
        if self.state is ScraperState.STARTED:
            return
        if self.state is ScraperState.SHUTDOWN:
            raise ScraperStartError(self.type, "scraper has already been shut down")

        if self._start is not None:
            try:
                await _invoke(self._start)
            except ScraperStartError:
                raise
            except Exception as e:
                raise ScraperStartError(self.type, str(e)) from e

        self.state = ScraperState.STARTED
        self.logger.debug(f"{self.type} scraper started")

    async def scrape(self) -> ScrapeResult:
        """
        Perform exactly one collection pass.

        Returns:
            ScrapeResult: Collected metrics, with sub-reading failures if partial

        Raises:
            ScrapeError: If the scraper is not started or collected nothing
        """
        if not self.state.can_scrape():
            raise ScrapeError(f"{self.type} scraper is {self.state.value}, not started")

        result = await _invoke(self._scrape)
        if isinstance(result, list):
            result = ScrapeResult(metrics=result)
        if not isinstance(result, ScrapeResult):
            raise ScrapeError(f"{self.type} scraper returned {type(result).__name__}")
        return result

    async def shutdown(self) -> Optional[BaseException]:
        """
        Release resources. Safe to call more than once.

        Returns:
            Optional[BaseException]: The error raised by the release hook, if any
        """
        if self.state is ScraperState.SHUTDOWN:
            return None

        was_started = self.state is ScraperState.STARTED
        self.state = ScraperState.SHUTDOWN

        if not was_started or self._shutdown is None:
            return None

        try:
            await _invoke(self._shutdown)
        except Exception as e:
            self.logger.error(f"{self.type} scraper shutdown failed: {e}", exc_info=True)
            return e

        self.logger.debug(f"{self.type} scraper shut down")
        return None


class ScraperFactory(ABC):
    """Builds the configuration and the scraper for one metric domain."""

    type: str = "base"
    config_class: Type[ScraperConfig] = ScraperConfig

    def create_default_config(self) -> ScraperConfig:
        return self.config_class()

    def create_config(self, raw: Optional[Dict[str, Any]] = None) -> ScraperConfig:
        """
        Validate a raw configuration section.

        Raises:
            pydantic.ValidationError: If the section has unknown or invalid fields
        """
        return self.config_class.model_validate(raw or {})

    def coerce_config(self, config: Union[ScraperConfig, Dict[str, Any], None]) -> ScraperConfig:
        """Turn a generic section into this domain's configuration model."""
        if isinstance(config, self.config_class):
            return config
        if isinstance(config, ScraperConfig):
            return self.create_config(config.model_dump())
        return self.create_config(config)

    @abstractmethod
    def create_metrics_scraper(self, settings: ReceiverSettings, config: ScraperConfig) -> Scraper:
        """
        Create a scraper from a validated configuration.

        Args:
            settings: Receiver-wide context (logger, environment, root path)
            config: Domain configuration

        Returns:
            Scraper: Uninitialized scraper
        """
        pass
