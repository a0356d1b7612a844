"""Exception types raised by the receiver, controller and scrapers."""

from typing import Dict, List, Optional

from .metrics import ScrapeFailure


class ConfigurationError(ValueError):
    """Receiver configuration cannot be turned into a running receiver."""


class ScraperStartError(RuntimeError):
    """A scraper could not allocate the resources it needs to collect."""

    def __init__(self, scraper_type: str, message: str):
        super().__init__(f"failed to start {scraper_type} scraper: {message}")
        self.scraper_type = scraper_type


class ScrapeError(RuntimeError):
    """A scraper could not produce any data for the current round."""


class HandleCountNotFoundError(LookupError):
    """The process was not present in the last handle-count refresh."""

    def __init__(self, pid: int):
        super().__init__(f"no handle count recorded for pid {pid}")
        self.pid = pid


class HandleCountAccessDeniedError(PermissionError):
    """The OS refused to report the handle count of the process."""

    def __init__(self, pid: int):
        super().__init__(f"access denied reading handle count for pid {pid}")
        self.pid = pid


class HandleCountUnsupportedError(NotImplementedError):
    """Handle counts cannot be read on this platform."""


class PartialScrapeError(Exception):
    """
    Outcome of a collection round in which some scrapers did not deliver.

    Attributes:
        failed: Scraper key mapped to the exception that voided its contribution
        partial: Scraper key mapped to the sub-readings it could not collect
        forwarded: Whether the merged batch was handed to the consumer
    """

    def __init__(
        self,
        failed: Dict[str, BaseException],
        partial: Optional[Dict[str, List[ScrapeFailure]]] = None,
        forwarded: bool = True
    ):
        self.failed = dict(failed)
        self.partial = dict(partial or {})
        self.forwarded = forwarded
        super().__init__(self._describe())

    @property
    def failed_count(self) -> int:
        """Number of scrapers whose whole contribution was dropped."""
        return len(self.failed)

    @property
    def failed_keys(self) -> List[str]:
        """Keys of scrapers whose whole contribution was dropped."""
        return list(self.failed)

    def _describe(self) -> str:
        parts = [f"{key}: {err}" for key, err in self.failed.items()]
        for key, failures in self.partial.items():
            parts.extend(f"{key} ({failure.item}): {failure.error}" for failure in failures)

        if not self.failed:
            summary = "partial data collected"
        else:
            summary = f"{len(self.failed)} scraper(s) failed"
        return f"{summary}: " + "; ".join(parts)


class ScrapeRoundFailedError(PartialScrapeError):
    """Every scraper failed; nothing was forwarded for the round."""

    def __init__(self, failed: Dict[str, BaseException]):
        super().__init__(failed, forwarded=False)

