"""Scraper lifecycle state enumeration."""

from enum import Enum


class ScraperState(Enum):
    """Lifecycle state of a scraper."""

    UNINITIALIZED = "uninitialized"
    STARTED = "started"
    SHUTDOWN = "shutdown"

    def can_scrape(self) -> bool:
        """
        Check whether a scraper in this state may run a collection pass.

        Returns:
            bool: True only for started scrapers
        """
        return self is ScraperState.STARTED
