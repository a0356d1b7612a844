"""Shared pytest configuration and fixtures."""

import asyncio

import pytest

from hostmetrics.config.settings import MappingEnvironment
from hostmetrics.scrapers.base import ReceiverSettings, Scraper
from hostmetrics.services import host
from hostmetrics.utils.logger import setup_logger
from hostmetrics.utils.metrics import MetricsBuilder, ScrapeResult


class RecordingConsumer:
    """Metrics and logs consumer that keeps everything it receives."""

    def __init__(self):
        self.batches = []
        self.records = []

    async def consume_metrics(self, batch):
        self.batches.append(batch)

    async def consume_logs(self, records):
        self.records.extend(records)


def static_scraper(key, value=1.0, errors=None, delay=0.0):
    """Scraper emitting one gauge named ``test.<key>``, optionally slowly."""

    async def scrape():
        if delay:
            await asyncio.sleep(delay)
        builder = MetricsBuilder()
        builder.gauge(f"test.{key}", "1", value)
        result = ScrapeResult(metrics=builder.emit())
        for item, error in (errors or []):
            result.add_error(item, error)
        return result

    return Scraper(key, scrape)


def failing_scraper(key, error=None):
    """Scraper whose every pass raises."""

    async def scrape():
        raise error or RuntimeError(f"{key} is broken")

    return Scraper(key, scrape)


@pytest.fixture
def logger():
    """Create logger for tests."""
    return setup_logger("test")


@pytest.fixture
def consumer():
    return RecordingConsumer()


@pytest.fixture
def settings(logger):
    """Receiver settings with an empty environment."""
    return ReceiverSettings(logger=logger, environment=MappingEnvironment())


@pytest.fixture(autouse=True)
def reset_host_state():
    """Keep boot-time cache and shared optimizations from leaking between tests."""
    host.reset_shared_optimizations()
    yield
    host.reset_shared_optimizations()


@pytest.fixture
def make_scraper():
    """Factory fixture for scrapers emitting one ``test.<key>`` gauge."""
    return static_scraper


@pytest.fixture
def make_failing_scraper():
    """Factory fixture for scrapers whose every pass raises."""
    return failing_scraper
