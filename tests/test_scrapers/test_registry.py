"""Tests for the scraper factory registry."""

import pytest

from hostmetrics.scrapers import registry
from hostmetrics.scrapers.load import LoadScraperFactory


EXPECTED_KEYS = {
    "cpu", "disk", "filesystem", "load", "memory",
    "network", "paging", "processes", "process", "system",
}


def test_registry_holds_every_domain():
    assert set(registry.SCRAPER_FACTORIES) == EXPECTED_KEYS
    for key, factory in registry.SCRAPER_FACTORIES.items():
        assert factory.type == key


def test_registry_is_read_only():
    with pytest.raises(TypeError):
        registry.SCRAPER_FACTORIES["custom"] = LoadScraperFactory()


def test_resolve_known_key():
    factory, found = registry.resolve("load")

    assert found is True
    assert isinstance(factory, LoadScraperFactory)


def test_resolve_unknown_key():
    assert registry.resolve("gpu") == (None, False)


def test_duplicate_keys_rejected():
    with pytest.raises(ValueError, match="duplicate scraper factory"):
        registry._build_registry([LoadScraperFactory(), LoadScraperFactory()])
