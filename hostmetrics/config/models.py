"""Pydantic configuration models for the host metrics receiver."""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Dict, List, Literal, Optional
import os
import re
import sys


_DURATION_PATTERN = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$')
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


def parse_duration(value: Any) -> Any:
    """
    Convert "500ms", "10s", "5m" or "1h" to seconds.

    Numbers are taken as seconds. Anything else is returned unchanged so
    pydantic can report it.
    """
    if isinstance(value, str):
        match = _DURATION_PATTERN.match(value)
        if not match:
            raise ValueError(f"invalid duration: {value!r}")
        return float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    return value


class FilterConfig(BaseModel):
    """Name filter used by include/exclude options."""
    model_config = ConfigDict(extra="forbid")

    names: List[str] = Field(default_factory=list)
    match_type: Literal["strict", "regexp"] = "strict"

    @model_validator(mode="after")
    def compile_patterns(self) -> "FilterConfig":
        """Fail early on invalid regular expressions."""
        if self.match_type == "regexp":
            for name in self.names:
                try:
                    re.compile(name)
                except re.error as e:
                    raise ValueError(f"invalid regexp {name!r}: {e}")
        return self

    def matches(self, value: str) -> bool:
        if self.match_type == "strict":
            return value in self.names
        return any(re.search(name, value) for name in self.names)


class MatchConfig(BaseModel):
    """Include/exclude pair; an empty include matches everything."""
    model_config = ConfigDict(extra="forbid")

    include: Optional[FilterConfig] = None
    exclude: Optional[FilterConfig] = None

    def allows(self, value: str) -> bool:
        if self.include is not None and self.include.names and not self.include.matches(value):
            return False
        if self.exclude is not None and self.exclude.matches(value):
            return False
        return True


class ScraperConfig(BaseModel):
    """
    Base configuration for one scraper.

    Domain scrapers subclass this and forbid unknown fields; the base model
    keeps them so the domain factory can validate them later.
    """
    model_config = ConfigDict(extra="allow")


class ControllerConfig(BaseModel):
    """Scheduling settings shared by every scraper of a receiver."""
    collection_interval: float = Field(default=60.0, gt=0)
    initial_delay: float = Field(default=1.0, ge=0)
    timeout: float = Field(default=0.0, ge=0)  # 0 = no per-scraper deadline

    @field_validator('collection_interval', 'initial_delay', 'timeout', mode='before')
    @classmethod
    def parse_durations(cls, v: Any) -> Any:
        """Accept duration strings such as "30s"."""
        return parse_duration(v)


class ReceiverConfig(ControllerConfig):
    """Root configuration model for the host metrics receiver."""
    metadata_collection_interval: float = Field(default=300.0, gt=0)
    root_path: str = ""
    scrapers: Dict[str, ScraperConfig] = Field(default_factory=dict)

    @field_validator('metadata_collection_interval', mode='before')
    @classmethod
    def parse_metadata_interval(cls, v: Any) -> Any:
        """Accept duration strings such as "5m"."""
        return parse_duration(v)

    @field_validator('scrapers', mode='before')
    @classmethod
    def empty_scraper_sections(cls, v: Any) -> Any:
        """Treat bare keys (``load:``) as empty configurations."""
        if isinstance(v, dict):
            return {key: ({} if cfg is None else cfg) for key, cfg in v.items()}
        return v

    @field_validator('root_path')
    @classmethod
    def validate_root_path(cls, v: str) -> str:
        """Host root relocation is only meaningful for Linux procfs/sysfs."""
        if v in ("", "/"):
            return v
        if not sys.platform.startswith("linux"):
            raise ValueError("root_path is supported on linux only")
        if not os.path.exists(v):
            raise ValueError(f"invalid root_path: {v} does not exist")
        return v

    def controller_config(self) -> ControllerConfig:
        """Scheduling settings for the metrics controller."""
        return ControllerConfig(
            collection_interval=self.collection_interval,
            initial_delay=self.initial_delay,
            timeout=self.timeout
        )
