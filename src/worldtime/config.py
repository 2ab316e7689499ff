"""
worldtime configuration

Settings come from environment variables (the usual deployment path) or from
a YAML file with a ``world_time`` section. Anything that fails to parse or
validate raises ConfigParseError before a single server is probed.

Environment variables:
    YA_WORLD_TIME_SERVER_HOSTS  ';'-separated hostnames
    YA_WORLD_TIME_MAX_AT_ONCE   probes per batch (default 50)
    YA_WORLD_TIME_MAX_TOTAL     candidate pool size (default 100)
    YA_WORLD_TIME_MAX_TIMEOUT   per-batch deadline in ms (default 300)
"""

import os
import logging
from pathlib import Path
from typing import List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import ConfigParseError

logger = logging.getLogger(__name__)

DEFAULT_HOSTS = [
    "time.google.com",
    "ntp.qix.ca",
    "ntp.nict.jp",
    "pool.ntp.org",
    "time.cloudflare.com",
    "ntp.fizyka.umk.pl",
    "time.apple.com",
    "time.fu-berlin.de",
    "time.facebook.com",
]

ENV_SERVER_HOSTS = "YA_WORLD_TIME_SERVER_HOSTS"
ENV_MAX_AT_ONCE = "YA_WORLD_TIME_MAX_AT_ONCE"
ENV_MAX_TOTAL = "YA_WORLD_TIME_MAX_TOTAL"
ENV_MAX_TIMEOUT = "YA_WORLD_TIME_MAX_TIMEOUT"

_ENV_INT_FIELDS = {
    ENV_MAX_AT_ONCE: "max_at_once",
    ENV_MAX_TOTAL: "max_total",
    ENV_MAX_TIMEOUT: "max_timeout_ms",
}


def parse_host_list(value: str) -> List[str]:
    """Split a ';'-separated host list, dropping blanks."""
    return [host.strip() for host in value.split(";") if host.strip()]


class WorldTimeConfig(BaseModel):
    """Settings for one world time sync cycle."""

    hosts: List[str] = Field(default_factory=lambda: list(DEFAULT_HOSTS),
                             description="Time server hostnames, queried in order")
    max_at_once: int = Field(50, ge=1, description="Maximum concurrent probes per batch")
    max_total: int = Field(100, ge=0, description="Maximum size of the candidate pool")
    max_timeout_ms: int = Field(300, ge=0, description="Per-batch collection deadline in milliseconds")
    poll_interval_ms: float = Field(5.0, gt=0, description="Longest single wait while collecting")
    max_abandoned: Optional[int] = Field(
        None, ge=1,
        description="Abandoned probes allowed to keep running, defaults to max(max_total, max_at_once)"
    )
    precision_divisor: float = Field(5.0, gt=0, description="Roundtrip-to-error divisor (K)")
    systematic_error_us: float = Field(200.0, ge=0, description="Additional systematic error (C)")

    @field_validator("hosts")
    @classmethod
    def _strip_hosts(cls, hosts: List[str]) -> List[str]:
        return [h.strip() for h in hosts if h and h.strip()]

    @model_validator(mode="after")
    def _check_abandoned_limit(self) -> "WorldTimeConfig":
        # Below max_at_once a single fully hung batch would stall the next one.
        if self.max_abandoned is None:
            self.max_abandoned = max(self.max_total, self.max_at_once)
        elif self.max_abandoned < self.max_at_once:
            raise ValueError(f"max_abandoned ({self.max_abandoned}) must be at least "
                             f"max_at_once ({self.max_at_once})")
        return self

    @property
    def max_timeout_seconds(self) -> float:
        return self.max_timeout_ms / 1000.0

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_ms / 1000.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "WorldTimeConfig":
        """Build configuration from environment variables."""
        env = os.environ if environ is None else environ
        values = {}

        if ENV_SERVER_HOSTS in env:
            values["hosts"] = parse_host_list(env[ENV_SERVER_HOSTS])

        for var, field in _ENV_INT_FIELDS.items():
            raw = env.get(var)
            if raw is None:
                continue
            try:
                values[field] = int(raw.strip())
            except ValueError:
                raise ConfigParseError(f"{var} cannot parse to integer: {raw!r}") from None

        return cls._validated(values, source="environment")

    @classmethod
    def from_yaml(cls, config_path: str) -> "WorldTimeConfig":
        """Load the ``world_time`` section of a YAML file."""
        try:
            with open(config_path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigParseError(f"Failed to load config {config_path}: {e}") from e

        if not isinstance(config, dict):
            raise ConfigParseError(f"Config {config_path} must be a mapping")

        section = config.get("world_time", {}) or {}
        if not isinstance(section, dict):
            raise ConfigParseError(f"'world_time' section in {config_path} must be a mapping")

        if isinstance(section.get("hosts"), str):
            section = dict(section, hosts=parse_host_list(section["hosts"]))

        logger.debug(f"Loaded world_time config from {Path(config_path)}: {sorted(section)}")
        return cls._validated(section, source=str(config_path))

    @classmethod
    def _validated(cls, values: dict, source: str) -> "WorldTimeConfig":
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigParseError(f"Invalid configuration from {source}: {e}") from e
