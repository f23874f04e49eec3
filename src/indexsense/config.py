"""
Configuration system for IndexSense.

Implements 12-factor config principles:
- Environment variables as primary config source
- Optional JSON/YAML config file for local development
- Severity thresholds for slow query classification

Usage:
    from indexsense.config import get_config

    config = get_config()
    client = config.mongo_client_kwargs()
    if record.duration_ms > config.high_severity_ms:
        ...

Environment variables:
    INDEXSENSE_MONGO_URI=mongodb://db.internal:27017
    INDEXSENSE_DATABASE=storefront
    INDEXSENSE_MAX_TIME_MS=5000
    INDEXSENSE_HIGH_SEVERITY_MS=1000
    INDEXSENSE_CONFIG_FILE=indexsense.yaml
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from indexsense.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "INDEXSENSE_"


class Config(BaseModel):
    """
    IndexSense configuration.

    Loaded from environment variables and optional config file.
    """

    model_config = ConfigDict(frozen=True)

    # Connection
    mongo_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string",
    )
    database: str = Field(
        default="travel",
        description="Database holding the storefront collections",
    )

    # Timeouts (every store call is bounded)
    server_selection_timeout_ms: int = Field(
        default=5000,
        description="How long to wait for a reachable server",
    )
    connect_timeout_ms: int = Field(
        default=5000,
        description="Socket connect timeout",
    )
    socket_timeout_ms: int = Field(
        default=30000,
        description="Socket read timeout",
    )
    max_time_ms: int = Field(
        default=10000,
        description="Server-side maxTimeMS for index builds and $indexStats aggregations",
    )

    # Slow query classification (completed queries)
    high_severity_ms: int = Field(
        default=1000,
        description="Queries strictly slower than this are HIGH severity",
    )
    medium_severity_ms: int = Field(
        default=500,
        description="Queries strictly slower than this are MEDIUM severity",
    )

    # Performance monitor (in-flight operations)
    slow_op_threshold_ms: int = Field(
        default=100,
        description="In-flight operations running longer than this are slow",
    )

    catalog_file: str | None = Field(
        default=None,
        description="Catalog file to use instead of the built-in catalog",
    )

    @model_validator(mode="after")
    def _check_thresholds(self) -> "Config":
        for name in (
            "server_selection_timeout_ms",
            "connect_timeout_ms",
            "socket_timeout_ms",
            "max_time_ms",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.medium_severity_ms < 0 or self.slow_op_threshold_ms < 0:
            raise ValueError("severity thresholds must not be negative")
        if self.medium_severity_ms >= self.high_severity_ms:
            raise ValueError("medium_severity_ms must be lower than high_severity_ms")
        return self

    def mongo_client_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for pymongo.MongoClient."""
        return {
            "serverSelectionTimeoutMS": self.server_selection_timeout_ms,
            "connectTimeoutMS": self.connect_timeout_ms,
            "socketTimeoutMS": self.socket_timeout_ms,
        }


def _build_config(data: dict[str, Any], source: str) -> Config:
    try:
        return Config(**data)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ConfigurationError(
            f"Invalid configuration from {source}: {first.get('msg')}",
            config_key=key,
        ) from e


def load_config_from_env() -> Config:
    """
    Load configuration from INDEXSENSE_* environment variables.

    Unknown variables are ignored; values are validated by the Config model.
    """
    config_kwargs: dict[str, Any] = {}

    for name in Config.model_fields:
        value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            config_kwargs[name] = value

    return _build_config(config_kwargs, "environment")


def load_config_from_file(path: Path) -> Config:
    """
    Load configuration from a JSON or YAML file.

    Falls back to environment variables when the file does not exist.
    """
    if not path.exists():
        logger.warning("Config file not found: %s, using environment", path)
        return load_config_from_env()

    try:
        with open(path) as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    return _build_config(data, str(path))


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Get the global configuration instance.

    Loads from:
    1. INDEXSENSE_CONFIG_FILE environment variable (if set)
    2. Environment variables (default)

    Result is cached for the lifetime of the process.
    """
    config_file = os.environ.get(f"{ENV_PREFIX}CONFIG_FILE")

    if config_file:
        return load_config_from_file(Path(config_file))

    return load_config_from_env()


def reset_config() -> None:
    """Reset the cached configuration (mainly for testing)."""
    get_config.cache_clear()
