# src/gbfsstats/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/gbfsstats/config/defaults.yaml`, then optionally overridden by:
- environment variables (the same names the deployed functions receive, e.g. `PROVIDERS`,
  `DYNAMODB_TABLE`, `S3_BUCKET`, `RETENTION_DAYS`)
- an external YAML file via `GBFSSTATS_CONFIG_PATH`

Design rule:
- Tuning knobs live in YAML, not hard-coded in business logic.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from gbfsstats.core.env import load_dotenv_if_present
from gbfsstats.domain.models import ProviderConfig


class ConfigurationError(RuntimeError):
    """A required setting is missing; the invocation cannot proceed."""


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `gbfsstats.config`."""
    text = resources.files("gbfsstats.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "GBFS Stats"
    http_timeout_seconds: float = 15
    user_agent: str = "gbfsstats/0.1.0 (+https://local)"
    log_level: str = "INFO"


class StorageSettings(BaseModel):
    stats_table: str | None = None
    connections_table: str | None = None
    bucket: str | None = None
    region: str | None = None
    connect_timeout_seconds: float = 5
    read_timeout_seconds: float = 15

    def require_stats_table(self) -> str:
        if not self.stats_table:
            raise ConfigurationError(
                "Stats table is not configured. Set DYNAMODB_TABLE (or BIKE_STATS_TABLE)."
            )
        return self.stats_table

    def require_connections_table(self) -> str:
        if not self.connections_table:
            raise ConfigurationError("Connections table is not configured. Set CONNECTIONS_TABLE.")
        return self.connections_table


class CollectorSettings(BaseModel):
    max_workers: int = Field(8, ge=1)


class RetentionSettings(BaseModel):
    days: int = Field(30, ge=1)
    batch_size: int = Field(25, ge=1, le=25)
    max_retries: int = Field(3, ge=1)
    retry_base_delay_seconds: float = Field(1.0, ge=0)
    page_size: int = Field(1000, ge=1)

    @property
    def window_seconds(self) -> int:
        return self.days * 24 * 60 * 60


class QuerySettings(BaseModel):
    default_window_seconds: int = Field(60 * 60, ge=1)
    date_index_name: str = "DateIndex"


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    providers: list[ProviderConfig] = Field(default_factory=list)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    collector: CollectorSettings = Field(default_factory=CollectorSettings)
    retention: RetentionSettings = Field(default_factory=RetentionSettings)
    query: QuerySettings = Field(default_factory=QuerySettings)

    def require_providers(self) -> list[ProviderConfig]:
        if not self.providers:
            raise ConfigurationError("No providers configured. Set PROVIDERS to a JSON list of {name, url}.")
        return list(self.providers)

    def provider_names(self) -> list[str]:
        return [p.name for p in self.providers]


def _parse_providers_env(raw: str) -> list[dict[str, Any]]:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"PROVIDERS is not valid JSON: {e}") from e
    if not isinstance(value, list):
        raise ConfigurationError("PROVIDERS must be a JSON list of {name, url} objects.")
    return value


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small; these are the variables the deployed
    functions are configured with.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("GBFSSTATS_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    providers = os.getenv("PROVIDERS")
    if providers:
        data["providers"] = _parse_providers_env(providers)

    storage = data.setdefault("storage", {})
    stats_table = os.getenv("DYNAMODB_TABLE") or os.getenv("BIKE_STATS_TABLE")
    if stats_table:
        storage["stats_table"] = stats_table
    connections_table = os.getenv("CONNECTIONS_TABLE")
    if connections_table:
        storage["connections_table"] = connections_table
    bucket = os.getenv("S3_BUCKET")
    if bucket:
        storage["bucket"] = bucket
    region = os.getenv("AWS_REGION")
    if region:
        storage["region"] = region

    retention_days = os.getenv("RETENTION_DAYS")
    if retention_days:
        data.setdefault("retention", {})["days"] = int(retention_days)

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("GBFSSTATS_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
