"""Configuration loading and validation.

The exporter is configured with a YAML file listing the TeamCity instances
to scrape. The file is parsed with PyYAML and validated with pydantic; any
problem is reported as ConfigError before scraping starts.

Example:
    ```yaml
    instances:
      - name: main
        url: https://teamcity.example.com
        username: exporter
        password: secret
        scrape_interval: 60
        builds_filters:
          - name: release
            filter:
              build_type: Project_Release
              branch: master
    ```
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)

DEFAULT_FILTER_NAME = "default"


class ConfigError(Exception):
    """Error loading or validating the exporter configuration."""

    pass


class FilterSelector(BaseModel):
    """Build-type and branch selectors; empty means "any"."""

    model_config = ConfigDict(extra="forbid")

    build_type: str = ""
    branch: str = ""


class BuildFilterConfig(BaseModel):
    """A named build selection rule."""

    model_config = ConfigDict(extra="forbid")

    name: str
    filter: FilterSelector = Field(default_factory=FilterSelector)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("filter name must not be empty")
        return v


class InstanceConfig(BaseModel):
    """One TeamCity instance to scrape."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    url: str
    username: str = ""
    password: str = ""
    scrape_interval: float = 60.0
    timeout: float = 30.0
    allow_overlap: bool = False
    builds_filters: tuple[BuildFilterConfig, ...] = ()

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("instance name must not be empty")
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"url must start with http:// or https://, got '{v}'")
        return v.rstrip("/")

    @field_validator("scrape_interval", "timeout")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @model_validator(mode="after")
    def check_filters(self) -> InstanceConfig:
        names = [f.name for f in self.builds_filters]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(
                f"duplicate filter names in instance '{self.name}': {', '.join(duplicates)}"
            )
        return self

    @model_validator(mode="before")
    @classmethod
    def inject_default_filter(cls, data: Any) -> Any:
        """Add an unrestricted filter when none is configured."""
        if isinstance(data, dict) and not data.get("builds_filters"):
            data = {**data, "builds_filters": [{"name": DEFAULT_FILTER_NAME}]}
        return data


class ExporterConfig(BaseModel):
    """Top-level configuration document."""

    model_config = ConfigDict(extra="forbid")

    instances: tuple[InstanceConfig, ...]
    collapse_single_branch: bool = True

    @field_validator("instances")
    @classmethod
    def validate_instances(
        cls, v: tuple[InstanceConfig, ...]
    ) -> tuple[InstanceConfig, ...]:
        if not v:
            raise ValueError("at least one instance must be configured")
        names = [i.name for i in v]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate instance names: {', '.join(duplicates)}")
        return v


def parse_config(text: str) -> ExporterConfig:
    """Parse and validate a YAML configuration document.

    Raises:
        ConfigError: If the YAML is malformed or fails validation.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping with an 'instances' key")

    try:
        return ExporterConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Failed to validate configuration: {e}") from e


def load_config(path: str | Path) -> ExporterConfig:
    """Load configuration from a YAML file.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated.
    """
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file {config_path}: {e}") from e

    config = parse_config(text)
    logger.info(
        "Loaded configuration from %s with %d instance(s)",
        config_path,
        len(config.instances),
    )
    return config
