"""
Classifier configuration for diffsense.

Provides Pydantic-validated settings for the classification pipeline, loaded
from environment variables and an optional YAML file.
"""

from __future__ import annotations

from functools import cached_property
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from diffsense.classifiers.models import DifferenceType

STANDARD_CONFIG_PATHS = (
    Path(".diffsense/classifiers.yaml"),
    Path(".diffsense/classifiers.yml"),
)


class ClassifierConfig(BaseModel):
    """Complete configuration for a classifier manager."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    min_confidence: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Minimum confidence a result needs to win a region",
    )
    max_workers: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Threads used when classifying a batch of regions",
    )
    disabled_classifiers: list[DifferenceType] = Field(
        default_factory=list,
        description="Registry tags that are not instantiated",
    )

    def is_enabled(self, tag: str) -> bool:
        return tag not in self.disabled_classifiers


class ClassifierSettings(BaseSettings):
    """
    Environment-based classifier settings.

    Loads configuration from environment variables with DIFFSENSE_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="DIFFSENSE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    min_confidence: float = 0.5
    max_workers: int = 1
    disabled_classifiers: list[DifferenceType] = Field(default_factory=list)

    # Config file path
    config_file: Path | None = None

    @cached_property
    def config(self) -> ClassifierConfig:
        """Build ClassifierConfig from environment, overridden by the config file."""
        file_config = _read_yaml(self.config_file) if self.config_file else {}

        return ClassifierConfig(
            min_confidence=file_config.get("min_confidence", self.min_confidence),
            max_workers=file_config.get("max_workers", self.max_workers),
            disabled_classifiers=file_config.get(
                "disabled_classifiers", self.disabled_classifiers
            ),
        )


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open() as f:
        return yaml.safe_load(f) or {}


def load_classifier_config(config_file: Path | str | None = None) -> ClassifierConfig:
    """
    Load classifier configuration from file and/or environment.

    The explicit ``config_file`` is used when it exists; otherwise the
    standard locations under ``.diffsense/`` are checked. Values from the
    file override environment variables, which override defaults.

    Args:
        config_file: Optional path to YAML config file

    Returns:
        Complete ClassifierConfig instance
    """
    resolved: Path | None = None
    if config_file and Path(config_file).exists():
        resolved = Path(config_file)
    else:
        for path in STANDARD_CONFIG_PATHS:
            if path.exists():
                resolved = path
                break

    if resolved is None:
        return ClassifierSettings().config
    return ClassifierSettings(config_file=resolved).config
