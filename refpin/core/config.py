"""
Configuration model and loader.

Configuration is read from a YAML file:
```yaml
platform: linux/amd64
ghactions:
  exclude:
    - actions/checkout
  exclude_branches:
    - main
images:
  exclude_images:
    - scratch
  exclude_tags:
    - latest
```
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError

from refpin.core.errors import ConfigError

DEFAULT_CONFIG_FILE = ".refpin.yml"


class GHActionsConfig(BaseModel):
    """Filters for GitHub Actions references."""

    exclude: list[str] = Field(
        default_factory=list,
        description="Literal action names or name@ref strings that are never resolved",
    )
    exclude_branches: list[str] = Field(
        default_factory=list,
        description="Branch names that are never pinned; '*' excludes all branches",
    )


class ImagesConfig(BaseModel):
    """Filters for container image references."""

    exclude_images: list[str] = Field(default_factory=lambda: ["scratch"])
    exclude_tags: list[str] = Field(default_factory=lambda: ["latest"])


class Config(BaseModel):
    """Top-level configuration."""

    platform: str = Field(default="", description="os/arch used for digest lookups")
    ghactions: GHActionsConfig = Field(default_factory=GHActionsConfig)
    images: ImagesConfig = Field(default_factory=ImagesConfig)

    def with_platform(self, platform: str | None) -> Config:
        """Return a copy with the platform overridden, if one is given."""
        if not platform:
            return self
        return self.model_copy(update={"platform": platform})


def default_config() -> Config:
    """Configuration used when no file is present."""
    return Config()


def load_config(path: Path | str) -> Config:
    """
    Load configuration from a YAML file.

    A missing or empty file yields the default configuration.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    path = Path(path)
    if not path.exists():
        return default_config()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e

    if data is None:
        return default_config()
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")

    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"failed to decode config file {path}: {e}") from e
