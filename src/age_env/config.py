"""Configuration for age-env."""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError, InvalidEnvironmentName

log = logging.getLogger(__name__)

CONFIG_DIR_ENV = "AGE_ENV_CONFIG_DIR"

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


def get_config_dir() -> Path:
    """Get the store directory, honouring AGE_ENV_CONFIG_DIR."""
    env_dir = os.environ.get(CONFIG_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser()
    return Path.home() / ".age-env"


def validate_name(name: str) -> str:
    """Reject names that are not safe as a file name and carrier record."""
    if not NAME_PATTERN.match(name or ""):
        raise InvalidEnvironmentName(
            f"Invalid environment name {name!r}: use letters, digits, '_', '.' and '-'"
        )
    return name


@dataclass
class StorePaths:
    """File layout of a store directory."""

    root: Path

    @property
    def envs_dir(self) -> Path:
        return self.root / "envs"

    @property
    def identities_file(self) -> Path:
        return self.root / "identities"

    @property
    def recipients_file(self) -> Path:
        return self.root / "recipients"

    @property
    def settings_file(self) -> Path:
        return self.root / "config.yaml"

    def env_file(self, name: str) -> Path:
        return self.envs_dir / validate_name(name)

    def ensure(self) -> None:
        """Create the store and envs directories if missing."""
        if not self.envs_dir.exists():
            log.info("Creating store directory %s", self.envs_dir)
        self.envs_dir.mkdir(parents=True, exist_ok=True)


@dataclass
class Settings:
    """Optional settings read from ``config.yaml`` in the store."""

    age_binary: str = "age"
    log_level: str = "WARNING"


def load_settings(path: Optional[Path]) -> Settings:
    """
    Load settings from a YAML file.

    A missing file yields the defaults. Unknown keys are ignored with a
    warning so older stores keep working.
    """
    settings = Settings()
    if path is None or not path.exists():
        return settings

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return settings
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping in {path}, got {type(data).__name__}")

    for key, value in data.items():
        if key == "age_binary":
            settings.age_binary = str(value)
        elif key == "log_level":
            settings.log_level = str(value).upper()
        else:
            log.warning("Ignoring unknown setting %r in %s", key, path)
    return settings
