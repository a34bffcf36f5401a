"""Configuration management for vulnmine.

Values are resolved in this order, later sources winning:
built-in defaults, the first config file found, ``VULNMINE_*`` variables.
The CLI applies its own flags on top with ``Config.set``.
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Callable

import yaml

from vulnmine.exceptions import ConfigError
from vulnmine.version import DEFAULT_CONFIG

LOGGER = logging.getLogger(__name__)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# variable -> (config key, parser)
ENV_VARS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "VULNMINE_REPOS_DIR": ("repos_dir", str),
    "VULNMINE_OUTPUT_DIR": ("output_dir", str),
    "VULNMINE_THRESHOLD": ("confidence_threshold", float),
    "VULNMINE_MIN_CHANGE_CHARS": ("min_change_chars", int),
    "VULNMINE_DEDUPE_BY_COMMIT": ("dedupe_by_commit", _parse_bool),
    "VULNMINE_SPLIT": ("split", str),
    "VULNMINE_SEED": ("seed", int),
    "VULNMINE_AUGMENT": ("augment", _parse_bool),
    "VULNMINE_VERBOSE": ("verbose", _parse_bool),
}


class Config:
    """Dict-backed settings for a mining run."""

    CONFIG_FILENAMES = (
        ".vulnmine.yaml",
        ".vulnmine.yml",
        "vulnmine.yaml",
        "vulnmine.yml",
    )

    def __init__(self) -> None:
        self._values: dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)
        self._config_path: Path | None = None

    def load(self, config_path: Path | None = None) -> "Config":
        """Read `config_path` (or the first discovered file), then the environment."""
        if config_path is not None and not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        path = config_path or self.discover()
        if path is not None:
            self._merge_file(path)
        self._merge_env(os.environ)
        return self

    @classmethod
    def discover(cls) -> Path | None:
        """First config file in the working directory, then in the home directory."""
        for directory in (Path.cwd(), Path.home()):
            for filename in cls.CONFIG_FILENAMES:
                candidate = directory / filename
                if candidate.is_file():
                    return candidate
        return None

    def _merge_file(self, path: Path) -> None:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        self._values.update(data)
        self._config_path = path
        LOGGER.debug("Loaded configuration from %s", path)

    def _merge_env(self, environ: Any) -> None:
        for name, (key, parse) in ENV_VARS.items():
            raw = environ.get(name)
            if raw is None:
                continue
            try:
                self._values[key] = parse(raw)
            except ValueError as exc:
                raise ConfigError(f"{name} has an invalid value {raw!r}") from exc

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    @property
    def config_path(self) -> Path | None:
        """The file the settings came from, or None for defaults only."""
        return self._config_path

    def to_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._values)
