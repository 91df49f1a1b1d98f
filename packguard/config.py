"""Project configuration read from ``packguard.toml`` at the application root."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import toml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "packguard.toml"

DEFAULT_INCLUDE = ["**/*.rb", "**/*.rake", "**/*.erb"]
DEFAULT_EXCLUDE = ["{bin,node_modules,script,tmp,vendor}/**/*"]
DEFAULT_LOAD_PATHS = ["app/*", "lib", "**/app/*", "**/lib"]
DEFAULT_FIXTURE_PATHS = ["test/fixtures", "spec/fixtures"]
DEFAULT_CACHE_DIRECTORY = "tmp/cache/packguard"
DEFAULT_INFLECTIONS_FILE = "config/inflections.yml"

KNOWN_KEYS = {
    "include",
    "exclude",
    "package_paths",
    "load_paths",
    "custom_associations",
    "associations_exclude",
    "fixture_paths",
    "parallel",
    "workers",
    "cache",
    "cache_directory",
    "inflections_file",
}


def _as_list(value: Any, key: str) -> List[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return list(value)
    raise ConfigurationError(f"'{key}' must be a string or a list of strings")


@dataclass
class Configuration:
    root_path: Path
    include: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    package_paths: Union[str, List[str]] = "**/"
    load_paths: List[str] = field(default_factory=lambda: list(DEFAULT_LOAD_PATHS))
    custom_associations: List[str] = field(default_factory=list)
    associations_exclude: List[str] = field(default_factory=list)
    fixture_paths: List[str] = field(default_factory=lambda: list(DEFAULT_FIXTURE_PATHS))
    parallel: bool = True
    workers: Optional[int] = None
    cache_enabled: bool = False
    cache_directory: Path = Path(DEFAULT_CACHE_DIRECTORY)
    inflections_file: Path = Path(DEFAULT_INFLECTIONS_FILE)
    config_path: Optional[Path] = None
    raw_contents: str = ""

    @classmethod
    def from_path(cls, root_path: Optional[Path] = None) -> "Configuration":
        """Load ``packguard.toml`` from *root_path* (default: cwd); defaults when absent."""
        root = (root_path or Path(os.getcwd())).resolve()
        config_path = root / CONFIG_FILENAME
        if not config_path.exists():
            logger.debug("No %s in %s; using defaults", CONFIG_FILENAME, root)
            return cls(root_path=root).resolved()

        try:
            raw_contents = config_path.read_text(encoding="utf-8")
            data = toml.loads(raw_contents)
        except (OSError, toml.TomlDecodeError) as exc:
            raise ConfigurationError(f"Could not read {config_path}: {exc}") from exc
        return cls.from_dict(root, data, config_path=config_path, raw_contents=raw_contents)

    @classmethod
    def from_dict(
        cls,
        root_path: Path,
        data: Dict[str, Any],
        config_path: Optional[Path] = None,
        raw_contents: str = "",
    ) -> "Configuration":
        unknown = set(data) - KNOWN_KEYS
        if unknown:
            logger.warning("Unknown configuration keys: %s", ", ".join(sorted(unknown)))

        config = cls(root_path=root_path, config_path=config_path, raw_contents=raw_contents)
        for key in ("include", "exclude", "load_paths", "custom_associations", "associations_exclude", "fixture_paths"):
            if key in data:
                setattr(config, key, _as_list(data[key], key))
        if not config.include:
            raise ConfigurationError("'include' must list at least one glob")
        if "package_paths" in data:
            config.package_paths = _as_list(data["package_paths"], "package_paths")
        if "parallel" in data:
            config.parallel = bool(data["parallel"])
        if "workers" in data:
            if not isinstance(data["workers"], int) or data["workers"] < 1:
                raise ConfigurationError("'workers' must be a positive integer")
            config.workers = data["workers"]
        if "cache" in data:
            config.cache_enabled = bool(data["cache"])
        if "cache_directory" in data:
            config.cache_directory = Path(str(data["cache_directory"]))
        if "inflections_file" in data:
            config.inflections_file = Path(str(data["inflections_file"]))
        return config.resolved()

    def resolved(self) -> "Configuration":
        """Anchor relative directories at the root path."""
        if not self.cache_directory.is_absolute():
            self.cache_directory = self.root_path / self.cache_directory
        if not self.inflections_file.is_absolute():
            self.inflections_file = self.root_path / self.inflections_file
        return self


DEFAULT_CONFIG_TEMPLATE = """\
# See the packguard documentation for all options.

# Files to check
# include = ["**/*.rb", "**/*.rake", "**/*.erb"]
# exclude = ["{bin,node_modules,script,tmp,vendor}/**/*"]

# Where package.yml files live
# package_paths = "**/"

# Autoload roots, relative to the application root
# load_paths = ["app/*", "lib", "**/app/*", "**/lib"]

# Extra association macros to inspect
# custom_associations = ["cache_belongs_to"]

# Reuse extracted references between runs
cache = true
# cache_directory = "tmp/cache/packguard"

parallel = true
"""


def write_default_config(root_path: Path) -> Path:
    config_path = root_path / CONFIG_FILENAME
    config_path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    return config_path
