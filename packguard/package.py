"""Packages and the package set that assigns files to them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import total_ordering
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

import yaml

from .errors import ManifestError
from .files import matches_any

logger = logging.getLogger(__name__)

ROOT_PACKAGE_NAME = "."
PACKAGE_FILENAME = "package.yml"
DEFAULT_PUBLIC_PATH = "app/public/"


@total_ordering
@dataclass(eq=False)
class Package:
    """A directory of code with declared dependencies and enforcement flags.

    ``config`` is the raw manifest content; the properties below read it.
    """

    name: str
    config: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.dependencies: List[str] = [str(dep) for dep in (self.config.get("dependencies") or [])]

    @property
    def is_root(self) -> bool:
        return self.name == ROOT_PACKAGE_NAME

    @property
    def enforce_dependencies(self) -> Union[bool, str]:
        return self.config.get("enforce_dependencies") or False

    @property
    def enforce_privacy(self) -> Union[bool, List[str]]:
        return self.config.get("enforce_privacy") or False

    def enforces_dependencies(self) -> bool:
        return self.enforce_dependencies in (True, "strict")

    def depends_on(self, package: "Package") -> bool:
        return package.name in self.dependencies

    def contains_path(self, path: str) -> bool:
        """True if *path* lies inside this package's directory."""
        if self.is_root:
            return True
        return path == self.name or path.startswith(self.name + "/")

    @property
    def public_path(self) -> str:
        user_defined = self.config.get("public_path")
        if user_defined:
            relative = str(user_defined).rstrip("/") + "/"
        else:
            relative = DEFAULT_PUBLIC_PATH
        if self.is_root:
            return relative
        return f"{self.name}/{relative}"

    def is_public_path(self, path: str) -> bool:
        return path.startswith(self.public_path)

    # -- identity -----------------------------------------------------

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Package) and other.name == self.name

    def __lt__(self, other: "Package") -> bool:
        return self.name < other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<Package {self.name}>"


class PackageSet:
    """All packages of an application.

    Lookup by path returns the most deeply nested package whose directory
    contains the path, falling back to the root package.
    """

    def __init__(self, packages: Sequence[Package]) -> None:
        # most specific first; the root matches every path and comes last
        self._packages: List[Package] = sorted(packages, key=lambda p: (p.is_root, -len(p.name)))
        self._by_name: Dict[str, Package] = {p.name: p for p in packages}

    @classmethod
    def load_all_from(
        cls,
        root_path: Path,
        package_paths: Union[str, Sequence[str], None] = None,
        exclude: Sequence[str] = (),
    ) -> "PackageSet":
        packages = [
            Package(name=name, config=load_manifest(root_path / name / PACKAGE_FILENAME))
            for name in package_names(root_path, package_paths, exclude)
        ]
        if not any(p.is_root for p in packages):
            logger.debug("No root package.yml found; using an implicit root package")
            packages.append(Package(name=ROOT_PACKAGE_NAME, config={}))
        logger.debug("Loaded %d packages", len(packages))
        return cls(packages)

    def __iter__(self) -> Iterator[Package]:
        return iter(sorted(self._packages))

    def __len__(self) -> int:
        return len(self._packages)

    def fetch(self, name: str) -> Optional[Package]:
        return self._by_name.get(name)

    @property
    def root_package(self) -> Package:
        return self._by_name[ROOT_PACKAGE_NAME]

    def package_from_path(self, path: str) -> Package:
        for package in self._packages:
            if package.contains_path(path):
                return package
        return self.root_package


def package_names(
    root_path: Path,
    package_paths: Union[str, Sequence[str], None] = None,
    exclude: Sequence[str] = (),
) -> List[str]:
    """Names (directories relative to *root_path*) of every package manifest found."""
    if package_paths is None:
        patterns = ["**/"]
    elif isinstance(package_paths, str):
        patterns = [package_paths]
    else:
        patterns = list(package_paths)

    names = set()
    for pattern in patterns:
        pattern = pattern.rstrip("/")
        glob = f"{pattern}/{PACKAGE_FILENAME}" if pattern else PACKAGE_FILENAME
        for manifest in root_path.glob(glob):
            relative_dir = manifest.parent.relative_to(root_path).as_posix()
            if relative_dir != "." and exclude and matches_any(relative_dir + "/", exclude):
                continue
            names.add(relative_dir)
    return sorted(names)


def load_manifest(path: Path) -> Dict[str, Any]:
    """Read a ``package.yml``; an empty file is an empty manifest."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ManifestError(f"{path}: invalid YAML: {exc}") from exc
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ManifestError(f"{path}: expected a mapping, got {type(content).__name__}")
    return content
