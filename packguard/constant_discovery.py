"""Convention-based constant resolution.

Every Ruby file below an autoload root defines the constant its path
names: ``app/models/sales/order.rb`` defines ``Sales::Order``. Given a
constant name and the namespace it was referenced from, the resolver
walks outwards through the namespace the way Ruby's lexical lookup does
and returns the defining file together with its package.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import ConstantResolutionError
from .files import matches_any
from .inflector import Inflector
from .models import ConstantContext
from .package import Package, PackageSet

logger = logging.getLogger(__name__)

EXCLUDED_LOAD_PATH_NAMES = {"assets", "javascript", "views"}


def discover_load_paths(root_path: Path, patterns: Iterable[str], exclude: Sequence[str] = ()) -> List[str]:
    """Autoload roots matching *patterns*, relative to *root_path*."""
    found = set()
    for pattern in patterns:
        for path in root_path.glob(pattern):
            if not path.is_dir():
                continue
            relative = path.relative_to(root_path).as_posix()
            if path.parent.name == "app" and path.name in EXCLUDED_LOAD_PATH_NAMES:
                continue
            if exclude and matches_any(relative + "/", exclude):
                continue
            found.add(relative)
    load_paths = sorted(found)
    logger.debug("Discovered %d load paths", len(load_paths))
    return load_paths


class ConstantDiscovery:
    """Maps constant names to the files that define them."""

    def __init__(
        self,
        package_set: PackageSet,
        root_path: Path,
        load_paths: Sequence[str],
        inflector: Optional[Inflector] = None,
    ) -> None:
        self._package_set = package_set
        self._root_path = root_path
        self._load_paths = list(load_paths)
        self._inflector = inflector or Inflector()
        self._const_locations: Optional[Dict[str, str]] = None
        self._lock = threading.Lock()

    def package_from_path(self, path: str) -> Package:
        return self._package_set.package_from_path(path)

    def context_for(self, const_name: str, namespace_path: Sequence[str] = ()) -> Optional[ConstantContext]:
        """Resolve *const_name* as seen from *namespace_path*; None when no file defines it."""
        if const_name.startswith("::"):
            const_name, current_namespace_path = const_name[2:], []
        else:
            current_namespace_path = list(namespace_path)
        name, location = self._resolve_constant(const_name, current_namespace_path)
        if name is None or location is None:
            return None
        return ConstantContext(name=name, location=location, package=self.package_from_path(location))

    def validate_constants(self) -> "ConstantDiscovery":
        """Build the constant index now, raising on ambiguous definitions."""
        self.const_locations()
        return self

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    def const_locations(self) -> Dict[str, str]:
        with self._lock:
            if self._const_locations is None:
                self._const_locations = self._build_const_locations()
        return self._const_locations

    def _build_const_locations(self) -> Dict[str, str]:
        all_cpaths: Dict[str, str] = {}
        roots = set(self._load_paths)
        for load_path in self._load_paths:
            base = self._root_path / load_path
            for file_path in sorted(base.rglob("*.rb")):
                relative = file_path.relative_to(self._root_path).as_posix()
                if self._nested_root(relative, load_path, roots):
                    continue
                cpath = file_path.relative_to(base).as_posix()[: -len(".rb")]
                all_cpaths[relative] = self._inflector.camelize(cpath)

        if not all_cpaths:
            raise ConstantResolutionError("Could not find any ruby files.")

        paths_by_const: Dict[str, str] = {}
        duplicates: Dict[str, List[str]] = {}
        for path, const in all_cpaths.items():
            if const in paths_by_const:
                duplicates.setdefault(const, [paths_by_const[const]]).append(path)
            else:
                paths_by_const[const] = path
        if duplicates:
            lines = [f" - {const} ({', '.join(paths)})" for const, paths in sorted(duplicates.items())]
            raise ConstantResolutionError("Ambiguous constant definition:\n" + "\n".join(lines))

        logger.debug("Indexed %d constants from %d load paths", len(paths_by_const), len(self._load_paths))
        return paths_by_const

    @staticmethod
    def _nested_root(relative: str, load_path: str, roots: Iterable[str]) -> bool:
        """True if *relative* belongs to another root nested inside *load_path*."""
        return any(
            root != load_path and root.startswith(load_path + "/") and relative.startswith(root + "/")
            for root in roots
        )

    # ------------------------------------------------------------------
    # Lexical lookup
    # ------------------------------------------------------------------

    def _resolve_constant(
        self,
        const_name: str,
        namespace_path: List[str],
        original_name: Optional[str] = None,
    ) -> Tuple[Optional[str], Optional[str]]:
        original_name = original_name or const_name
        while True:
            namespace, location = self._resolve_traversing_namespace_path(const_name, namespace_path)
            if location is not None:
                return "::" + "::".join(namespace + [original_name]), location
            if "::" not in const_name:
                # not defined in any load path: an external constant
                return None, None
            # `Foo::Bar` may be defined inside the file that defines `Foo`
            const_name = const_name.rsplit("::", 1)[0]

    def _resolve_traversing_namespace_path(
        self, const_name: str, namespace_path: List[str]
    ) -> Tuple[List[str], Optional[str]]:
        locations = self.const_locations()
        while True:
            guess = "::".join(namespace_path + [const_name])
            location = locations.get(guess)
            if location is not None or not namespace_path:
                return namespace_path, location
            namespace_path = namespace_path[:-1]
