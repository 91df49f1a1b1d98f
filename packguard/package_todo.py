"""Per-package todo files listing accepted (grandfathered) violations.

A todo file belongs to the package that *makes* the references. Its
content maps the package owning each referenced constant to the
constants, and each constant to the violation types and files involved::

    components/billing:
      "::Billing::Invoice":
        violations:
        - dependency
        files:
        - components/sales/app/models/sales/order.rb
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

import yaml

from .checkers import ReferenceLister
from .models import Reference, ViolationType
from .package import Package

logger = logging.getLogger(__name__)

TODO_FILENAME = "package_todo.yml"

Entries = Dict[str, Dict[str, Dict[str, List[str]]]]

HEADER = """\
# This file contains a list of dependencies that are not part of the long term plan for the
# '{package}' package.
# We should generally work to reduce this list over time.
#
# You can regenerate this file using the following command:
#
# packguard update-todo
"""


class PackageTodo:
    """The todo file of one package: persisted entries plus this run's entries."""

    def __init__(self, package_name: str, path: Path) -> None:
        self.package_name = package_name
        self.path = path
        self._todo_list: Optional[Entries] = None
        self._new_entries: Entries = {}

    @property
    def todo_list(self) -> Entries:
        """Persisted entries, loaded on first access."""
        if self._todo_list is None:
            self._todo_list = self._load()
        return self._todo_list

    @property
    def new_entries(self) -> Entries:
        return self._new_entries

    def is_listed(self, reference: Reference, violation_type: ViolationType) -> bool:
        """True if the persisted file lists this file and violation type for the constant."""
        entry = self.todo_list.get(reference.constant.package.name, {}).get(reference.constant.name)
        if not entry:
            return False
        if reference.relative_path not in (entry.get("files") or []):
            return False
        return ViolationType(violation_type).value in (entry.get("violations") or [])

    def add_entries(self, reference: Reference, violation_type: ViolationType) -> bool:
        """Record the reference for this run; return whether it was already listed."""
        package_violations = self._new_entries.setdefault(reference.constant.package.name, {})
        entry = package_violations.setdefault(reference.constant.name, {})
        entry.setdefault("violations", []).append(ViolationType(violation_type).value)
        entry.setdefault("files", []).append(reference.relative_path)
        return self.is_listed(reference, violation_type)

    def stale_violations(self, for_files: Optional[Iterable[str]] = None) -> bool:
        """True if a persisted entry is no longer produced by this run.

        With *for_files*, only the files in that set are considered. The
        first stale entry ends the search.
        """
        self._prepare_entries_for_dump()
        file_filter: Optional[Set[str]] = set(for_files) if for_files is not None else None

        for package_name, package_violations in self.todo_list.items():
            for constant_name, entry in package_violations.items():
                files = list(entry.get("files") or [])
                if file_filter is not None:
                    files = [f for f in files if f in file_filter]
                    if not files:
                        continue
                new_entry = self._new_entries.get(package_name, {}).get(constant_name)
                if new_entry is None:
                    return True
                new_violations = new_entry.get("violations", [])
                if not all(v in new_violations for v in entry.get("violations") or []):
                    return True
                new_files = set(new_entry.get("files", []))
                if any(f not in new_files for f in files):
                    return True
        return False

    def dump(self) -> None:
        """Write this run's entries, or delete the file when there are none."""
        if not self._new_entries:
            self.delete_if_exists()
            return
        self._prepare_entries_for_dump()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(HEADER.format(package=self.package_name))
            yaml.safe_dump(self._new_entries, f, default_flow_style=False, sort_keys=False, explicit_start=True)
        logger.debug("Wrote %s", self.path)

    def delete_if_exists(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.debug("Deleted %s", self.path)

    # ------------------------------------------------------------------

    def _prepare_entries_for_dump(self) -> None:
        prepared: Entries = {}
        for package_name in sorted(self._new_entries):
            package_violations = self._new_entries[package_name]
            prepared[package_name] = {}
            for constant_name in sorted(package_violations):
                entry = package_violations[constant_name]
                prepared[package_name][constant_name] = {
                    "violations": sorted(set(entry.get("violations", []))),
                    "files": sorted(set(entry.get("files", []))),
                }
        self._new_entries = prepared

    def _load(self) -> Entries:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                content = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            logger.warning("Ignoring malformed todo file %s: %s", self.path, exc)
            return {}
        if content is None:
            return {}
        if not _well_formed(content):
            logger.warning("Ignoring malformed todo file %s: unexpected structure", self.path)
            return {}
        return content


def _well_formed(content: Any) -> bool:
    if not isinstance(content, dict):
        return False
    for package_violations in content.values():
        if not isinstance(package_violations, dict):
            return False
        for entry in package_violations.values():
            if not isinstance(entry, dict):
                return False
    return True


def todo_path_for(root_path: Path, package: Package) -> Path:
    return root_path / package.name / TODO_FILENAME


class PackageTodoLister(ReferenceLister):
    """Read-only view of the persisted todo files, used while checking.

    Each todo file is loaded once, by the first thread that needs it.
    """

    def __init__(self, root_path: Path) -> None:
        self.root_path = root_path
        self._package_todos: Dict[Package, PackageTodo] = {}
        self._lock = threading.Lock()

    def is_listed(self, reference: Reference, violation_type: ViolationType) -> bool:
        return self._package_todo_for(reference.package).is_listed(reference, violation_type)

    def _package_todo_for(self, package: Package) -> PackageTodo:
        with self._lock:
            if package not in self._package_todos:
                package_todo = PackageTodo(package.name, todo_path_for(self.root_path, package))
                package_todo.todo_list  # load under the lock
                self._package_todos[package] = package_todo
            return self._package_todos[package]
