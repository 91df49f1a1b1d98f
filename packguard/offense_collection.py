"""Aggregates the offenses of a run and reconciles them with todo files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .checkers import DEFAULT_CHECKERS, Checker, checker_for
from .models import Offense, ReferenceOffense
from .package import Package, PackageSet
from .package_todo import PackageTodo, todo_path_for

logger = logging.getLogger(__name__)


class OffenseCollection:
    """Offenses of one run.

    Errors (parse failures, unknown file types) always fail a run. A
    reference offense is a *new violation* unless the todo file of the
    referencing package already lists it; either way it is recorded for
    the next version of that todo file. Packages in strict mode cannot
    list violations, so their offenses are kept apart and never recorded.
    """

    def __init__(self, root_path: Path, checkers: Sequence[Checker] = DEFAULT_CHECKERS) -> None:
        self.root_path = root_path
        self._checkers = list(checkers)
        self._package_todos: Dict[Package, PackageTodo] = {}
        self.errors: List[Offense] = []
        self.new_violations: List[ReferenceOffense] = []
        self.strict_mode_violations: List[ReferenceOffense] = []

    def is_listed(self, offense: Offense) -> bool:
        """True if *offense* is a reference offense the todo file already accepts."""
        if not isinstance(offense, ReferenceOffense) or offense.reference is None:
            return False
        return self.package_todo_for(offense.reference.package).is_listed(
            offense.reference, offense.violation_type
        )

    def add_offense(self, offense: Offense) -> None:
        if not isinstance(offense, ReferenceOffense) or offense.reference is None:
            self.errors.append(offense)
            return

        if self._is_strict_mode_violation(offense):
            self.strict_mode_violations.append(offense)
            return

        package_todo = self.package_todo_for(offense.reference.package)
        if not package_todo.add_entries(offense.reference, offense.violation_type):
            self.new_violations.append(offense)

    def add_offenses(self, offenses: Iterable[Offense]) -> None:
        for offense in offenses:
            self.add_offense(offense)

    def outstanding_offenses(self) -> List[Offense]:
        return [*self.errors, *self.new_violations]

    def stale_violations(
        self,
        for_files: Optional[Iterable[str]] = None,
        package_set: Optional[PackageSet] = None,
    ) -> bool:
        """True if any todo file lists a violation this run did not reproduce.

        Pass *package_set* to also inspect todo files of packages that
        produced no offenses at all.
        """
        if package_set is not None:
            for package in package_set:
                self.package_todo_for(package)
        files = set(for_files) if for_files is not None else None
        return any(todo.stale_violations(files) for todo in self._package_todos.values())

    def persist_package_todo_files(self, package_set: PackageSet) -> None:
        """Rewrite every touched todo file and delete those of untouched packages."""
        for package_todo in self._package_todos.values():
            package_todo.dump()
        for package in package_set:
            if package not in self._package_todos:
                PackageTodo(package.name, todo_path_for(self.root_path, package)).delete_if_exists()

    # ------------------------------------------------------------------

    def package_todo_for(self, package: Package) -> PackageTodo:
        if package not in self._package_todos:
            self._package_todos[package] = PackageTodo(package.name, todo_path_for(self.root_path, package))
        return self._package_todos[package]

    def _is_strict_mode_violation(self, offense: ReferenceOffense) -> bool:
        if offense.violation_type is None:
            return False
        return checker_for(offense.violation_type, self._checkers).is_strict_mode_violation(offense)
