"""Validation of package manifests and the dependency graph they declare."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Sequence, Set, Tuple

from .constant_discovery import ConstantDiscovery
from .graph import Graph, render_cycle
from .inflector import Inflector
from .package import PACKAGE_FILENAME, ROOT_PACKAGE_NAME, PackageSet

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    ok: bool
    error_value: str = ""


def merge_results(
    results: Sequence[ValidationResult],
    separator: str = "\n===\n",
    before_errors: str = "",
    after_errors: str = "",
) -> ValidationResult:
    errors = [result.error_value for result in results if not result.ok]
    if not errors:
        return ValidationResult(ok=True)
    return ValidationResult(ok=False, error_value=before_errors + separator.join(errors) + after_errors)


def manifest_settings_for(package_set: PackageSet, key: str) -> List[Tuple[str, Any]]:
    """``(manifest path, value)`` for every manifest that sets *key*."""
    settings = []
    for package in package_set:
        if key in package.config:
            settings.append((_manifest_path(package.name), package.config[key]))
    return settings


def _manifest_path(package_name: str) -> str:
    return PACKAGE_FILENAME if package_name == ROOT_PACKAGE_NAME else f"{package_name}/{PACKAGE_FILENAME}"


class Validator(ABC):
    @property
    @abstractmethod
    def permitted_keys(self) -> List[str]:
        ...

    @abstractmethod
    def call(self, package_set: PackageSet, root_path: Path) -> ValidationResult:
        ...


# ===================================================================
# Dependencies
# ===================================================================

class DependencyValidator(Validator):
    """``enforce_dependencies`` and ``dependencies``: syntax, targets and cycles."""

    @property
    def permitted_keys(self) -> List[str]:
        return ["enforce_dependencies", "dependencies"]

    def call(self, package_set: PackageSet, root_path: Path) -> ValidationResult:
        return merge_results(
            [
                self.check_package_manifest_syntax(package_set),
                self.check_acyclic_graph(package_set),
                self.check_valid_package_dependencies(package_set, root_path),
            ]
        )

    def check_package_manifest_syntax(self, package_set: PackageSet) -> ValidationResult:
        errors = []
        for path, setting in manifest_settings_for(package_set, "enforce_dependencies"):
            if setting is None:
                continue
            # 1 == True, so compare booleans by type
            if not (isinstance(setting, bool) or setting == "strict"):
                errors.append(f"\tInvalid 'enforce_dependencies' option: {setting!r} in {path!r}")
        for path, setting in manifest_settings_for(package_set, "dependencies"):
            if setting is None:
                continue
            if not isinstance(setting, list):
                errors.append(f"\tInvalid 'dependencies' option: {setting!r} in {path!r}")

        if not errors:
            return ValidationResult(ok=True)
        return merge_results(
            [ValidationResult(ok=False, error_value=error) for error in errors],
            separator="\n",
            before_errors="Malformed syntax in the following manifests:\n\n",
            after_errors="\n",
        )

    def check_acyclic_graph(self, package_set: PackageSet) -> ValidationResult:
        edges = []
        for package in package_set:
            for dependency in package.dependencies:
                target = package_set.fetch(dependency)
                # unknown dependencies are reported by check_valid_package_dependencies
                if target is not None:
                    edges.append((package.name, target.name))

        graph = Graph(edges)
        if graph.acyclic():
            return ValidationResult(ok=True)
        cycle_strings = "\n".join(f"\t- {render_cycle(cycle)}" for cycle in graph.cycles())
        return ValidationResult(
            ok=False,
            error_value=(
                "Expected the package dependency graph to be acyclic, but it contains the following "
                f"circular dependencies:\n\n{cycle_strings}\n"
            ),
        )

    def check_valid_package_dependencies(self, package_set: PackageSet, root_path: Path) -> ValidationResult:
        error_locations = []
        for path, dependencies in manifest_settings_for(package_set, "dependencies"):
            if not isinstance(dependencies, list):
                continue
            invalid = [dep for dep in dependencies if self._invalid_package_path(root_path, dep)]
            if invalid:
                listing = "\n\t".join(f"  - {dep}" for dep in invalid)
                error_locations.append(f"\t{path}:\n\t{listing}\n")
        if not error_locations:
            return ValidationResult(ok=True)
        return ValidationResult(
            ok=False,
            error_value="These dependencies do not point to valid packages:\n\n" + "\n".join(error_locations),
        )

    @staticmethod
    def _invalid_package_path(root_path: Path, path: Any) -> bool:
        # the root package can be named "." without a manifest
        if path == ROOT_PACKAGE_NAME:
            return False
        if not isinstance(path, str):
            return True
        return not (root_path / path / PACKAGE_FILENAME).is_file()


# ===================================================================
# Privacy
# ===================================================================

class PrivacyValidator(Validator):
    """``enforce_privacy`` and ``public_path`` settings.

    Explicitly private constants must be written fully qualified and must
    resolve to a file of the package that declares them.
    """

    def __init__(self, context_provider: ConstantDiscovery, inflector: Inflector) -> None:
        self._context_provider = context_provider
        self._inflector = inflector

    @property
    def permitted_keys(self) -> List[str]:
        return ["enforce_privacy", "public_path"]

    def call(self, package_set: PackageSet, root_path: Path) -> ValidationResult:
        results: List[ValidationResult] = []
        for path, setting in manifest_settings_for(package_set, "enforce_privacy"):
            results.append(self._check_enforce_privacy_setting(path, setting))
            if isinstance(setting, list):
                results.extend(self._check_private_constants(package_set, path, setting))
        for path, setting in manifest_settings_for(package_set, "public_path"):
            if not (setting is None or isinstance(setting, str)):
                results.append(
                    ValidationResult(ok=False, error_value=f"'public_path' option must be a string in {path!r}: {setting!r}")
                )
        return merge_results(results, separator="\n---\n")

    @staticmethod
    def _check_enforce_privacy_setting(path: str, setting: Any) -> ValidationResult:
        if setting is None or isinstance(setting, (bool, list)):
            return ValidationResult(ok=True)
        return ValidationResult(ok=False, error_value=f"Invalid 'enforce_privacy' option in {path!r}: {setting!r}")

    def _check_private_constants(self, package_set: PackageSet, path: str, constants: List[Any]) -> List[ValidationResult]:
        declared_package = package_set.package_from_path(path)
        results = []
        for name in constants:
            if not isinstance(name, str) or not name.startswith("::"):
                results.append(
                    ValidationResult(
                        ok=False,
                        error_value=(
                            f"'{name}', listed in the 'enforce_privacy' option in {path}, is invalid.\n"
                            "Private constants need to be prefixed with the top-level namespace operator `::`."
                        ),
                    )
                )
                continue
            constant = self._context_provider.context_for(name)
            if constant is None:
                expected_file = self._inflector.underscore(name[2:]) + ".rb"
                results.append(
                    ValidationResult(
                        ok=False,
                        error_value=(
                            f"'{name}', listed in {path}, could not be resolved.\n"
                            "This is probably because it is an autovivified namespace - a namespace module "
                            "that doesn't have a\n"
                            f"file explicitly defining it. Packguard currently doesn't support declaring "
                            f"autovivified namespaces as\nprivate. Add a {expected_file} file to explicitly "
                            "define the constant."
                        ),
                    )
                )
            elif constant.package != declared_package:
                results.append(
                    ValidationResult(
                        ok=False,
                        error_value=(
                            f"'{name}' is declared as private in the '{declared_package}' package but appears "
                            f"to be defined\nin the '{constant.package}' package. Packguard resolved it to "
                            f"{constant.location}."
                        ),
                    )
                )
        return results


# ===================================================================
# Entry point
# ===================================================================

GENERAL_PERMITTED_KEYS = ["metadata"]


def check_permitted_keys(package_set: PackageSet, validators: Sequence[Validator]) -> ValidationResult:
    permitted: Set[str] = set(GENERAL_PERMITTED_KEYS)
    for validator in validators:
        permitted.update(validator.permitted_keys)
    results = []
    for package in package_set:
        unknown = sorted(set(package.config) - permitted)
        if unknown:
            results.append(
                ValidationResult(
                    ok=False,
                    error_value=f"Unknown keys in {_manifest_path(package.name)}: {', '.join(unknown)}",
                )
            )
    return merge_results(results, separator="\n")


def validate_all(
    package_set: PackageSet,
    root_path: Path,
    context_provider: ConstantDiscovery,
    inflector: Inflector,
) -> ValidationResult:
    validators: List[Validator] = [DependencyValidator(), PrivacyValidator(context_provider, inflector)]
    results = [check_permitted_keys(package_set, validators)]
    results.extend(validator.call(package_set, root_path) for validator in validators)
    logger.debug("Validated %d package manifests", len(package_set))
    return merge_results(results)
