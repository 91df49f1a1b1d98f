"""Constant name inspectors.

An inspector looks at one node, with its ancestors ordered innermost
first, and returns the constant name the node refers to or None. The
extractor tries inspectors in a fixed order and keeps the first name
returned:

1. :class:`ConstNodeInspector`: constant nodes and definition headers
2. :class:`AssociationInspector`: ``has_many :orders`` and friends
3. :class:`FixtureInspector`: ``orders(:first)`` fixture accessors
"""

from __future__ import annotations

import fnmatch
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import yaml

from . import nodes
from .inflector import Inflector

logger = logging.getLogger(__name__)

RAILS_ASSOCIATIONS = frozenset({"belongs_to", "has_many", "has_one", "has_and_belongs_to_many"})


class ConstantNameInspector(ABC):
    """Extracts a constant name from a node, or returns None."""

    @abstractmethod
    def name_from_node(
        self,
        node: nodes.Node,
        ancestors: Sequence[nodes.Node],
        relative_file: Optional[str] = None,
    ) -> Optional[str]:
        ...


# ===================================================================
# Constants
# ===================================================================

class ConstNodeInspector(ConstantNameInspector):
    """Names of constant nodes.

    Only the outermost constant of a ``A::B::C`` chain is inspected. The
    name in a ``class``/``module`` header is qualified with the enclosing
    modules, because defining ``Order`` inside ``module Sales`` is a
    reference to ``::Sales::Order`` and nothing else.
    """

    def name_from_node(
        self,
        node: nodes.Node,
        ancestors: Sequence[nodes.Node],
        relative_file: Optional[str] = None,
    ) -> Optional[str]:
        if not nodes.is_constant(node):
            return None
        parent = ancestors[0] if ancestors else None
        if nodes.is_constant(parent):
            return None

        try:
            if parent is not None and self._defines(node, parent):
                return "::" + nodes.parent_module_name(ancestors)
            return nodes.constant_name(node)
        except nodes.NodeTypeError:
            # `obj.class::CONST` and similar cannot be named statically
            return None

    @staticmethod
    def _defines(node: nodes.Node, parent: nodes.Node) -> bool:
        parent_name = nodes.module_name_from_definition(parent)
        return parent_name is not None and parent_name == nodes.constant_name(node)


# ===================================================================
# Associations
# ===================================================================

class AssociationInspector(ConstantNameInspector):
    """Model names implied by ActiveRecord association macros.

    ``has_many :order_items`` refers to ``OrderItem``; an explicit
    ``class_name: "Sales::Item"`` string takes precedence. Non-literal
    class names are ignored.
    """

    def __init__(
        self,
        inflector: Inflector,
        custom_associations: Iterable[str] = (),
        excluded_files: Iterable[str] = (),
    ) -> None:
        self._inflector = inflector
        self._associations = RAILS_ASSOCIATIONS | {str(name) for name in custom_associations}
        self._excluded_files = list(excluded_files)

    def name_from_node(
        self,
        node: nodes.Node,
        ancestors: Sequence[nodes.Node],
        relative_file: Optional[str] = None,
    ) -> Optional[str]:
        if not nodes.is_method_call(node):
            return None
        if relative_file is not None and self._is_excluded(relative_file):
            return None
        if nodes.method_name(node) not in self._associations:
            return None

        arguments = nodes.method_arguments(node)
        association_name = self._association_name(arguments)
        if association_name is None:
            return None

        class_name_node = self._custom_class_name(arguments)
        if class_name_node is not None:
            if not nodes.is_string(class_name_node):
                return None
            return nodes.literal_value(class_name_node)
        return self._inflector.classify(association_name)

    def _is_excluded(self, relative_file: str) -> bool:
        return any(fnmatch.fnmatch(relative_file, pattern) for pattern in self._excluded_files)

    @staticmethod
    def _association_name(arguments: List[nodes.Node]) -> Optional[str]:
        if not arguments or not nodes.is_symbol(arguments[0]):
            return None
        # a scope lambda may follow the name; anything else is not a plain declaration
        positional = [arg for arg in arguments[1:] if not (nodes.is_hash(arg) or _is_lambda(arg))]
        if positional:
            return None
        return nodes.literal_value(arguments[0])

    @staticmethod
    def _custom_class_name(arguments: List[nodes.Node]) -> Optional[nodes.Node]:
        options = next((arg for arg in arguments if nodes.is_hash(arg)), None)
        if options is None:
            return None
        return nodes.value_from_hash(options, "class_name")


def _is_lambda(node: nodes.Node) -> bool:
    return (
        nodes.is_block(node)
        and nodes.is_method_call(node.call)  # type: ignore[attr-defined]
        and nodes.method_name(node.call) in ("lambda", "proc")  # type: ignore[attr-defined]
    )


# ===================================================================
# Fixtures
# ===================================================================

class FixtureIndex:
    """Fixture files below one fixtures directory, indexed by accessor name.

    ``test/fixtures/admin/users.yml`` is read through ``admin_users(:name)``.
    """

    def __init__(self, base: Path, inflector: Inflector) -> None:
        self.base = base
        self._inflector = inflector
        self._by_method_name: Optional[Dict[str, str]] = None
        self._model_classes: Dict[str, str] = {}

    @staticmethod
    def method_name_from_path(relative_path: str) -> str:
        return relative_path[: -len(".yml")].replace("/", "_")

    def _index(self) -> Dict[str, str]:
        if self._by_method_name is None:
            self._by_method_name = {}
            if self.base.is_dir():
                for path in sorted(self.base.rglob("*.yml")):
                    relative = path.relative_to(self.base).as_posix()
                    self._by_method_name[self.method_name_from_path(relative)] = relative
        return self._by_method_name

    def find(self, method_name: str) -> Optional[str]:
        return self._index().get(method_name)

    def model_class(self, relative_path: str) -> str:
        if relative_path not in self._model_classes:
            content = self._load(relative_path)
            declared = None
            fixture_options = content.get("_fixture")
            if isinstance(fixture_options, dict):
                declared = fixture_options.get("model_class")
            if declared:
                self._model_classes[relative_path] = str(declared)
            else:
                self._model_classes[relative_path] = self._inflector.classify(relative_path[: -len(".yml")])
        return self._model_classes[relative_path]

    def _load(self, relative_path: str) -> Dict[str, Any]:
        try:
            with open(self.base / relative_path, "r", encoding="utf-8") as f:
                content = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            # fixtures commonly contain ERB; fall back to the file name
            logger.debug("Could not read fixture %s: %s", relative_path, exc)
            return {}
        return content if isinstance(content, dict) else {}


class FixtureInspector(ConstantNameInspector):
    """``users(:david)`` in a test refers to the ``User`` model."""

    def __init__(self, root_path: Path, fixture_paths: Iterable[str], inflector: Inflector) -> None:
        self._indexes = [FixtureIndex(root_path / path, inflector) for path in fixture_paths]

    def name_from_node(
        self,
        node: nodes.Node,
        ancestors: Sequence[nodes.Node],
        relative_file: Optional[str] = None,
    ) -> Optional[str]:
        if not nodes.is_method_call(node):
            return None
        arguments = nodes.method_arguments(node)
        if len(arguments) != 1 or not nodes.is_symbol(arguments[0]):
            return None

        method_name = nodes.method_name(node)
        for index in self._indexes:
            relative_path = index.find(method_name)
            if relative_path is None:
                continue
            constant = index.model_class(relative_path)
            return constant if constant.startswith("::") else f"::{constant}"
        return None
