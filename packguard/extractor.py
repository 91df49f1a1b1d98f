"""Reference extraction and resolution.

Extraction walks one file's tree and records every constant name an
inspector recognizes, minus names the file defines itself. Resolution
later maps those names to their defining files and keeps only the
references that cross a package boundary.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from . import nodes
from .constant_discovery import ConstantDiscovery
from .inspectors import ConstantNameInspector
from .local_definitions import LocalDefinitions
from .models import Reference, UnresolvedReference

logger = logging.getLogger(__name__)


class ReferenceExtractor:
    """Extracts unresolved references from the tree of a single file."""

    def __init__(
        self,
        inspectors: Sequence[ConstantNameInspector],
        root_node: nodes.Node,
        relative_file: str,
    ) -> None:
        self._inspectors = list(inspectors)
        self._root_node = root_node
        self._relative_file = relative_file
        self._local_definitions = LocalDefinitions(root_node)

    def references(self) -> List[UnresolvedReference]:
        """All references in the file, in traversal order."""
        found: List[UnresolvedReference] = []
        # (node, ancestors innermost first)
        stack = [(self._root_node, ())]
        while stack:
            node, ancestors = stack.pop()
            if nodes.is_method_call(node) or nodes.is_constant(node):
                reference = self.reference_from_node(node, ancestors)
                if reference is not None:
                    found.append(reference)
            child_ancestors = (node,) + ancestors
            for child in reversed(node.children):
                stack.append((child, child_ancestors))
        return found

    def reference_from_node(
        self, node: nodes.Node, ancestors: Sequence[nodes.Node]
    ) -> Optional[UnresolvedReference]:
        constant_name = None
        for inspector in self._inspectors:
            constant_name = inspector.name_from_node(node, ancestors, self._relative_file)
            if constant_name is not None:
                break
        if constant_name is None:
            return None
        return self._reference_from_constant(constant_name, node, ancestors)

    def _reference_from_constant(
        self, constant_name: str, node: nodes.Node, ancestors: Sequence[nodes.Node]
    ) -> Optional[UnresolvedReference]:
        try:
            namespace_path = nodes.enclosing_namespace_path(node, ancestors)
        except nodes.NodeTypeError:
            logger.debug("Skipping %s in %s: dynamic namespace", constant_name, self._relative_file)
            return None

        if self._local_definitions.is_local_reference(constant_name, nodes.name_location(node), namespace_path):
            return None

        return UnresolvedReference(
            constant_name=constant_name,
            namespace_path=namespace_path,
            relative_path=self._relative_file,
            source_location=nodes.location(node),
        )


def get_fully_qualified_references(
    unresolved_references: Sequence[UnresolvedReference],
    context_provider: ConstantDiscovery,
) -> List[Reference]:
    """Resolve references, dropping external constants and same-package references.

    :class:`~packguard.errors.ConstantResolutionError` propagates.
    """
    references: List[Reference] = []
    for unresolved in unresolved_references:
        constant = context_provider.context_for(unresolved.constant_name, unresolved.namespace_path)
        if constant is None:
            continue
        source_package = context_provider.package_from_path(unresolved.relative_path)
        if source_package == constant.package:
            continue
        references.append(
            Reference(
                package=source_package,
                relative_path=unresolved.relative_path,
                constant=constant,
                source_location=unresolved.source_location,
            )
        )
    return references
