"""Index of the constants a single file defines itself."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from . import nodes
from .models import SourceLocation


class LocalDefinitions:
    """Constants defined in one file, keyed by fully qualified name.

    Built once from the root node before extraction. References to these
    names from elsewhere in the same file are not references to another
    package, so the extractor drops them.
    """

    def __init__(self, root_node: Optional[nodes.Node]) -> None:
        self._definitions: Dict[str, SourceLocation] = {}
        if root_node is not None:
            self._collect(root_node, [])

    @property
    def definitions(self) -> Dict[str, SourceLocation]:
        return dict(self._definitions)

    def is_local_reference(
        self,
        constant_name: str,
        location: Optional[SourceLocation] = None,
        namespace_path: Sequence[str] = (),
    ) -> bool:
        """True if *constant_name* names a local definition other than the one at *location*."""
        for name in self.reference_qualifications(constant_name, namespace_path):
            defined_at = self._definitions.get(name)
            if defined_at is not None and defined_at != location:
                return True
        return False

    @staticmethod
    def reference_qualifications(constant_name: str, namespace_path: Sequence[str]) -> List[str]:
        """Every fully qualified name *constant_name* could stand for.

        >>> LocalDefinitions.reference_qualifications("Order", ["Sales", "Internal"])
        ['::Order', '::Sales::Order', '::Sales::Internal::Order']
        """
        if constant_name.startswith("::"):
            return [constant_name]
        namespaces = [""]
        for segment in namespace_path:
            namespaces.append(f"{namespaces[-1]}::{segment}")
        return [f"{namespace}::{constant_name}" for namespace in namespaces]

    # ------------------------------------------------------------------

    def _collect(self, node: nodes.Node, namespace_path: List[str]) -> None:
        try:
            if nodes.is_constant_assignment(node):
                name = nodes.constant_name(node)
                self._add(name, namespace_path, nodes.name_location(node))
                if nodes.module_creation_block(node) is not None:
                    namespace_path = _nest(namespace_path, name)
            elif nodes.is_class(node) or nodes.is_module(node):
                # `module Sales::Order` defines Sales::Order and, implicitly, Sales
                current = node.name  # type: ignore[attr-defined]
                while nodes.is_constant(current):
                    self._add(nodes.constant_name(current), namespace_path, nodes.name_location(current))
                    current = current.scope
                namespace_path = _nest(namespace_path, nodes.class_or_module_name(node))
        except nodes.NodeTypeError:
            # dynamically scoped names such as `obj.class::Foo = 1` define nothing we can name
            pass

        for child in node.each_child():
            self._collect(child, namespace_path)

    def _add(self, constant_name: str, namespace_path: Sequence[str], location: Optional[SourceLocation]) -> None:
        if location is None:
            return
        if constant_name.startswith("::"):
            resolved = constant_name
        else:
            resolved = "::".join(["", *namespace_path, constant_name])
        self._definitions[resolved] = location


def _nest(namespace_path: List[str], name: str) -> List[str]:
    if name.startswith("::"):
        return name[2:].split("::")
    return namespace_path + name.split("::")
