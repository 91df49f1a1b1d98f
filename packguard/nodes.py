"""Typed syntax tree nodes and the helpers that query them.

The parser normalizes the tree-sitter concrete syntax tree into the small
set of node kinds below. Every kind carries only the fields that make
sense for it; helper functions that are meaningful for a subset of kinds
raise :class:`NodeTypeError` when handed anything else.

Child ordering mirrors the source order that the extraction code relies
on: a class yields its name first, then its superclass, then its body.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

from .errors import NodeTypeError
from .models import SourceLocation

MODULE_CREATION_RECEIVERS = ("Class", "Module")
CLASS_EVAL = "class_eval"


# ===================================================================
# Node kinds
# ===================================================================

@dataclass(eq=False)
class Node:
    """Base node. ``location`` is the start of the node's source range."""

    location: SourceLocation

    kind = "node"

    @property
    def children(self) -> List["Node"]:
        return []

    def each_child(self) -> Iterator["Node"]:
        yield from self.children

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.location.line}:{self.location.column}>"


@dataclass(eq=False)
class GenericNode(Node):
    """Any construct the extraction pipeline does not inspect directly."""

    type_name: str = "generic"
    nodes: List[Node] = field(default_factory=list)

    kind = "generic"

    @property
    def children(self) -> List[Node]:
        return list(self.nodes)


@dataclass(eq=False)
class RootNamespaceNode(Node):
    """The leading ``::`` of a root-anchored constant such as ``::Foo``."""

    kind = "cbase"


@dataclass(eq=False)
class SelfNode(Node):
    kind = "self"


@dataclass(eq=False)
class ConstNode(Node):
    """Constant reference. ``scope`` is the qualifying node of ``A::B``."""

    scope: Optional[Node] = None
    name: str = ""
    name_location: Optional[SourceLocation] = None

    kind = "const"

    @property
    def children(self) -> List[Node]:
        return [self.scope] if self.scope is not None else []


@dataclass(eq=False)
class ConstAssignNode(Node):
    """Constant assignment, ``A::B = value``."""

    scope: Optional[Node] = None
    name: str = ""
    value: Optional[Node] = None
    name_location: Optional[SourceLocation] = None

    kind = "casgn"

    @property
    def children(self) -> List[Node]:
        return [n for n in (self.scope, self.value) if n is not None]


@dataclass(eq=False)
class ClassNode(Node):
    name: Optional[Node] = None
    superclass: Optional[Node] = None
    body: List[Node] = field(default_factory=list)

    kind = "class"

    @property
    def children(self) -> List[Node]:
        head = [n for n in (self.name, self.superclass) if n is not None]
        return head + list(self.body)


@dataclass(eq=False)
class ModuleNode(Node):
    name: Optional[Node] = None
    body: List[Node] = field(default_factory=list)

    kind = "module"

    @property
    def children(self) -> List[Node]:
        head = [self.name] if self.name is not None else []
        return head + list(self.body)


@dataclass(eq=False)
class SendNode(Node):
    """Method call. Keyword arguments are collected into one trailing HashNode."""

    receiver: Optional[Node] = None
    method: str = ""
    arguments: List[Node] = field(default_factory=list)

    kind = "send"

    @property
    def children(self) -> List[Node]:
        head = [self.receiver] if self.receiver is not None else []
        return head + list(self.arguments)


@dataclass(eq=False)
class BlockNode(Node):
    """A call with an attached block; ``call`` is the method call itself."""

    call: Optional[Node] = None
    body: List[Node] = field(default_factory=list)

    kind = "block"

    @property
    def children(self) -> List[Node]:
        head = [self.call] if self.call is not None else []
        return head + list(self.body)


@dataclass(eq=False)
class HashNode(Node):
    entries: List[Node] = field(default_factory=list)

    kind = "hash"

    @property
    def children(self) -> List[Node]:
        return list(self.entries)


@dataclass(eq=False)
class PairNode(Node):
    key: Optional[Node] = None
    value: Optional[Node] = None

    kind = "pair"

    @property
    def children(self) -> List[Node]:
        return [n for n in (self.key, self.value) if n is not None]


@dataclass(eq=False)
class StrNode(Node):
    value: str = ""

    kind = "str"


@dataclass(eq=False)
class SymNode(Node):
    value: str = ""

    kind = "sym"


# ===================================================================
# Kind predicates
# ===================================================================

def is_class(node: Optional[Node]) -> bool:
    return isinstance(node, ClassNode)


def is_module(node: Optional[Node]) -> bool:
    return isinstance(node, ModuleNode)


def is_constant(node: Optional[Node]) -> bool:
    return isinstance(node, ConstNode)


def is_constant_assignment(node: Optional[Node]) -> bool:
    return isinstance(node, ConstAssignNode)


def is_constant_root_namespace(node: Optional[Node]) -> bool:
    return isinstance(node, RootNamespaceNode)


def is_method_call(node: Optional[Node]) -> bool:
    return isinstance(node, SendNode)


def is_block(node: Optional[Node]) -> bool:
    return isinstance(node, BlockNode)


def is_hash(node: Optional[Node]) -> bool:
    return isinstance(node, HashNode)


def is_hash_pair(node: Optional[Node]) -> bool:
    return isinstance(node, PairNode)


def is_string(node: Optional[Node]) -> bool:
    return isinstance(node, StrNode)


def is_symbol(node: Optional[Node]) -> bool:
    return isinstance(node, SymNode)


def is_self(node: Optional[Node]) -> bool:
    return isinstance(node, SelfNode)


# ===================================================================
# Semantic accessors
# ===================================================================

def each_child(node: Node) -> Iterator[Node]:
    return node.each_child()


def location(node: Node) -> SourceLocation:
    return node.location


def name_location(node: Node) -> Optional[SourceLocation]:
    """Location of the name token for constants and definitions, else None."""
    if isinstance(node, (ConstNode, ConstAssignNode)):
        return node.name_location or node.location
    if isinstance(node, (ClassNode, ModuleNode)) and node.name is not None:
        return node.name.location
    return None


def constant_name(node: Node) -> str:
    """Join the segments of a constant or constant assignment.

    ``A::B::C`` -> ``"A::B::C"``, ``::A`` -> ``"::A"``, ``self::A`` -> ``"self::A"``.
    """
    if isinstance(node, RootNamespaceNode):
        return ""
    if isinstance(node, SelfNode):
        return "self"
    if isinstance(node, (ConstNode, ConstAssignNode)):
        if node.scope is not None:
            return f"{constant_name(node.scope)}::{node.name}"
        return node.name
    raise NodeTypeError(f"cannot take a constant name from a {node.kind} node")


def class_or_module_name(node: Node) -> str:
    if isinstance(node, (ClassNode, ModuleNode)) and node.name is not None:
        return constant_name(node.name)
    raise NodeTypeError(f"{node.kind} node is not a class or module definition")


def parent_class(node: Node) -> Optional[Node]:
    if not isinstance(node, ClassNode):
        raise NodeTypeError(f"{node.kind} node is not a class definition")
    return node.superclass


def method_name(node: Node) -> str:
    if not isinstance(node, SendNode):
        raise NodeTypeError(f"{node.kind} node is not a method call")
    return node.method


def method_arguments(node: Node) -> List[Node]:
    if not isinstance(node, SendNode):
        raise NodeTypeError(f"{node.kind} node is not a method call")
    return list(node.arguments)


def literal_value(node: Node) -> str:
    if isinstance(node, (StrNode, SymNode)):
        return node.value
    raise NodeTypeError(f"{node.kind} node is not a string or symbol literal")


def hash_pairs(node: Node) -> List[PairNode]:
    if not isinstance(node, HashNode):
        raise NodeTypeError(f"{node.kind} node is not a hash")
    return [entry for entry in node.entries if isinstance(entry, PairNode)]


def value_from_hash(node: Node, key: str) -> Optional[Node]:
    """Value of the pair whose literal key equals *key*; non-literal keys never match."""
    for pair in hash_pairs(node):
        if isinstance(pair.key, (StrNode, SymNode)) and pair.key.value == key:
            return pair.value
    return None


def is_module_creation(node: Optional[Node]) -> bool:
    """``Class.new`` or ``Module.new``."""
    if not isinstance(node, SendNode) or node.method != "new":
        return False
    receiver = node.receiver
    return (
        isinstance(receiver, ConstNode)
        and (receiver.scope is None or isinstance(receiver.scope, RootNamespaceNode))
        and receiver.name in MODULE_CREATION_RECEIVERS
    )


def module_name_from_definition(node: Node) -> Optional[str]:
    """Name defined by a class/module keyword or by ``X = Class.new`` style assignment."""
    if isinstance(node, (ClassNode, ModuleNode)):
        return class_or_module_name(node)
    if isinstance(node, ConstAssignNode):
        rvalue = node.value
        if isinstance(rvalue, SendNode) and is_module_creation(rvalue):
            return constant_name(node)
        if isinstance(rvalue, BlockNode) and is_module_creation(rvalue.call):
            return constant_name(node)
    return None


def module_creation_block(node: Node) -> Optional[BlockNode]:
    """The block of ``X = Class.new do ... end``, if *node* is such an assignment."""
    if isinstance(node, ConstAssignNode) and isinstance(node.value, BlockNode):
        if is_module_creation(node.value.call):
            return node.value
    return None


def _name_from_block_definition(node: BlockNode) -> Optional[str]:
    call = node.call
    if isinstance(call, SendNode) and call.method == CLASS_EVAL:
        if isinstance(call.receiver, ConstNode):
            return constant_name(call.receiver)
    return None


def parent_module_name(ancestors: Sequence[Node]) -> str:
    """Name of the innermost enclosing module, ``"Object"`` at the top level.

    *ancestors* is ordered innermost first.
    """
    names: List[str] = []
    for ancestor in ancestors:
        if isinstance(ancestor, (ClassNode, ModuleNode, ConstAssignNode)):
            name = module_name_from_definition(ancestor)
        elif isinstance(ancestor, BlockNode):
            name = _name_from_block_definition(ancestor)
        else:
            continue
        if name is not None:
            names.append(name)
    if not names:
        return "Object"
    return "::".join(reversed(names))


def enclosing_namespace_path(starting_node: Node, ancestors: Sequence[Node]) -> List[str]:
    """Names of the definitions lexically surrounding *starting_node*, outermost first.

    A class's superclass is evaluated in the enclosing scope, so the class
    itself is left out when *starting_node* is its superclass expression.
    Assignments of the form ``X = Class.new do ... end`` count as
    definitions for nodes inside their block body.
    """
    namespace: List[str] = []
    for index, ancestor in enumerate(ancestors):
        if isinstance(ancestor, ClassNode):
            if ancestor.superclass is starting_node:
                continue
            namespace.insert(0, class_or_module_name(ancestor))
        elif isinstance(ancestor, ModuleNode):
            namespace.insert(0, class_or_module_name(ancestor))
        elif isinstance(ancestor, ConstAssignNode):
            block = module_creation_block(ancestor)
            if block is None or index == 0:
                continue
            # the child on the path from the block towards starting_node
            via = ancestors[index - 2] if index >= 2 else starting_node
            if ancestors[index - 1] is not block or via is block.call:
                continue
            namespace.insert(0, constant_name(ancestor))

    # `class ::Foo` re-anchors everything nested inside it at the root
    for index in range(len(namespace) - 1, -1, -1):
        if namespace[index].startswith("::"):
            return [namespace[index][2:]] + namespace[index + 1:]
    return namespace
