"""Shared helpers for building and searching syntax trees in tests."""

from pathlib import Path
from typing import Callable, Dict, List, Tuple

from packguard import nodes
from packguard.parser import RubyParser

Found = Tuple[nodes.Node, Tuple[nodes.Node, ...]]


def write_files(root: Path, files: Dict[str, str]) -> Path:
    """Write ``{relative path: content}`` below *root*."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def parse(source: str) -> nodes.Node:
    return RubyParser().parse(source, file_path="test.rb")


def find_all(root: nodes.Node, predicate: Callable[[nodes.Node], bool]) -> List[Found]:
    """Every ``(node, ancestors innermost first)`` matching *predicate*, in source order."""
    found = []
    stack: List[Found] = [(root, ())]
    while stack:
        node, ancestors = stack.pop()
        if predicate(node):
            found.append((node, ancestors))
        for child in reversed(node.children):
            stack.append((child, (node,) + ancestors))
    return found


def find_first(root: nodes.Node, predicate: Callable[[nodes.Node], bool]) -> Found:
    matches = find_all(root, predicate)
    assert matches, "no matching node"
    return matches[0]


def send_named(name: str) -> Callable[[nodes.Node], bool]:
    return lambda node: nodes.is_method_call(node) and nodes.method_name(node) == name


def const_named(name: str) -> Callable[[nodes.Node], bool]:
    return lambda node: nodes.is_constant(node) and nodes.constant_name(node) == name
