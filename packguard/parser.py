"""Ruby and ERB parsers built on Tree-sitter.

Tree-sitter produces a *concrete* syntax tree that keeps every token.
The converters below fold it into the typed nodes of :mod:`packguard.nodes`
so the rest of the pipeline never touches tree-sitter objects:

- ``class`` / ``module`` keep their name, superclass and flattened body
- ``constant`` and ``scope_resolution`` become :class:`ConstNode` chains
- assignments to a constant become :class:`ConstAssignNode`
- ``call`` becomes :class:`SendNode`, wrapped in a :class:`BlockNode` when
  it carries a block; bare ``key: value`` arguments are gathered into a
  trailing :class:`HashNode`
- everything else becomes a :class:`GenericNode` over its named children
"""

from __future__ import annotations

import importlib
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional

from . import nodes
from .errors import ConfigurationError, ParseError
from .models import SourceLocation

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# File name -> parser mapping
# ---------------------------------------------------------------------------
RUBY_EXTENSIONS = {".rb", ".rake", ".ru", ".gemspec", ".builder"}
RUBY_FILE_NAMES = {"Gemfile", "Rakefile"}
ERB_EXTENSIONS = {".erb"}

# Map language name -> module that provides the tree-sitter Language
_GRAMMAR_MODULES: Dict[str, str] = {
    "ruby": "tree_sitter_ruby",
    "embedded_template": "tree_sitter_embedded_template",
}

_languages: Dict[str, Any] = {}
_languages_lock = threading.Lock()


def _language(name: str) -> Any:
    with _languages_lock:
        if name not in _languages:
            from tree_sitter import Language  # type: ignore[import-untyped]

            mod_name = _GRAMMAR_MODULES[name]
            try:
                mod = importlib.import_module(mod_name)
            except ImportError as exc:
                raise ConfigurationError(
                    f"Grammar package '{mod_name}' is not installed. "
                    f"Install with: pip install {mod_name.replace('_', '-')}"
                ) from exc
            _languages[name] = Language(mod.language())
            logger.debug("Loaded tree-sitter grammar for %s", name)
        return _languages[name]


def _new_ts_parser(language: str) -> Any:
    from tree_sitter import Parser as TSParser  # type: ignore[import-untyped]

    return TSParser(_language(language))


# ===================================================================
# Abstract Parser Interface
# ===================================================================

class Parser(ABC):
    """Turns source text into a root :class:`~packguard.nodes.Node`."""

    @abstractmethod
    def parse(self, source: str, file_path: str = "<unknown>") -> nodes.Node:
        """Parse *source*; raise :class:`ParseError` if it is not valid."""
        ...


# ===================================================================
# Ruby
# ===================================================================

class RubyParser(Parser):
    def parse(self, source: str, file_path: str = "<unknown>") -> nodes.Node:
        ts_parser = _new_ts_parser("ruby")
        tree = ts_parser.parse(source.encode("utf-8"))
        root = tree.root_node
        if root.has_error:
            raise ParseError(file_path, f"Syntax error: {_describe_error(root)}")
        return _Converter().convert(root)


def _describe_error(root: Any) -> str:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            row, column = node.start_point
            return f"unexpected token at line {row + 1}, column {column}"
        stack.extend(reversed(node.children))
    return "unparseable source"


def _text(ts_node: Any) -> str:
    return ts_node.text.decode("utf-8", errors="replace")


def _loc(ts_node: Any) -> SourceLocation:
    row, column = ts_node.start_point
    return SourceLocation(line=row + 1, column=column)


class _Converter:
    """Folds one tree-sitter Ruby tree into packguard nodes."""

    SKIPPED = {"comment", "heredoc_end", "uninterpreted", "empty_statement"}
    BODY_WRAPPERS = {"body_statement", "block_body"}

    def convert(self, ts_node: Any) -> nodes.Node:
        handler = getattr(self, f"_convert_{ts_node.type}", None)
        if handler is not None:
            return handler(ts_node)
        return self._generic(ts_node)

    def _convert_all(self, ts_nodes: List[Any]) -> List[nodes.Node]:
        return [self.convert(n) for n in ts_nodes if n.is_named and n.type not in self.SKIPPED]

    def _generic(self, ts_node: Any) -> nodes.Node:
        return nodes.GenericNode(
            location=_loc(ts_node),
            type_name=ts_node.type,
            nodes=self._convert_all(ts_node.named_children),
        )

    def _body(self, ts_node: Optional[Any], exclude: List[Any]) -> List[nodes.Node]:
        """Flatten the statements of a definition or block body."""
        if ts_node is None:
            return []
        result: List[nodes.Node] = []
        for child in ts_node.named_children:
            if any(child == other for other in exclude if other is not None):
                continue
            if child.type in self.SKIPPED:
                continue
            if child.type in self.BODY_WRAPPERS:
                result.extend(self._convert_all(child.named_children))
            else:
                result.append(self.convert(child))
        return result

    # -- definitions --------------------------------------------------

    def _convert_class(self, ts_node: Any) -> nodes.Node:
        name = ts_node.child_by_field_name("name")
        superclass = ts_node.child_by_field_name("superclass")
        superclass_expr = None
        if superclass is not None:
            exprs = [c for c in superclass.named_children if c.type not in self.SKIPPED]
            superclass_expr = self.convert(exprs[0]) if exprs else None
        return nodes.ClassNode(
            location=_loc(ts_node),
            name=self.convert(name) if name is not None else None,
            superclass=superclass_expr,
            body=self._body(ts_node, exclude=[name, superclass]),
        )

    def _convert_module(self, ts_node: Any) -> nodes.Node:
        name = ts_node.child_by_field_name("name")
        return nodes.ModuleNode(
            location=_loc(ts_node),
            name=self.convert(name) if name is not None else None,
            body=self._body(ts_node, exclude=[name]),
        )

    # -- constants ----------------------------------------------------

    def _convert_constant(self, ts_node: Any) -> nodes.Node:
        location = _loc(ts_node)
        return nodes.ConstNode(location=location, scope=None, name=_text(ts_node), name_location=location)

    def _convert_scope_resolution(self, ts_node: Any) -> nodes.Node:
        scope = ts_node.child_by_field_name("scope")
        name = ts_node.child_by_field_name("name")
        if name is None:
            return self._generic(ts_node)
        if scope is None:
            scope_node: nodes.Node = nodes.RootNamespaceNode(location=_loc(ts_node))
        else:
            scope_node = self.convert(scope)
        if name.type != "constant":
            # `Foo::bar` written without a call; a method, not a constant
            return nodes.SendNode(
                location=_loc(ts_node), receiver=scope_node, method=_text(name), arguments=[]
            )
        return nodes.ConstNode(
            location=_loc(ts_node),
            scope=scope_node,
            name=_text(name),
            name_location=_loc(name),
        )

    def _constant_target(self, left: Any, value: Optional[nodes.Node], location: SourceLocation) -> Optional[nodes.Node]:
        if left.type == "constant":
            return nodes.ConstAssignNode(
                location=location, scope=None, name=_text(left), value=value, name_location=_loc(left)
            )
        if left.type == "scope_resolution":
            name = left.child_by_field_name("name")
            if name is None or name.type != "constant":
                return None
            scope = left.child_by_field_name("scope")
            scope_node = self.convert(scope) if scope is not None else nodes.RootNamespaceNode(location=_loc(left))
            return nodes.ConstAssignNode(
                location=location, scope=scope_node, name=_text(name), value=value, name_location=_loc(name)
            )
        return None

    def _convert_assignment(self, ts_node: Any) -> nodes.Node:
        left = ts_node.child_by_field_name("left")
        right = ts_node.child_by_field_name("right")
        value = self.convert(right) if right is not None else None
        if left is not None:
            target = self._constant_target(left, value, _loc(ts_node))
            if target is not None:
                return target
        return self._generic(ts_node)

    def _convert_operator_assignment(self, ts_node: Any) -> nodes.Node:
        # `X ||= value`: the constant is assigned, the value stays a sibling
        left = ts_node.child_by_field_name("left")
        right = ts_node.child_by_field_name("right")
        if left is not None:
            target = self._constant_target(left, None, _loc(left))
            if target is not None:
                rest = [self.convert(right)] if right is not None else []
                return nodes.GenericNode(location=_loc(ts_node), type_name="op_asgn", nodes=[target] + rest)
        return self._generic(ts_node)

    # -- calls and blocks --------------------------------------------

    def _arguments(self, ts_node: Optional[Any]) -> List[nodes.Node]:
        if ts_node is None:
            return []
        positional: List[nodes.Node] = []
        pairs: List[nodes.Node] = []
        for child in ts_node.named_children:
            if child.type in self.SKIPPED:
                continue
            if child.type in ("pair", "hash_splat_argument"):
                pairs.append(self.convert(child))
            else:
                positional.append(self.convert(child))
        if pairs:
            positional.append(nodes.HashNode(location=pairs[0].location, entries=pairs))
        return positional

    def _convert_call(self, ts_node: Any) -> nodes.Node:
        receiver = ts_node.child_by_field_name("receiver")
        method = ts_node.child_by_field_name("method")
        arguments = ts_node.child_by_field_name("arguments")
        block = ts_node.child_by_field_name("block")
        send = nodes.SendNode(
            location=_loc(ts_node),
            receiver=self.convert(receiver) if receiver is not None else None,
            method=_text(method) if method is not None else "call",
            arguments=self._arguments(arguments),
        )
        if block is None:
            return send
        return nodes.BlockNode(
            location=_loc(ts_node),
            call=send,
            body=self._block_body(block),
        )

    def _block_body(self, ts_node: Any) -> List[nodes.Node]:
        parameters = ts_node.child_by_field_name("parameters")
        return self._body(ts_node, exclude=[parameters])

    def _convert_lambda(self, ts_node: Any) -> nodes.Node:
        body = ts_node.child_by_field_name("body")
        location = _loc(ts_node)
        return nodes.BlockNode(
            location=location,
            call=nodes.SendNode(location=location, receiver=None, method="lambda", arguments=[]),
            body=self._block_body(body) if body is not None else [],
        )

    # -- literals -----------------------------------------------------

    def _convert_hash(self, ts_node: Any) -> nodes.Node:
        return nodes.HashNode(location=_loc(ts_node), entries=self._convert_all(ts_node.named_children))

    def _convert_pair(self, ts_node: Any) -> nodes.Node:
        key = ts_node.child_by_field_name("key")
        value = ts_node.child_by_field_name("value")
        return nodes.PairNode(
            location=_loc(ts_node),
            key=self.convert(key) if key is not None else None,
            value=self.convert(value) if value is not None else None,
        )

    def _literal_content(self, ts_node: Any) -> Optional[str]:
        """Concatenated content of a literal, or None when it interpolates."""
        parts: List[str] = []
        for child in ts_node.named_children:
            if child.type == "interpolation":
                return None
            if child.type in ("string_content", "escape_sequence"):
                parts.append(_text(child))
        return "".join(parts)

    def _convert_string(self, ts_node: Any) -> nodes.Node:
        content = self._literal_content(ts_node)
        if content is None:
            return nodes.GenericNode(
                location=_loc(ts_node), type_name="dstr", nodes=self._convert_all(ts_node.named_children)
            )
        return nodes.StrNode(location=_loc(ts_node), value=content)

    def _convert_simple_symbol(self, ts_node: Any) -> nodes.Node:
        return nodes.SymNode(location=_loc(ts_node), value=_text(ts_node).lstrip(":"))

    def _convert_hash_key_symbol(self, ts_node: Any) -> nodes.Node:
        return nodes.SymNode(location=_loc(ts_node), value=_text(ts_node))

    def _convert_delimited_symbol(self, ts_node: Any) -> nodes.Node:
        content = self._literal_content(ts_node)
        if content is None:
            return nodes.GenericNode(
                location=_loc(ts_node), type_name="dsym", nodes=self._convert_all(ts_node.named_children)
            )
        return nodes.SymNode(location=_loc(ts_node), value=content)

    def _convert_self(self, ts_node: Any) -> nodes.Node:
        return nodes.SelfNode(location=_loc(ts_node))


# ===================================================================
# ERB
# ===================================================================

class ErbParser(Parser):
    """Parses the Ruby code embedded in an ERB template.

    Directive code is joined line by line, so locations refer to the
    extracted code rather than to the template.
    """

    CODE_DIRECTIVES = {"directive", "output_directive"}

    def __init__(self, ruby_parser: Optional[RubyParser] = None) -> None:
        self._ruby_parser = ruby_parser or RubyParser()

    def parse(self, source: str, file_path: str = "<unknown>") -> nodes.Node:
        ts_parser = _new_ts_parser("embedded_template")
        tree = ts_parser.parse(source.encode("utf-8"))
        if tree.root_node.has_error:
            raise ParseError(file_path, f"Syntax error: {_describe_error(tree.root_node)}")
        code_pieces = []
        for directive in tree.root_node.named_children:
            if directive.type not in self.CODE_DIRECTIVES:
                continue
            for child in directive.named_children:
                if child.type == "code":
                    code_pieces.append(_text(child))
        return self._ruby_parser.parse("\n".join(code_pieces), file_path=file_path)


# ===================================================================
# Factory
# ===================================================================

_ruby_parser = RubyParser()
_erb_parser = ErbParser(_ruby_parser)


def parser_for(file_path: str) -> Optional[Parser]:
    """Return the parser for *file_path*, or None for unsupported file types."""
    path = PurePosixPath(file_path)
    if path.suffix in RUBY_EXTENSIONS or path.name in RUBY_FILE_NAMES:
        return _ruby_parser
    if path.suffix in ERB_EXTENSIONS:
        return _erb_parser
    return None
