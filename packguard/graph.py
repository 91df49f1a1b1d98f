"""Directed graph of package dependencies with cycle detection."""

from __future__ import annotations

from typing import Dict, Hashable, Iterable, List, Sequence, Tuple


class Graph:
    """Graph over hashable vertices, built from ``(source, target)`` edges.

    Cycles are the strongly connected components with more than one
    vertex, found with Tarjan's algorithm. Self-loops are not cycles.
    """

    def __init__(self, edges: Iterable[Tuple[Hashable, Hashable]]) -> None:
        self._adjacency: Dict[Hashable, List[Hashable]] = {}
        for source, target in edges:
            self._adjacency.setdefault(source, [])
            self._adjacency.setdefault(target, [])
            if target not in self._adjacency[source]:
                self._adjacency[source].append(target)
        self._components: List[List[Hashable]] = []
        self._processed = False

    @property
    def vertices(self) -> List[Hashable]:
        return list(self._adjacency)

    def cycles(self) -> List[List[Hashable]]:
        self._process()
        return [component for component in self._components if len(component) > 1]

    def acyclic(self) -> bool:
        return not self.cycles()

    # ------------------------------------------------------------------

    def _process(self) -> None:
        if self._processed:
            return
        self._index = 0
        self._indices: Dict[Hashable, int] = {}
        self._lowlinks: Dict[Hashable, int] = {}
        self._stack: List[Hashable] = []
        self._on_stack: Dict[Hashable, bool] = {}
        for vertex in self._adjacency:
            if vertex not in self._indices:
                self._visit(vertex)
        self._processed = True

    def _visit(self, vertex: Hashable) -> None:
        self._indices[vertex] = self._index
        self._lowlinks[vertex] = self._index
        self._index += 1
        self._stack.append(vertex)
        self._on_stack[vertex] = True

        for successor in self._adjacency[vertex]:
            if successor not in self._indices:
                self._visit(successor)
                self._lowlinks[vertex] = min(self._lowlinks[vertex], self._lowlinks[successor])
            elif self._on_stack.get(successor):
                self._lowlinks[vertex] = min(self._lowlinks[vertex], self._indices[successor])

        if self._lowlinks[vertex] == self._indices[vertex]:
            # the component is the stack slice above and including vertex, in stack order
            start = len(self._stack) - 1 - self._stack[::-1].index(vertex)
            component = self._stack[start:]
            del self._stack[start:]
            for member in component:
                self._on_stack[member] = False
            self._components.append(component)


def render_cycle(cycle: Sequence[Hashable]) -> str:
    """``["A", "B", "C"]`` -> ``"A → B → C → A"``."""
    names = [str(vertex) for vertex in cycle]
    return " → ".join(names + names[:1])
