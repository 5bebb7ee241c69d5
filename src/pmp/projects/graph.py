"""Dependency graph over project environments, built from plugin bindings."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from pmp.errors import DependencyCycleError
from pmp.projects.base import ProjectHandle


class DependencyGraph:
    """Directed graph where an edge A -> B means "A consumes B".

    Nodes are project environment keys (``category/name@environment``).
    """

    def __init__(self, edges: Mapping[str, Iterable[str]] | None = None) -> None:
        self._edges: dict[str, set[str]] = {}
        for node, deps in (edges or {}).items():
            self.add_node(node)
            for dep in deps:
                self.add_edge(node, dep)

    @classmethod
    def from_projects(cls, handles: Iterable[ProjectHandle]) -> DependencyGraph:
        graph = cls()
        for handle in handles:
            key = str(handle.ref)
            graph.add_node(key)
            for binding in handle.project.plugins:
                graph.add_edge(key, str(binding.project))
        return graph

    def add_node(self, node: str) -> None:
        self._edges.setdefault(node, set())

    def add_edge(self, node: str, dependency: str) -> None:
        self.add_node(node)
        self.add_node(dependency)
        self._edges[node].add(dependency)

    def with_dependencies(self, node: str, dependencies: Iterable[str]) -> DependencyGraph:
        """Return a copy where ``node``'s outgoing edges are replaced."""
        edges = {key: set(deps) for key, deps in self._edges.items()}
        edges[node] = set(dependencies)
        return DependencyGraph(edges)

    @property
    def nodes(self) -> list[str]:
        return sorted(self._edges)

    def dependencies_of(self, node: str) -> list[str]:
        return sorted(self._edges.get(node, ()))

    def dependents_of(self, node: str) -> list[str]:
        return sorted(key for key, deps in self._edges.items() if node in deps)

    def find_cycle(self) -> list[str] | None:
        """Return one cycle as a closed path (first node repeated), or None."""
        visiting: list[str] = []
        done: set[str] = set()

        def visit(node: str) -> list[str] | None:
            if node in visiting:
                return visiting[visiting.index(node) :] + [node]
            if node in done:
                return None
            visiting.append(node)
            for dep in self.dependencies_of(node):
                cycle = visit(dep)
                if cycle:
                    return cycle
            visiting.pop()
            done.add(node)
            return None

        for node in self.nodes:
            cycle = visit(node)
            if cycle:
                return cycle
        return None

    def topological_order(self) -> list[str]:
        """Nodes ordered so every dependency comes before its dependents.

        Raises DependencyCycleError if the graph has a cycle.
        """
        cycle = self.find_cycle()
        if cycle:
            raise DependencyCycleError(cycle)

        order: list[str] = []
        placed: set[str] = set()

        def place(node: str) -> None:
            if node in placed:
                return
            for dep in self.dependencies_of(node):
                place(dep)
            placed.add(node)
            order.append(node)

        for node in self.nodes:
            place(node)
        return order
