"""
Merged dependency graph of one component.
"""

from __future__ import annotations

import heapq
from collections import defaultdict
from dataclasses import dataclass
from typing import Union

from .bindings import Binding, Dependency
from .contributions import Component, InterfaceContribution, ModuleContribution
from .diagnostics import Diagnostic
from .keys import BindingKey


@dataclass(frozen=True)
class DuplicateConflict:
    """Two or more distinct bindings resolving to the same key."""

    key: BindingKey
    bindings: tuple[Binding, ...]

    @property
    def sources(self) -> list[str]:
        return [binding.identity for binding in self.bindings]


@dataclass(frozen=True)
class ReplacementConflict:
    """A target claimed by more than one replacing contribution."""

    target: str
    replacers: tuple[str, ...]


@dataclass(frozen=True)
class ElementNode:
    """Graph node of one multibinding element feeding ``set_key``, a set or a dict."""

    identity: str
    set_key: BindingKey

    def __str__(self) -> str:
        return f"{self.identity} (into {self.set_key})"


GraphNode = Union[BindingKey, ElementNode]


@dataclass(frozen=True)
class Edge:
    """A dependency edge between two nodes of the graph."""

    target: GraphNode
    dependency: Dependency | None = None

    @property
    def is_deferred(self) -> bool:
        return self.dependency is not None and self.dependency.is_deferred


@dataclass(frozen=True)
class MergedGraph:
    """
    The resolved contributions of one component.

    ``bindings`` holds the single binding chosen per key, ``multibindings`` the
    ordered elements of every multibound key, ``edges`` the dependencies each
    binding requires. ``binding_order`` lists every binding in discovery order.
    ``component`` carries the accessors of every surviving contributed interface.
    Deferred conflicts are kept for the validator.
    """

    component: Component
    modules: tuple[ModuleContribution, ...]
    bindings: dict[BindingKey, Binding]
    multibindings: dict[BindingKey, tuple[Binding, ...]]
    edges: dict[Binding, tuple[Dependency, ...]]
    binding_order: tuple[Binding, ...]
    duplicates: tuple[DuplicateConflict, ...] = ()
    replacement_conflicts: tuple[ReplacementConflict, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = ()
    interfaces: tuple[InterfaceContribution, ...] = ()

    @property
    def module_identities(self) -> list[str]:
        return [module.identity for module in self.modules]

    @property
    def interface_identities(self) -> list[str]:
        return [interface.identity for interface in self.interfaces]

    def has_key(self, key: BindingKey) -> bool:
        """Check whether ``key`` is provided by a binding of this graph."""
        if key.multibound:
            return bool(self.multibindings.get(key))
        return key in self.bindings

    def node_of(self, binding: Binding) -> GraphNode:
        if binding.multibinding:
            return ElementNode(binding.identity, binding.target_key)
        return binding.key

    def nodes(self) -> list[GraphNode]:
        """All graph nodes in discovery order; a set node follows its first element."""
        result: list[GraphNode] = []
        seen: set[GraphNode] = set()
        for binding in self.binding_order:
            node = self.node_of(binding)
            if node not in seen:
                seen.add(node)
                result.append(node)
            if binding.multibinding and binding.target_key not in seen:
                seen.add(binding.target_key)
                result.append(binding.target_key)
        return result

    def adjacency(self) -> dict[GraphNode, list[Edge]]:
        """
        Dependency edges between nodes that exist in the graph.

        Edges to keys satisfied only by component instance parameters, or not
        satisfied at all, are left out.
        """
        result: dict[GraphNode, list[Edge]] = defaultdict(list)
        for binding in self.binding_order:
            node = self.node_of(binding)
            for dependency in self.edges.get(binding, ()):
                if self.has_key(dependency.key):
                    result[node].append(Edge(dependency.key, dependency))
            if binding.multibinding:
                result[binding.target_key].append(Edge(node))
        for node in self.nodes():
            result.setdefault(node, [])
        return dict(result)


@dataclass(frozen=True)
class ValidatedGraph:
    """A MergedGraph that passed validation; the immutable input to synthesis."""

    graph: MergedGraph

    @property
    def component(self) -> Component:
        return self.graph.component

    @property
    def modules(self) -> tuple[ModuleContribution, ...]:
        return self.graph.modules

    @property
    def interfaces(self) -> tuple[InterfaceContribution, ...]:
        return self.graph.interfaces

    @property
    def bindings(self) -> dict[BindingKey, Binding]:
        return self.graph.bindings

    @property
    def multibindings(self) -> dict[BindingKey, tuple[Binding, ...]]:
        return self.graph.multibindings

    @property
    def binding_order(self) -> tuple[Binding, ...]:
        return self.graph.binding_order

    def wiring_order(self) -> list[GraphNode]:
        """
        Order nodes so every eager dependency precedes its consumer.

        Among nodes that are ready at the same time, the earliest discovered one
        goes first, which keeps the order stable across runs.
        """
        nodes = self.graph.nodes()
        position = {node: index for index, node in enumerate(nodes)}
        adjacency = self.graph.adjacency()

        pending: dict[GraphNode, int] = {}
        dependents: dict[GraphNode, list[GraphNode]] = defaultdict(list)
        for node in nodes:
            eager_targets = {edge.target for edge in adjacency[node] if not edge.is_deferred}
            pending[node] = len(eager_targets)
            for target in eager_targets:
                dependents[target].append(node)

        ready = [position[node] for node in nodes if pending[node] == 0]
        heapq.heapify(ready)
        result: list[GraphNode] = []
        while ready:
            node = nodes[heapq.heappop(ready)]
            result.append(node)
            for dependent in dependents[node]:
                pending[dependent] -= 1
                if pending[dependent] == 0:
                    heapq.heappush(ready, position[dependent])

        if len(result) != len(nodes):
            # Validation rejects eager cycles, so this only happens on misuse
            raise ValueError(f"Graph of {self.component} contains an eager cycle")
        return result
