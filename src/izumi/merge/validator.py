"""
Merged graph validation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from .model import (
    Binding,
    BindingKey,
    Diagnostic,
    DiagnosticKind,
    Edge,
    ElementNode,
    GraphNode,
    GraphValidationError,
    MapKey,
    MergedGraph,
    ValidatedGraph,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one MergedGraph."""

    graph: MergedGraph
    validated: ValidatedGraph | None
    diagnostics: tuple[Diagnostic, ...]

    @property
    def ok(self) -> bool:
        return self.validated is not None

    def unwrap(self) -> ValidatedGraph:
        """
        Get the validated graph.

        Raises:
            GraphValidationError: If validation failed
        """
        if self.validated is None:
            raise GraphValidationError(self.graph.component.identity, self.diagnostics)
        return self.validated


class Validator:
    """
    Checks merged graphs for missing dependencies, duplicates, cycles and scope mismatches.

    Every check runs on every graph; the result carries all problems found, not
    only the first one.
    """

    def validate(self, graph: MergedGraph) -> ValidationResult:
        """Validate ``graph``, returning it re-typed as validated when no error was found."""
        diagnostics: list[Diagnostic] = list(graph.diagnostics)
        diagnostics.extend(self._check_replacements(graph))
        diagnostics.extend(self._check_duplicates(graph))
        diagnostics.extend(self._check_missing_dependencies(graph))
        diagnostics.extend(self._check_cycles(graph))
        diagnostics.extend(self._check_scopes(graph))

        errors = [d for d in diagnostics if d.is_error]
        if errors:
            logger.debug("Validation of %s failed with %d error(s)", graph.component, len(errors))
            return ValidationResult(graph, None, tuple(diagnostics))
        return ValidationResult(graph, ValidatedGraph(graph), tuple(diagnostics))

    def _check_replacements(self, graph: MergedGraph) -> Iterator[Diagnostic]:
        component = graph.component
        for conflict in graph.replacement_conflicts:
            yield Diagnostic(
                DiagnosticKind.CONFLICTING_REPLACEMENT,
                f"{conflict.target} is replaced by more than one contribution in {component}: "
                f"[{', '.join(conflict.replacers)}]",
                component=component.identity,
                location=component.location,
            )

    def _check_duplicates(self, graph: MergedGraph) -> Iterator[Diagnostic]:
        component = graph.component
        for conflict in graph.duplicates:
            yield Diagnostic(
                DiagnosticKind.DUPLICATE_BINDING,
                f"{conflict.key} is bound multiple times in {component}: "
                f"[{', '.join(conflict.sources)}]",
                binding_key=conflict.key,
                component=component.identity,
                location=conflict.bindings[0].location,
            )
        for parameter in component.instance_parameters:
            binding = graph.bindings.get(parameter.key)
            if binding is not None:
                yield Diagnostic(
                    DiagnosticKind.DUPLICATE_BINDING,
                    f"{parameter.key} is bound multiple times in {component}: "
                    f"[{component.identity} instance parameter, {binding.identity}]",
                    binding_key=parameter.key,
                    component=component.identity,
                    location=binding.location,
                )
        for key, elements in graph.multibindings.items():
            if not key.is_map:
                continue
            entries: dict[MapKey | None, list[Binding]] = {}
            for element in elements:
                entries.setdefault(element.map_key, []).append(element)
            for map_key, clashing in entries.items():
                if len(clashing) > 1:
                    yield Diagnostic(
                        DiagnosticKind.DUPLICATE_BINDING,
                        f"{key} has more than one entry for map key {map_key} in {component}: "
                        f"[{', '.join(b.identity for b in clashing)}]",
                        binding_key=key,
                        component=component.identity,
                        location=clashing[1].location,
                    )

    def _check_missing_dependencies(self, graph: MergedGraph) -> Iterator[Diagnostic]:
        component = graph.component

        def satisfied(key: BindingKey) -> bool:
            return graph.has_key(key) or component.provides_instance(key)

        for binding in graph.binding_order:
            for dependency in graph.edges.get(binding, ()):
                if not satisfied(dependency.key):
                    yield Diagnostic(
                        DiagnosticKind.MISSING_DEPENDENCY,
                        f"No binding found for {dependency.key} "
                        f"(required by {binding.identity} in {component})",
                        binding_key=dependency.key,
                        component=component.identity,
                        location=binding.location,
                    )

        for accessor in component.accessors:
            if not satisfied(accessor.key):
                yield Diagnostic(
                    DiagnosticKind.MISSING_DEPENDENCY,
                    f"No binding found for {accessor.key} "
                    f"(requested by accessor {accessor.name} of {component})",
                    binding_key=accessor.key,
                    component=component.identity,
                    location=component.location,
                )

    def _check_cycles(self, graph: MergedGraph) -> Iterator[Diagnostic]:
        component = graph.component
        nodes = graph.nodes()
        eager = {
            node: [edge for edge in edges if not edge.is_deferred]
            for node, edges in graph.adjacency().items()
        }

        for members in _strongly_connected(nodes, eager):
            start = members[0]
            if len(members) == 1 and not any(edge.target == start for edge in eager[start]):
                continue
            path = _cycle_path(start, set(members), eager)
            yield Diagnostic(
                DiagnosticKind.ILLEGAL_CYCLE,
                f"Circular dependency detected in {component}: "
                f"{' -> '.join(str(node) for node in path)}",
                binding_key=start.set_key if isinstance(start, ElementNode) else start,
                component=component.identity,
                location=component.location,
            )

    def _check_scopes(self, graph: MergedGraph) -> Iterator[Diagnostic]:
        component = graph.component
        for binding in graph.binding_order:
            scope = binding.lifetime_scope
            if scope is not None and scope != component.scope:
                yield Diagnostic(
                    DiagnosticKind.SCOPE_MISMATCH,
                    f"{binding.identity} is scoped to {scope}, which is incompatible with "
                    f"{component} in scope {component.scope}",
                    binding_key=binding.target_key,
                    component=component.identity,
                    location=binding.location,
                )


def _strongly_connected(
    nodes: list[GraphNode], edges: dict[GraphNode, list[Edge]]
) -> list[list[GraphNode]]:
    """
    Strongly connected components, each sorted by discovery order.

    Components are returned ordered by their earliest node.
    """
    position = {node: index for index, node in enumerate(nodes)}
    index_of: dict[GraphNode, int] = {}
    low: dict[GraphNode, int] = {}
    on_stack: set[GraphNode] = set()
    stack: list[GraphNode] = []
    result: list[list[GraphNode]] = []
    counter = 0

    for root in nodes:
        if root in index_of:
            continue
        work: list[tuple[GraphNode, Iterator[Edge]]] = []
        index_of[root] = low[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work.append((root, iter(edges.get(root, []))))

        while work:
            node, pending = work[-1]
            advanced = False
            for edge in pending:
                target = edge.target
                if target not in index_of:
                    index_of[target] = low[target] = counter
                    counter += 1
                    stack.append(target)
                    on_stack.add(target)
                    work.append((target, iter(edges.get(target, []))))
                    advanced = True
                    break
                if target in on_stack:
                    low[node] = min(low[node], index_of[target])
            if advanced:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                low[parent] = min(low[parent], low[node])
            if low[node] == index_of[node]:
                members: list[GraphNode] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    members.append(member)
                    if member == node:
                        break
                result.append(sorted(members, key=position.__getitem__))

    return sorted(result, key=lambda members: position[members[0]])


def _cycle_path(
    start: GraphNode, members: set[GraphNode], edges: dict[GraphNode, list[Edge]]
) -> list[GraphNode]:
    """Find a path from ``start`` back to itself through ``members``."""
    path = [start]
    visited = {start}
    work: list[Iterator[Edge]] = [iter(edges.get(start, []))]
    while work:
        for edge in work[-1]:
            target = edge.target
            if target == start:
                return path + [start]
            if target in members and target not in visited:
                visited.add(target)
                path.append(target)
                work.append(iter(edges.get(target, [])))
                break
        else:
            work.pop()
            path.pop()
    return [start, start]
