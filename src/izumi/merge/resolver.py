"""
Graph resolution: merges the contributions of a scope into one MergedGraph per component.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import replace

from .collector import Collection
from .model import (
    Accessor,
    Binding,
    BindingContribution,
    BindingKey,
    Component,
    Contribution,
    Dependency,
    Diagnostic,
    DiagnosticKind,
    DuplicateConflict,
    ExcludesDirective,
    InterfaceContribution,
    MergedGraph,
    ModuleContribution,
    ReplacementConflict,
    ReplacesDirective,
)

logger = logging.getLogger(__name__)


class GraphResolver:
    """
    Resolves contributions into merged graphs.

    Resolution is a pure function of its input: running it again on the same
    contributions yields an equal graph.
    """

    def resolve(self, collection: Collection) -> list[MergedGraph]:
        """Resolve one MergedGraph for every component of the collected scope."""
        return [
            self.resolve_component(
                collection.contributions, component, collection.diagnostics_for(component)
            )
            for component in collection.components
        ]

    def resolve_component(
        self,
        contributions: Sequence[Contribution],
        component: Component,
        diagnostics: Iterable[Diagnostic] = (),
    ) -> MergedGraph:
        """Resolve the contributions visible to ``component``."""
        modules: list[ModuleContribution] = list(component.modules)
        binding_contributions: list[BindingContribution] = []
        replaces: list[ReplacesDirective] = []
        excludes: list[ExcludesDirective] = []
        interfaces: list[InterfaceContribution] = []
        for contribution in contributions:
            if isinstance(contribution, ModuleContribution):
                modules.append(contribution)
            elif isinstance(contribution, BindingContribution):
                binding_contributions.append(contribution)
            elif isinstance(contribution, ReplacesDirective):
                replaces.append(contribution)
            elif isinstance(contribution, InterfaceContribution):
                interfaces.append(contribution)
            else:
                excludes.append(contribution)

        excluded: set[str] = set(component.excludes)
        replaced, replacement_conflicts = self._apply_replacements(replaces, excluded)
        for directive in excludes:
            if not directive.applies_to(component):
                continue
            if directive.source in excluded or directive.source in replaced:
                logger.debug("Exclusion %s is inactive for %s", directive, component)
                continue
            excluded.update(directive.targets)

        removed = excluded | replaced.keys()

        def is_removed(module: ModuleContribution) -> bool:
            return module.identity in removed or module.included_by in removed

        surviving_modules = _dedupe_modules(m for m in modules if not is_removed(m))
        surviving_contributions = [
            c for c in binding_contributions if c.identity not in removed
        ]
        surviving_interfaces: list[InterfaceContribution] = []
        for interface in interfaces:
            if interface.identity not in removed and interface not in surviving_interfaces:
                surviving_interfaces.append(interface)
        accessors, accessor_problems = _merge_accessors(component, surviving_interfaces)
        if surviving_interfaces:
            component = replace(component, accessors=accessors)

        candidates: dict[BindingKey, list[Binding]] = defaultdict(list)
        elements: dict[BindingKey, list[Binding]] = defaultdict(list)
        discovered: list[Binding] = []
        seen_identities: set[str] = set()

        def add(binding: Binding) -> None:
            if binding.identity in seen_identities:
                return
            seen_identities.add(binding.identity)
            discovered.append(binding)
            if binding.multibinding:
                elements[binding.target_key].append(binding)
            else:
                candidates[binding.key].append(binding)

        # Component modules come first, then contributions in discovery order
        surviving_contribution_ids = {c.identity for c in surviving_contributions}
        for module in surviving_modules:
            if module.included_by == component.identity:
                for binding in module.bindings:
                    add(binding)
        for contribution in contributions:
            if isinstance(contribution, ModuleContribution):
                if is_removed(contribution):
                    continue
                for binding in contribution.bindings:
                    add(binding)
            elif (
                isinstance(contribution, BindingContribution)
                and contribution.identity in surviving_contribution_ids
            ):
                add(contribution.binding)

        bindings: dict[BindingKey, Binding] = {}
        duplicates: list[DuplicateConflict] = []
        for key, alternatives in candidates.items():
            chosen, conflict = self._select_binding(key, alternatives)
            bindings[key] = chosen
            if conflict is not None:
                duplicates.append(conflict)

        kept = set(bindings.values())
        binding_order = tuple(b for b in discovered if b.multibinding or b in kept)
        edges: dict[Binding, tuple[Dependency, ...]] = {
            binding: binding.dependencies for binding in binding_order
        }

        graph = MergedGraph(
            component=component,
            modules=tuple(surviving_modules),
            bindings=bindings,
            multibindings={key: tuple(values) for key, values in elements.items()},
            edges=edges,
            binding_order=binding_order,
            duplicates=tuple(duplicates),
            replacement_conflicts=tuple(replacement_conflicts),
            diagnostics=(*diagnostics, *accessor_problems),
            interfaces=tuple(surviving_interfaces),
        )
        logger.debug(
            "Resolved %s: %d module(s), %d interface(s), %d binding(s), %d multibound key(s), "
            "%d duplicate(s), %d replacement conflict(s)",
            component,
            len(graph.modules),
            len(graph.interfaces),
            len(graph.bindings),
            len(graph.multibindings),
            len(graph.duplicates),
            len(graph.replacement_conflicts),
        )
        return graph

    def _apply_replacements(
        self, directives: Sequence[ReplacesDirective], excluded: set[str]
    ) -> tuple[dict[str, str], list[ReplacementConflict]]:
        """
        Map every replaced identity to its replacer.

        Directives of excluded contributions are ignored. A target claimed by
        more than one replacer is a conflict; it stays replaced.
        """
        claims: dict[str, list[str]] = {}
        for directive in directives:
            if directive.source in excluded:
                continue
            for target in directive.targets:
                replacers = claims.setdefault(target, [])
                if directive.source not in replacers:
                    replacers.append(directive.source)

        replaced = {target: replacers[0] for target, replacers in claims.items()}
        conflicts = [
            ReplacementConflict(target, tuple(replacers))
            for target, replacers in claims.items()
            if len(replacers) > 1
        ]
        return replaced, conflicts

    def _select_binding(
        self, key: BindingKey, alternatives: list[Binding]
    ) -> tuple[Binding, DuplicateConflict | None]:
        """
        Select the binding for ``key`` from its alternatives.

        Contributed bindings compete by priority; module bindings never do. The
        first discovered alternative is kept when a conflict remains.
        """
        if len(alternatives) == 1:
            return alternatives[0], None

        declared = [b for b in alternatives if not b.contributed]
        contributed = [b for b in alternatives if b.contributed]
        if contributed:
            top_priority = max(b.priority for b in contributed)
            top = [b for b in contributed if b.priority == top_priority]
            if len(top) == 1:
                for loser in contributed:
                    if loser is not top[0]:
                        logger.debug("%s is shadowed by higher priority %s", loser, top[0])
                contributed = top

        remaining = [b for b in alternatives if b in declared or b in contributed]
        if len(remaining) == 1:
            return remaining[0], None
        return remaining[0], DuplicateConflict(key, tuple(remaining))


def _dedupe_modules(modules: Iterable[ModuleContribution]) -> list[ModuleContribution]:
    result: list[ModuleContribution] = []
    seen: set[str] = set()
    for module in modules:
        if module.identity not in seen:
            seen.add(module.identity)
            result.append(module)
    return result


def _merge_accessors(
    component: Component, interfaces: Sequence[InterfaceContribution]
) -> tuple[tuple[Accessor, ...], list[Diagnostic]]:
    """
    The component's own accessors followed by those of its contributed interfaces.

    An accessor repeated with the same key is exposed once; a name bound to two
    different keys is reported against the component.
    """
    accessors = list(component.accessors)
    by_name = {accessor.name: accessor for accessor in accessors}
    problems: list[Diagnostic] = []
    for interface in interfaces:
        for accessor in interface.accessors:
            existing = by_name.get(accessor.name)
            if existing is None:
                by_name[accessor.name] = accessor
                accessors.append(accessor)
            elif existing.key != accessor.key:
                problems.append(
                    Diagnostic(
                        DiagnosticKind.MALFORMED_COMPONENT,
                        f"{component} exposes accessor {accessor.name} as both {existing.key} "
                        f"and {accessor.key} (from {interface.identity})",
                        binding_key=accessor.key,
                        component=component.identity,
                        location=interface.location,
                    )
                )
    return tuple(accessors), problems
