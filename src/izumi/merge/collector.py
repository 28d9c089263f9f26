"""
Contribution collection: turns raw declarations of one scope into typed contributions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .index import DeclarationIndex, DeclarationKind, RawComponent, RawDeclaration, RawProvision
from .model import (
    Binding,
    BindingContribution,
    BindingKey,
    Component,
    ConstructionStrategy,
    Contribution,
    Diagnostic,
    DiagnosticKind,
    ExcludesDirective,
    InterfaceContribution,
    MapKey,
    ModuleContribution,
    Priority,
    ReplacesDirective,
    Scope,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Collection:
    """Everything collected for one scope, in discovery order."""

    scope: Scope
    contributions: tuple[Contribution, ...]
    components: tuple[Component, ...]
    diagnostics: tuple[Diagnostic, ...] = ()
    component_diagnostics: dict[str, tuple[Diagnostic, ...]] = field(default_factory=dict)

    def diagnostics_for(self, component: Component) -> tuple[Diagnostic, ...]:
        return self.component_diagnostics.get(component.identity, ())

    def bindings(self) -> list[Binding]:
        """
        Every binding some component of the scope may keep, in discovery order.

        Modules installed by components come first, component by component,
        followed by the contributed modules and bindings.
        """
        result: list[Binding] = []
        for component in self.components:
            for module in component.modules:
                result.extend(module.bindings)
        for contribution in self.contributions:
            if isinstance(contribution, ModuleContribution):
                result.extend(contribution.bindings)
            elif isinstance(contribution, BindingContribution):
                result.append(contribution.binding)
        return result


class ContributionCollector:
    """
    Walks a DeclarationIndex and extracts the contributions of a scope.

    Collection has no side effects besides reading the index, so it can be
    repeated whenever a new round of declarations becomes visible.

    Declarations that name no scope are never part of a scoped collection.
    They are only reported, as malformed contributions, when the host collects
    the ``UNSCOPED`` sentinel, so hosts should run that pass as well.
    """

    def __init__(self, index: DeclarationIndex):
        self._index = index

    def collect(self, scope: Scope) -> Collection:
        """Collect the ordered contributions and the components of ``scope``."""
        contributions: list[Contribution] = []
        diagnostics: list[Diagnostic] = []

        for declaration in self._index.contributions_for_scope(scope):
            if declaration.scope is None or declaration.scope.is_unscoped:
                diagnostics.append(
                    self._malformed(declaration, f"{declaration.identity} declares no scope")
                )
                continue

            if declaration.kind is DeclarationKind.MODULE:
                self._collect_module(declaration, scope, contributions, diagnostics)
            elif declaration.kind is DeclarationKind.BINDING:
                self._collect_binding(declaration, scope, contributions, diagnostics)
            elif declaration.kind is DeclarationKind.INTERFACE:
                self._collect_interface(declaration, scope, contributions, diagnostics)
            else:
                self._collect_exclusion(declaration, scope, contributions, diagnostics)

        components: list[Component] = []
        component_diagnostics: dict[str, tuple[Diagnostic, ...]] = {}
        for raw in self._index.components_for_scope(scope):
            component, problems = self._collect_component(raw, scope, diagnostics)
            components.append(component)
            if problems:
                component_diagnostics[component.identity] = tuple(problems)

        for diagnostic in diagnostics:
            logger.warning("Filtered declaration in scope %s: %s", scope, diagnostic.message)
        logger.debug(
            "Collected %d contribution(s) and %d component(s) for scope %s",
            len(contributions),
            len(components),
            scope,
        )
        return Collection(
            scope,
            tuple(contributions),
            tuple(components),
            tuple(diagnostics),
            component_diagnostics,
        )

    def _collect_module(
        self,
        declaration: RawDeclaration,
        scope: Scope,
        contributions: list[Contribution],
        diagnostics: list[Diagnostic],
    ) -> None:
        module = self._module_contribution(declaration, scope, None, diagnostics)
        if module is None:
            return

        contributions.append(module)
        if declaration.replaces:
            contributions.append(
                ReplacesDirective(
                    declaration.identity, scope, declaration.replaces, declaration.location
                )
            )

        # Includes are expanded one level only
        for included_identity in declaration.includes:
            included = self._index.lookup(included_identity)
            if included is None or included.kind is not DeclarationKind.MODULE:
                diagnostics.append(
                    self._malformed(
                        declaration,
                        f"{declaration.identity} includes {included_identity}, "
                        "which is not a known module",
                    )
                )
                continue

            included_module = self._module_contribution(
                included, scope, declaration.identity, diagnostics
            )
            if included_module is None:
                continue
            contributions.append(included_module)
            if included.replaces and included.scope == scope:
                contributions.append(
                    ReplacesDirective(
                        included.identity, scope, included.replaces, included.location
                    )
                )

    def _collect_binding(
        self,
        declaration: RawDeclaration,
        scope: Scope,
        contributions: list[Contribution],
        diagnostics: list[Diagnostic],
    ) -> None:
        if not declaration.provided_type:
            diagnostics.append(
                self._malformed(
                    declaration, f"Binding {declaration.identity} does not declare a bound type"
                )
            )
            return
        map_key_problem = _map_key_problem(declaration.map_key)
        if map_key_problem is not None:
            diagnostics.append(
                self._malformed(declaration, f"Binding {declaration.identity}: {map_key_problem}")
            )
            return

        binding = Binding(
            key=BindingKey.of(declaration.provided_type, declaration.qualifier),
            identity=declaration.identity,
            origin=declaration.identity,
            construction=ConstructionStrategy.constructor(
                declaration.implementation or declaration.identity
            ),
            dependencies=declaration.dependencies,
            multibinding=declaration.multibinding or declaration.map_key is not None,
            priority=declaration.priority,
            lifetime_scope=declaration.lifetime_scope,
            location=declaration.location,
            contributed=True,
            map_key=declaration.map_key,
        )
        contributions.append(
            BindingContribution(declaration.identity, scope, binding, declaration.location)
        )
        if declaration.replaces:
            contributions.append(
                ReplacesDirective(
                    declaration.identity, scope, declaration.replaces, declaration.location
                )
            )

    def _collect_exclusion(
        self,
        declaration: RawDeclaration,
        scope: Scope,
        contributions: list[Contribution],
        diagnostics: list[Diagnostic],
    ) -> None:
        if not declaration.excludes:
            diagnostics.append(
                self._malformed(
                    declaration, f"Exclusion {declaration.identity} does not name any target"
                )
            )
            return
        contributions.append(
            ExcludesDirective(
                declaration.identity,
                scope,
                declaration.excludes,
                declaration.component,
                declaration.location,
            )
        )

    def _collect_interface(
        self,
        declaration: RawDeclaration,
        scope: Scope,
        contributions: list[Contribution],
        diagnostics: list[Diagnostic],
    ) -> None:
        names: set[str] = set()
        for accessor in declaration.accessors:
            if not accessor.name:
                problem = "an accessor has no name"
            elif accessor.name in names:
                problem = f"accessor {accessor.name} is declared more than once"
            else:
                names.add(accessor.name)
                continue
            diagnostics.append(
                self._malformed(declaration, f"Interface {declaration.identity}: {problem}")
            )
            return

        contributions.append(
            InterfaceContribution(
                declaration.identity, scope, declaration.accessors, declaration.location
            )
        )
        if declaration.replaces:
            contributions.append(
                ReplacesDirective(
                    declaration.identity, scope, declaration.replaces, declaration.location
                )
            )

    def _collect_component(
        self, raw: RawComponent, scope: Scope, diagnostics: list[Diagnostic]
    ) -> tuple[Component, list[Diagnostic]]:
        problems: list[Diagnostic] = []

        def problem(kind: DiagnosticKind, message: str) -> None:
            problems.append(
                Diagnostic(kind, message, component=raw.identity, location=raw.location)
            )

        overlap = [identity for identity in raw.modules if identity in raw.excludes]
        if overlap:
            problem(
                DiagnosticKind.MALFORMED_COMPONENT,
                f"{raw.identity} includes and excludes modules at the same time: "
                f"{', '.join(overlap)}",
            )

        modules: list[ModuleContribution] = []
        for identity in raw.modules:
            declaration = self._index.lookup(identity)
            if declaration is None or declaration.kind is not DeclarationKind.MODULE:
                problem(
                    DiagnosticKind.MALFORMED_COMPONENT,
                    f"{raw.identity} includes {identity}, which is not a known module",
                )
                continue
            module = self._module_contribution(declaration, scope, raw.identity, diagnostics)
            if module is not None:
                modules.append(module)

        for identity in raw.excludes:
            declaration = self._index.lookup(identity)
            if declaration is None:
                problem(
                    DiagnosticKind.MALFORMED_COMPONENT,
                    f"Could not determine the scope of the excluded class {identity} "
                    f"in {raw.identity}",
                )
            elif declaration.scope != scope:
                problem(
                    DiagnosticKind.SCOPE_MISMATCH,
                    f"{raw.identity} with scope {scope} wants to exclude {identity} with scope "
                    f"{declaration.scope}. The exclusion must use the same scope.",
                )

        seen_names: set[str] = set()
        for accessor in raw.accessors:
            if accessor.name in seen_names:
                problem(
                    DiagnosticKind.MALFORMED_COMPONENT,
                    f"{raw.identity} declares accessor {accessor.name} more than once",
                )
            seen_names.add(accessor.name)

        seen_keys: set[BindingKey] = set()
        for parameter in raw.instance_parameters:
            if parameter.key in seen_keys:
                problem(
                    DiagnosticKind.MALFORMED_COMPONENT,
                    f"{raw.identity} receives instance parameter {parameter.key} more than once",
                )
            seen_keys.add(parameter.key)

        component = Component(
            identity=raw.identity,
            scope=scope,
            instance_parameters=raw.instance_parameters,
            accessors=raw.accessors,
            modules=tuple(modules),
            excludes=raw.excludes,
            location=raw.location,
        )
        return component, problems

    def _module_contribution(
        self,
        declaration: RawDeclaration,
        scope: Scope,
        included_by: str | None,
        diagnostics: list[Diagnostic],
    ) -> ModuleContribution | None:
        bindings: list[Binding] = []
        for provision in declaration.provisions:
            problem = _provision_problem(provision)
            if problem is not None:
                diagnostics.append(
                    self._malformed(declaration, f"Module {declaration.identity}: {problem}")
                )
                return None
            bindings.append(_provision_binding(declaration, provision))

        return ModuleContribution(
            declaration.identity, scope, tuple(bindings), included_by, declaration.location
        )

    @staticmethod
    def _malformed(declaration: RawDeclaration, message: str) -> Diagnostic:
        return Diagnostic(
            DiagnosticKind.MALFORMED_CONTRIBUTION, message, location=declaration.location
        )


def _provision_problem(provision: RawProvision) -> str | None:
    if not provision.method:
        return "a provider method has no name"
    if not provision.provided_type:
        return f"provider method {provision.method} does not declare a provided type"
    if provision.alias and len(provision.dependencies) != 1:
        return f"alias {provision.method} must take exactly one parameter"
    map_key_problem = _map_key_problem(provision.map_key)
    if map_key_problem is not None:
        return f"provider method {provision.method}: {map_key_problem}"
    return None


def _map_key_problem(map_key: MapKey | None) -> str | None:
    if map_key is None:
        return None
    if map_key.is_class:
        if not isinstance(map_key.value, str) or "." not in map_key.value:
            return f"class map key {map_key.value!r} is not a dotted class name"
        return None
    if type(map_key.value) not in (str, int, bool):
        return f"map key {map_key.value!r} is not a str, int or bool literal"
    return None


def _provision_binding(declaration: RawDeclaration, provision: RawProvision) -> Binding:
    assert provision.method is not None and provision.provided_type is not None
    construction = (
        ConstructionStrategy.alias()
        if provision.alias
        else ConstructionStrategy.provider_function(declaration.identity, provision.method)
    )
    return Binding(
        key=BindingKey.of(provision.provided_type, provision.qualifier),
        identity=f"{declaration.identity}.{provision.method}",
        origin=declaration.identity,
        construction=construction,
        dependencies=provision.dependencies,
        multibinding=provision.multibinding or provision.map_key is not None,
        priority=Priority.NORMAL,
        lifetime_scope=provision.lifetime_scope,
        location=provision.location or declaration.location,
        map_key=provision.map_key,
    )
