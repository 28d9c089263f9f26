"""
Declaration index: the read-only view over declarations discovered by the host front-end.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from .model import UNSCOPED, Accessor, Dependency, MapKey, Priority, Scope


class DeclarationKind(Enum):
    """Kinds of declarations the front-end reports."""

    MODULE = "module"
    BINDING = "binding"
    EXCLUSION = "exclusion"
    INTERFACE = "interface"


@dataclass(frozen=True)
class RawProvision:
    """A provider method declared on a module."""

    method: str | None
    provided_type: str | None
    qualifier: str | None = None
    dependencies: tuple[Dependency, ...] = ()
    multibinding: bool = False
    alias: bool = False
    lifetime_scope: Scope | None = None
    location: str | None = None
    map_key: MapKey | None = None


@dataclass(frozen=True)
class RawDeclaration:
    """
    One declaration as reported by the front-end.

    Only the fields relevant to ``kind`` are set: modules carry provisions and
    includes, bindings carry a provided type, an implementation and its
    constructor dependencies, exclusions carry targets, interfaces carry
    accessors.
    """

    identity: str
    kind: DeclarationKind
    scope: Scope | None
    provided_type: str | None = None
    implementation: str | None = None
    qualifier: str | None = None
    dependencies: tuple[Dependency, ...] = ()
    multibinding: bool = False
    provisions: tuple[RawProvision, ...] = ()
    includes: tuple[str, ...] = ()
    replaces: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()
    component: str | None = None
    priority: int = Priority.NORMAL
    lifetime_scope: Scope | None = None
    location: str | None = None
    map_key: MapKey | None = None
    accessors: tuple[Accessor, ...] = ()

    @classmethod
    def module(
        cls,
        identity: str,
        scope: Scope | None,
        provisions: Iterable[RawProvision] = (),
        *,
        includes: Iterable[str] = (),
        replaces: Iterable[str] = (),
        location: str | None = None,
    ) -> RawDeclaration:
        """Declare a module contributed to ``scope``."""
        return cls(
            identity,
            DeclarationKind.MODULE,
            scope,
            provisions=tuple(provisions),
            includes=tuple(includes),
            replaces=tuple(replaces),
            location=location,
        )

    @classmethod
    def binding(
        cls,
        identity: str,
        scope: Scope | None,
        provided_type: str | None,
        dependencies: Iterable[Dependency] = (),
        *,
        qualifier: str | None = None,
        multibinding: bool = False,
        replaces: Iterable[str] = (),
        priority: int = Priority.NORMAL,
        lifetime_scope: Scope | None = None,
        location: str | None = None,
        map_key: MapKey | None = None,
    ) -> RawDeclaration:
        """
        Declare the class ``identity`` contributed as a binding of ``provided_type``.

        A ``map_key`` makes the binding an element of the multibound dict of
        ``provided_type`` instead of a set element.
        """
        return cls(
            identity,
            DeclarationKind.BINDING,
            scope,
            provided_type=provided_type,
            implementation=identity,
            qualifier=qualifier,
            dependencies=tuple(dependencies),
            multibinding=multibinding,
            replaces=tuple(replaces),
            priority=priority,
            lifetime_scope=lifetime_scope,
            location=location,
            map_key=map_key,
        )

    @classmethod
    def exclusion(
        cls,
        identity: str,
        scope: Scope | None,
        excludes: Iterable[str],
        *,
        component: str | None = None,
        location: str | None = None,
    ) -> RawDeclaration:
        """Declare an exclusion of modules or bindings, optionally for one component."""
        return cls(
            identity,
            DeclarationKind.EXCLUSION,
            scope,
            excludes=tuple(excludes),
            component=component,
            location=location,
        )

    @classmethod
    def interface(
        cls,
        identity: str,
        scope: Scope | None,
        accessors: Iterable[Accessor] = (),
        *,
        replaces: Iterable[str] = (),
        location: str | None = None,
    ) -> RawDeclaration:
        """Declare an interface whose accessors are merged into every component of ``scope``."""
        return cls(
            identity,
            DeclarationKind.INTERFACE,
            scope,
            accessors=tuple(accessors),
            replaces=tuple(replaces),
            location=location,
        )


@dataclass(frozen=True)
class RawComponent:
    """A component declaration as reported by the front-end."""

    identity: str
    scope: Scope | None
    modules: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()
    instance_parameters: tuple[Dependency, ...] = ()
    accessors: tuple[Accessor, ...] = ()
    location: str | None = None


class DeclarationIndex(ABC):
    """
    Abstract interface for declaration indexes.

    An index is owned by the host and borrowed read-only by a merge request.
    Every query returns declarations in discovery order.
    """

    @abstractmethod
    def contributions_for_scope(self, scope: Scope) -> Sequence[RawDeclaration]:
        """
        Get the declarations contributed to ``scope``.

        Querying the unscoped sentinel returns declarations that name no scope.
        """

    @abstractmethod
    def components_for_scope(self, scope: Scope) -> Sequence[RawComponent]:
        """Get the components declaring ``scope``."""

    @abstractmethod
    def lookup(self, identity: str) -> RawDeclaration | None:
        """Find a declaration by identity regardless of its scope."""

    @abstractmethod
    def scopes(self) -> list[Scope]:
        """Get every scope named by a declaration or a component, in discovery order."""


def _effective_scope(scope: Scope | None) -> Scope:
    return UNSCOPED if scope is None else scope


class InMemoryDeclarationIndex(DeclarationIndex):
    """
    Declaration index kept in memory and filled in rounds.

    Each round may reveal new declarations. A declaration whose identity is
    already known replaces the earlier one in place, so recompiled units keep
    their discovery position.
    """

    def __init__(
        self,
        declarations: Iterable[RawDeclaration] = (),
        components: Iterable[RawComponent] = (),
    ):
        self._declarations: dict[str, RawDeclaration] = {}
        self._components: dict[str, RawComponent] = {}
        self._rounds = 0
        self.add_round(declarations, components)

    @property
    def rounds(self) -> int:
        """Number of rounds added so far."""
        return self._rounds

    def add_round(
        self,
        declarations: Iterable[RawDeclaration] = (),
        components: Iterable[RawComponent] = (),
    ) -> None:
        """Make the declarations and components of one more round visible."""
        for declaration in declarations:
            self._declarations[declaration.identity] = declaration
        for component in components:
            self._components[component.identity] = component
        self._rounds += 1

    def contributions_for_scope(self, scope: Scope) -> list[RawDeclaration]:
        return [
            declaration
            for declaration in self._declarations.values()
            if _effective_scope(declaration.scope) == scope
        ]

    def components_for_scope(self, scope: Scope) -> list[RawComponent]:
        return [
            component
            for component in self._components.values()
            if _effective_scope(component.scope) == scope
        ]

    def lookup(self, identity: str) -> RawDeclaration | None:
        return self._declarations.get(identity)

    def scopes(self) -> list[Scope]:
        result: dict[Scope, None] = {}
        for declaration in self._declarations.values():
            result.setdefault(_effective_scope(declaration.scope), None)
        for component in self._components.values():
            result.setdefault(_effective_scope(component.scope), None)
        return list(result)

    def __len__(self) -> int:
        return len(self._declarations)
