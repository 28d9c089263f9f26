"""
Contribution records extracted from the declaration index, and components.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .bindings import Binding, Dependency
from .keys import BindingKey, Scope


@dataclass(frozen=True)
class ModuleContribution:
    """A named group of bindings contributed to a scope."""

    identity: str
    scope: Scope
    bindings: tuple[Binding, ...] = ()
    included_by: str | None = None
    location: str | None = None

    def __str__(self) -> str:
        via = f" (included by {self.included_by})" if self.included_by else ""
        return f"module {self.identity}{via}"


@dataclass(frozen=True)
class BindingContribution:
    """A single binding contributed to a scope outside of any module."""

    identity: str
    scope: Scope
    binding: Binding
    location: str | None = None

    def __str__(self) -> str:
        return f"binding {self.identity}"


@dataclass(frozen=True)
class ReplacesDirective:
    """``source`` supersedes every module or binding named in ``targets``."""

    source: str
    scope: Scope
    targets: tuple[str, ...]
    location: str | None = None

    def __str__(self) -> str:
        return f"{self.source} replaces [{', '.join(self.targets)}]"


@dataclass(frozen=True)
class ExcludesDirective:
    """
    Removes every module or binding named in ``targets``.

    A directive with ``component`` set only applies to that component.
    """

    source: str
    scope: Scope
    targets: tuple[str, ...]
    component: str | None = None
    location: str | None = None

    def applies_to(self, component: Component) -> bool:
        return self.component is None or self.component == component.identity

    def __str__(self) -> str:
        target = f" for {self.component}" if self.component else ""
        return f"{self.source} excludes [{', '.join(self.targets)}]{target}"


@dataclass(frozen=True)
class InterfaceContribution:
    """
    Accessors contributed to every component of a scope.

    Merged components subclass each surviving interface and expose its
    accessors next to their own.
    """

    identity: str
    scope: Scope
    accessors: tuple[Accessor, ...] = ()
    location: str | None = None

    def __str__(self) -> str:
        return f"interface {self.identity}"


Contribution = Union[
    ModuleContribution,
    BindingContribution,
    ReplacesDirective,
    ExcludesDirective,
    InterfaceContribution,
]


@dataclass(frozen=True)
class Accessor:
    """An exposed request of a component: a method name returning ``key``."""

    name: str
    key: BindingKey


@dataclass(frozen=True)
class Component:
    """An assembly point declaring which bindings must ultimately be reachable."""

    identity: str
    scope: Scope
    instance_parameters: tuple[Dependency, ...] = ()
    accessors: tuple[Accessor, ...] = ()
    modules: tuple[ModuleContribution, ...] = ()
    excludes: tuple[str, ...] = ()
    location: str | None = None

    @property
    def simple_name(self) -> str:
        return self.identity.rsplit(".", 1)[-1]

    @property
    def package(self) -> str:
        return self.identity.rpartition(".")[0]

    def provides_instance(self, key: BindingKey) -> bool:
        """Check whether the component's factory signature supplies ``key``."""
        return any(parameter.key == key for parameter in self.instance_parameters)

    def __str__(self) -> str:
        return self.identity
