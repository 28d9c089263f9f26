"""
Binding definitions and construction strategies.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum, IntEnum

from .keys import BindingKey, Scope


class DependencyKind(Enum):
    """How a dependency is requested by its consumer."""

    INSTANCE = "instance"
    PROVIDER = "provider"
    LAZY = "lazy"

    @property
    def is_deferred(self) -> bool:
        """Deferred requests receive a provider and therefore break cycles."""
        return self is not DependencyKind.INSTANCE


class Priority(IntEnum):
    """Priority of contributed bindings competing for the same key."""

    NORMAL = 0
    HIGH = 1
    HIGHEST = 2

    @classmethod
    def describe(cls, value: int) -> str:
        try:
            return cls(value).name
        except ValueError:
            return str(value)


@dataclass(frozen=True)
class Dependency:
    """A required BindingKey together with the parameter that receives it."""

    key: BindingKey
    name: str | None = None
    kind: DependencyKind = DependencyKind.INSTANCE

    @classmethod
    def on(
        cls,
        type_name: str,
        qualifier: str | None = None,
        *,
        name: str | None = None,
        kind: DependencyKind = DependencyKind.INSTANCE,
    ) -> Dependency:
        """Depend on a single binding of the given type."""
        return cls(BindingKey.of(type_name, qualifier), name, kind)

    @classmethod
    def on_set(
        cls, type_name: str, qualifier: str | None = None, *, name: str | None = None
    ) -> Dependency:
        """Depend on the multibound set of the given type."""
        return cls(BindingKey.set_of(type_name, qualifier), name)

    @classmethod
    def on_map(
        cls,
        type_name: str,
        key_type: str = "str",
        qualifier: str | None = None,
        *,
        name: str | None = None,
    ) -> Dependency:
        """Depend on the multibound dict of the given type, keyed by ``key_type``."""
        return cls(BindingKey.map_of(type_name, key_type, qualifier), name)

    @property
    def is_deferred(self) -> bool:
        return self.kind.is_deferred

    def __str__(self) -> str:
        if self.kind is DependencyKind.INSTANCE:
            return str(self.key)
        return f"{self.kind.value}[{self.key}]"


@dataclass(frozen=True)
class MapKey:
    """
    The key a map multibinding element is stored under.

    ``value`` is a ``str``, ``int`` or ``bool`` literal, or the dotted name of a
    class when ``is_class`` is set.
    """

    value: str | int | bool
    is_class: bool = False

    @classmethod
    def of(cls, value: str | int | bool) -> MapKey:
        return cls(value)

    @classmethod
    def of_class(cls, class_name: str) -> MapKey:
        return cls(class_name, is_class=True)

    @property
    def type_name(self) -> str:
        """Type of the map keys this key belongs to."""
        return "type" if self.is_class else type(self.value).__name__

    def __str__(self) -> str:
        return str(self.value) if self.is_class else repr(self.value)


class ConstructionKind(Enum):
    """Types of construction supported by generated factories."""

    CONSTRUCTOR = "constructor"
    PROVIDER_FUNCTION = "provider_function"
    ALIAS = "alias"


@dataclass(frozen=True)
class ConstructionStrategy:
    """
    The construction logic of one binding.

    The same strategy renders the call used by a factory's ``get()`` path and
    by its ``new_instance()`` helper, so construction is described exactly once.
    """

    kind: ConstructionKind
    owner: str | None = None
    member: str | None = None

    @classmethod
    def constructor(cls, class_name: str) -> ConstructionStrategy:
        """Instantiate ``class_name`` with the resolved dependencies."""
        return cls(ConstructionKind.CONSTRUCTOR, class_name)

    @classmethod
    def provider_function(cls, module_name: str, method: str) -> ConstructionStrategy:
        """Call ``method`` on the module class ``module_name``."""
        return cls(ConstructionKind.PROVIDER_FUNCTION, module_name, method)

    @classmethod
    def alias(cls) -> ConstructionStrategy:
        """Return the single resolved dependency unchanged."""
        return cls(ConstructionKind.ALIAS)

    @property
    def import_target(self) -> str | None:
        """Dotted name of the symbol the rendered call refers to."""
        return self.owner

    def render(self, owner_alias: str | None, arguments: Sequence[str]) -> str:
        """Render the construction call with ``arguments`` as positional arguments."""
        if self.kind is ConstructionKind.ALIAS:
            if len(arguments) != 1:
                raise ValueError(
                    f"Alias construction takes exactly one argument, got {len(arguments)}"
                )
            return arguments[0]

        callee = owner_alias or self.owner
        if self.kind is ConstructionKind.PROVIDER_FUNCTION:
            callee = f"{callee}.{self.member}"
        return f"{callee}({', '.join(arguments)})"

    def __str__(self) -> str:
        if self.kind is ConstructionKind.ALIAS:
            return "alias"
        if self.kind is ConstructionKind.PROVIDER_FUNCTION:
            return f"{self.owner}.{self.member}()"
        return f"{self.owner}()"


@dataclass(frozen=True)
class Binding:
    """A recipe producing one instance for a BindingKey."""

    key: BindingKey
    identity: str
    origin: str
    construction: ConstructionStrategy
    dependencies: tuple[Dependency, ...] = ()
    multibinding: bool = False
    priority: int = Priority.NORMAL
    lifetime_scope: Scope | None = None
    location: str | None = None
    contributed: bool = False
    map_key: MapKey | None = None

    @property
    def target_key(self) -> BindingKey:
        """The key this binding satisfies; multibinding elements feed the set or map key."""
        if self.multibinding and self.map_key is not None:
            return BindingKey.map_of(
                self.key.type_name, self.map_key.type_name, self.key.qualifier
            )
        if self.multibinding:
            return BindingKey.set_of(self.key.type_name, self.key.qualifier)
        return self.key

    def __str__(self) -> str:
        kind = "multibinding" if self.multibinding else "binding"
        return f"{self.target_key} -> {self.construction} ({kind} {self.identity})"
