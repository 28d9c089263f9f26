"""
Scope and BindingKey definitions for contribution merging.
"""

from __future__ import annotations

from dataclasses import dataclass

_UNSCOPED_NAME = "<unscoped>"


@dataclass(frozen=True)
class Scope:
    """An opaque marker partitioning bindings and components into independent graphs."""

    name: str

    @classmethod
    def unscoped(cls) -> Scope:
        """Return the sentinel scope used by declarations that name no scope."""
        return UNSCOPED

    @property
    def is_unscoped(self) -> bool:
        return self.name == _UNSCOPED_NAME

    @property
    def simple_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]

    def __str__(self) -> str:
        return self.name


UNSCOPED = Scope(_UNSCOPED_NAME)


@dataclass(frozen=True)
class BindingKey:
    """
    Identity of an injectable value within a scope.

    A multibound key stands for the collection built from every multibinding
    contribution of ``type_name`` (and ``qualifier``): a set, or a dict when
    ``map_key_type`` names the type of the map keys.
    """

    type_name: str
    qualifier: str | None = None
    multibound: bool = False
    map_key_type: str | None = None

    @classmethod
    def of(cls, type_name: str, qualifier: str | None = None) -> BindingKey:
        """Create a key for a single binding of the given type."""
        return cls(type_name, qualifier)

    @classmethod
    def set_of(cls, type_name: str, qualifier: str | None = None) -> BindingKey:
        """Create the multibound key collecting elements of the given type."""
        return cls(type_name, qualifier, multibound=True)

    @classmethod
    def map_of(
        cls, type_name: str, key_type: str = "str", qualifier: str | None = None
    ) -> BindingKey:
        """Create the multibound key collecting elements of the given type into a dict."""
        return cls(type_name, qualifier, multibound=True, map_key_type=key_type)

    @property
    def is_map(self) -> bool:
        return self.multibound and self.map_key_type is not None

    @property
    def simple_name(self) -> str:
        return self.type_name.rsplit(".", 1)[-1]

    def element_key(self) -> BindingKey:
        """The key of one element of a multibound set or map."""
        return BindingKey(self.type_name, self.qualifier)

    def __str__(self) -> str:
        if self.is_map:
            type_str = f"dict[{self.map_key_type}, {self.type_name}]"
        elif self.multibound:
            type_str = f"set[{self.type_name}]"
        else:
            type_str = self.type_name
        qualifier_str = f" @{self.qualifier}" if self.qualifier else ""
        return f"{type_str}{qualifier_str}"
