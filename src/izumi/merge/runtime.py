"""
Provider protocol targeted by generated factories and merged components.

This module only holds the small surface generated code calls into; it does
not cache instances or manage lifecycles.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Generic, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")
K = TypeVar("K")
V = TypeVar("V")


@runtime_checkable
class Provider(Protocol[T]):
    """Anything that can produce an instance on demand."""

    def get(self) -> T: ...


class InstanceProvider(Generic[T]):
    """Provider returning an instance handed to a merged component."""

    def __init__(self, instance: T):
        self._instance = instance

    def get(self) -> T:
        return self._instance


class DelegateProvider(Generic[T]):
    """
    Provider whose target is attached after construction.

    Merged components use it to close cycles that go through a deferred
    (provider or lazy) dependency.
    """

    def __init__(self) -> None:
        self._delegate: Provider[T] | None = None

    def set_delegate(self, delegate: Provider[T]) -> None:
        if self._delegate is not None:
            raise RuntimeError("DelegateProvider already has a delegate")
        self._delegate = delegate

    def get(self) -> T:
        if self._delegate is None:
            raise RuntimeError("DelegateProvider was used before its delegate was set")
        return self._delegate.get()


class SetProvider(Generic[T]):
    """Provider collecting the instances of several element providers into a set."""

    def __init__(self, providers: Iterable[Provider[T]]):
        self._providers = list(providers)

    def get(self) -> set[T]:
        return {provider.get() for provider in self._providers}


class MapProvider(Generic[K, V]):
    """Provider building a dict from the element providers of a map multibinding."""

    def __init__(self, providers: Mapping[K, Provider[V]]):
        self._providers = dict(providers)

    def get(self) -> dict[K, V]:
        return {key: provider.get() for key, provider in self._providers.items()}
