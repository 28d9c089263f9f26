"""
Emission sinks receiving generated units.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator

from .model import EmissionConflictError

logger = logging.getLogger(__name__)


class EmissionSink(ABC):
    """
    Destination for generated source units.

    Implementations must accept the same unit twice when its content is
    unchanged, so repeated builds on identical input are harmless.
    """

    @abstractmethod
    def emit(self, unit_name: str, source_body: str, target_package: str) -> None:
        """
        Accept one generated unit.

        Args:
            unit_name: Name of the generated class, e.g. ``ApiFactory``
            source_body: Complete module source of the unit
            target_package: Dotted package the unit belongs to
        """


class InMemorySink(EmissionSink):
    """
    Sink keeping emitted units in memory, keyed by ``(target_package, unit_name)``.

    Safe to share between threads merging independent scopes.
    """

    def __init__(self) -> None:
        self._units: dict[tuple[str, str], str] = {}
        self._lock = threading.Lock()

    def emit(self, unit_name: str, source_body: str, target_package: str) -> None:
        key = (target_package, unit_name)
        with self._lock:
            existing = self._units.get(key)
            if existing is not None:
                if existing != source_body:
                    raise EmissionConflictError(target_package, unit_name)
                logger.debug("Unit %s.%s re-emitted unchanged", target_package, unit_name)
                return
            self._units[key] = source_body

    def get(self, target_package: str, unit_name: str) -> str | None:
        """Get the source of an emitted unit, or None when it was never emitted."""
        with self._lock:
            return self._units.get((target_package, unit_name))

    def names(self) -> list[str]:
        """Qualified names of every emitted unit, in emission order."""
        with self._lock:
            return [f"{package}.{name}" if package else name for package, name in self._units]

    def __len__(self) -> int:
        with self._lock:
            return len(self._units)

    def __iter__(self) -> Iterator[tuple[str, str, str]]:
        with self._lock:
            items = list(self._units.items())
        for (package, name), source in items:
            yield name, source, package
