"""
Diagnostics and exceptions produced while merging.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .keys import BindingKey


class DiagnosticKind(Enum):
    """Kinds of problems reported to the host."""

    CONFLICTING_REPLACEMENT = "conflicting-replacement"
    DUPLICATE_BINDING = "duplicate-binding"
    MISSING_DEPENDENCY = "missing-dependency"
    ILLEGAL_CYCLE = "illegal-cycle"
    SCOPE_MISMATCH = "scope-mismatch"
    MALFORMED_CONTRIBUTION = "malformed-contribution"
    MALFORMED_COMPONENT = "malformed-component"


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    """A single problem found while collecting, resolving or validating."""

    kind: DiagnosticKind
    message: str
    binding_key: BindingKey | None = None
    component: str | None = None
    location: str | None = None
    severity: Severity = Severity.ERROR

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def __str__(self) -> str:
        location_str = f"{self.location}: " if self.location else ""
        return f"{location_str}{self.severity.value}: [{self.kind.value}] {self.message}"


class MergeError(Exception):
    """Base class for errors raised by the merge engine."""


class DeclarationIndexMissingError(MergeError):
    """Raised when a merge request is started without a declaration index."""

    def __init__(self) -> None:
        super().__init__("A declaration index is required to run a merge request")


class GraphValidationError(MergeError):
    """Raised when a failed validation result is unwrapped."""

    def __init__(self, component: str, diagnostics: Iterable[Diagnostic]):
        self.component = component
        self.diagnostics = list(diagnostics)
        details = "\n".join(f"  - {diagnostic}" for diagnostic in self.diagnostics)
        super().__init__(
            f"Graph of {component} has {len(self.diagnostics)} problem(s):\n{details}"
        )


class EmissionConflictError(MergeError):
    """Raised when a unit is emitted twice with different content."""

    def __init__(self, target_package: str, unit_name: str):
        self.target_package = target_package
        self.unit_name = unit_name
        super().__init__(
            f"Unit {target_package}.{unit_name} was already emitted with different content"
        )


class IllegalStateTransitionError(MergeError):
    """Raised when a merge request moves between states out of order."""

    def __init__(self, current: object, requested: object):
        self.current = current
        self.requested = requested
        super().__init__(f"Illegal merge state transition: {current} -> {requested}")
