"""
Model subpackage containing core data structures and types.

This subpackage contains the fundamental data structures that form the
contribution-merging model, organized to avoid circular dependencies.
"""

from .bindings import (
    Binding,
    ConstructionKind,
    ConstructionStrategy,
    Dependency,
    DependencyKind,
    MapKey,
    Priority,
)
from .contributions import (
    Accessor,
    BindingContribution,
    Component,
    Contribution,
    ExcludesDirective,
    InterfaceContribution,
    ModuleContribution,
    ReplacesDirective,
)
from .diagnostics import (
    DeclarationIndexMissingError,
    Diagnostic,
    DiagnosticKind,
    EmissionConflictError,
    GraphValidationError,
    IllegalStateTransitionError,
    MergeError,
    Severity,
)
from .graph import (
    DuplicateConflict,
    Edge,
    ElementNode,
    GraphNode,
    MergedGraph,
    ReplacementConflict,
    ValidatedGraph,
)
from .keys import UNSCOPED, BindingKey, Scope

__all__ = [
    "Accessor",
    "Binding",
    "BindingContribution",
    "BindingKey",
    "Component",
    "ConstructionKind",
    "ConstructionStrategy",
    "Contribution",
    "DeclarationIndexMissingError",
    "Dependency",
    "DependencyKind",
    "Diagnostic",
    "DiagnosticKind",
    "DuplicateConflict",
    "Edge",
    "ElementNode",
    "EmissionConflictError",
    "ExcludesDirective",
    "GraphNode",
    "GraphValidationError",
    "IllegalStateTransitionError",
    "InterfaceContribution",
    "MapKey",
    "MergeError",
    "MergedGraph",
    "ModuleContribution",
    "Priority",
    "ReplacementConflict",
    "ReplacesDirective",
    "Scope",
    "Severity",
    "UNSCOPED",
    "ValidatedGraph",
]
