"""
Chibi Izumi Merge - compile-time merging of scattered dependency injection contributions.

This library provides:
- A declaration index fed in rounds by a host front-end
- Collection of module, binding and exclusion contributions per scope
- Graph resolution with replacements, exclusions, priorities and multibindings
- Validation reporting missing, duplicate, cyclic and mis-scoped bindings
- Deterministic generation of provider factories and merged components
"""

from .collector import Collection, ContributionCollector
from .config import SynthesisOptions
from .driver import ComponentOutcome, ComponentStateMachine, MergeDriver, MergeResult, MergeState
from .index import (
    DeclarationIndex,
    DeclarationKind,
    InMemoryDeclarationIndex,
    RawComponent,
    RawDeclaration,
    RawProvision,
)
from .model import (
    UNSCOPED,
    Accessor,
    Binding,
    BindingKey,
    Component,
    ConstructionStrategy,
    DeclarationIndexMissingError,
    Dependency,
    DependencyKind,
    Diagnostic,
    DiagnosticKind,
    EmissionConflictError,
    GraphValidationError,
    IllegalStateTransitionError,
    InterfaceContribution,
    MapKey,
    MergedGraph,
    MergeError,
    Priority,
    Scope,
    ValidatedGraph,
)
from .resolver import GraphResolver
from .sink import EmissionSink, InMemorySink
from .synthesizer import FactoryRef, FactorySynthesizer, GeneratedUnit, UnitKind
from .validator import ValidationResult, Validator

__all__ = [
    "Accessor",
    "Binding",
    "BindingKey",
    "Collection",
    "Component",
    "ComponentOutcome",
    "ComponentStateMachine",
    "ConstructionStrategy",
    "ContributionCollector",
    "DeclarationIndex",
    "DeclarationIndexMissingError",
    "DeclarationKind",
    "Dependency",
    "DependencyKind",
    "Diagnostic",
    "DiagnosticKind",
    "EmissionConflictError",
    "EmissionSink",
    "FactoryRef",
    "FactorySynthesizer",
    "GeneratedUnit",
    "GraphResolver",
    "GraphValidationError",
    "IllegalStateTransitionError",
    "InMemoryDeclarationIndex",
    "InMemorySink",
    "InterfaceContribution",
    "MapKey",
    "MergeDriver",
    "MergeError",
    "MergeResult",
    "MergeState",
    "MergedGraph",
    "Priority",
    "RawComponent",
    "RawDeclaration",
    "RawProvision",
    "Scope",
    "SynthesisOptions",
    "UNSCOPED",
    "UnitKind",
    "ValidatedGraph",
    "ValidationResult",
    "Validator",
]
