"""
MergeDriver - runs merge requests through collection, resolution, validation and synthesis.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum

from .collector import ContributionCollector
from .config import SynthesisOptions
from .index import DeclarationIndex
from .model import (
    Binding,
    Component,
    Contribution,
    DeclarationIndexMissingError,
    Diagnostic,
    IllegalStateTransitionError,
    MergedGraph,
    Scope,
)
from .resolver import GraphResolver
from .sink import EmissionSink, InMemorySink
from .synthesizer import FactoryRef, FactorySynthesizer, GeneratedUnit
from .validator import Validator

logger = logging.getLogger(__name__)


class MergeState(Enum):
    """Stages a component goes through within one merge request."""

    COLLECTING = "collecting"
    RESOLVING = "resolving"
    VALIDATING = "validating"
    SYNTHESIZING = "synthesizing"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (MergeState.SYNTHESIZING, MergeState.FAILED)


_TRANSITIONS: dict[MergeState, frozenset[MergeState]] = {
    MergeState.COLLECTING: frozenset({MergeState.RESOLVING, MergeState.FAILED}),
    MergeState.RESOLVING: frozenset({MergeState.VALIDATING, MergeState.FAILED}),
    MergeState.VALIDATING: frozenset({MergeState.SYNTHESIZING, MergeState.FAILED}),
    MergeState.SYNTHESIZING: frozenset(),
    MergeState.FAILED: frozenset(),
}


class ComponentStateMachine:
    """Tracks the stage of one component, refusing out-of-order transitions."""

    def __init__(self, component: str):
        self.component = component
        self.state = MergeState.COLLECTING

    def advance(self, state: MergeState) -> None:
        """
        Move to ``state``.

        Raises:
            IllegalStateTransitionError: If ``state`` does not follow the current state
        """
        if state not in _TRANSITIONS[self.state]:
            raise IllegalStateTransitionError(self.state, state)
        logger.debug("%s: %s -> %s", self.component, self.state.value, state.value)
        self.state = state


@dataclass(frozen=True)
class ComponentOutcome:
    """What happened to one component of a merge request."""

    component: Component
    state: MergeState
    diagnostics: tuple[Diagnostic, ...]
    graph: MergedGraph | None = None
    units: tuple[GeneratedUnit, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.state is MergeState.SYNTHESIZING


@dataclass(frozen=True)
class MergeResult:
    """
    Result of merging one scope.

    ``diagnostics`` holds scope-level problems such as filtered malformed
    declarations; component problems live on each outcome. ``units`` lists the
    generated units of every successful component in discovery order, with
    identical repeats removed.
    """

    scope: Scope
    outcomes: tuple[ComponentOutcome, ...]
    diagnostics: tuple[Diagnostic, ...]
    units: tuple[GeneratedUnit, ...]

    @property
    def succeeded(self) -> bool:
        return all(outcome.succeeded for outcome in self.outcomes)

    @property
    def all_diagnostics(self) -> list[Diagnostic]:
        result = list(self.diagnostics)
        for outcome in self.outcomes:
            result.extend(outcome.diagnostics)
        return result

    def outcome_for(self, component: str) -> ComponentOutcome:
        for outcome in self.outcomes:
            if outcome.component.identity == component:
                return outcome
        raise KeyError(component)


class MergeDriver:
    """
    Entry point of the merge engine.

    The driver reads a shared DeclarationIndex and hands generated units to an
    EmissionSink. Each scope is merged independently, so several scopes can be
    processed concurrently; a failing component never prevents the other
    components of its scope from being generated.

    Declarations without a scope are only reported when merging the
    ``UNSCOPED`` sentinel scope; hosts that want them flagged must merge it too.
    """

    def __init__(
        self,
        index: DeclarationIndex | None,
        sink: EmissionSink | None = None,
        options: SynthesisOptions | None = None,
    ):
        """
        Create a new MergeDriver.

        Args:
            index: Declaration index to read contributions and components from
            sink: Destination of generated units, an InMemorySink by default
            options: Code generation options

        Raises:
            DeclarationIndexMissingError: If no index is given
        """
        if index is None:
            raise DeclarationIndexMissingError()
        self.index = index
        self.sink = sink if sink is not None else InMemorySink()
        self.options = options or SynthesisOptions()
        self._collector = ContributionCollector(index)
        self._resolver = GraphResolver()
        self._validator = Validator()
        self._synthesizer = FactorySynthesizer(self.options)

    def prepare(self, scope: Scope) -> MergeResult:
        """
        Merge ``scope`` without emitting anything.

        Factory names are assigned once for the whole scope, so components
        keeping different bindings still agree on the name of every factory.
        """
        collection = self._collector.collect(scope)
        names = self._synthesizer.assign_names(collection.bindings())
        outcomes = tuple(
            self._merge_component(
                collection.contributions,
                component,
                collection.diagnostics_for(component),
                names,
            )
            for component in collection.components
        )
        units = _dedupe_units(unit for outcome in outcomes for unit in outcome.units)
        result = MergeResult(scope, outcomes, collection.diagnostics, units)
        logger.info(
            "Merged scope %s: %d/%d component(s) succeeded, %d unit(s) generated",
            scope,
            sum(1 for outcome in outcomes if outcome.succeeded),
            len(outcomes),
            len(units),
        )
        return result

    def emit(self, result: MergeResult) -> None:
        """Hand every generated unit of ``result`` to the sink, in order."""
        for unit in result.units:
            self.sink.emit(unit.name, unit.source, unit.package)

    def merge(self, scope: Scope) -> MergeResult:
        """Merge ``scope`` and emit its units."""
        result = self.prepare(scope)
        self.emit(result)
        return result

    def merge_scopes(
        self, scopes: Sequence[Scope], max_workers: int | None = None
    ) -> list[MergeResult]:
        """
        Merge independent scopes concurrently.

        Results are returned, and their units emitted, in the order of ``scopes``.
        """
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(self.prepare, scopes))
        for result in results:
            self.emit(result)
        return results

    async def amerge_scopes(self, scopes: Sequence[Scope]) -> list[MergeResult]:
        """Async variant of merge_scopes running each scope in a worker thread."""
        results = await asyncio.gather(
            *(asyncio.to_thread(self.prepare, scope) for scope in scopes)
        )
        for result in results:
            self.emit(result)
        return list(results)

    def _merge_component(
        self,
        contributions: Sequence[Contribution],
        component: Component,
        diagnostics: tuple[Diagnostic, ...],
        names: Mapping[Binding, FactoryRef],
    ) -> ComponentOutcome:
        machine = ComponentStateMachine(component.identity)

        machine.advance(MergeState.RESOLVING)
        graph = self._resolver.resolve_component(contributions, component, diagnostics)

        machine.advance(MergeState.VALIDATING)
        validation = self._validator.validate(graph)
        if validation.validated is None:
            machine.advance(MergeState.FAILED)
            for diagnostic in validation.diagnostics:
                logger.debug("%s: %s", component, diagnostic)
            return ComponentOutcome(component, machine.state, validation.diagnostics, graph)

        machine.advance(MergeState.SYNTHESIZING)
        units = self._synthesizer.synthesize(validation.validated, names)
        return ComponentOutcome(
            component, machine.state, validation.diagnostics, graph, tuple(units)
        )


def _dedupe_units(units: Iterable[GeneratedUnit]) -> tuple[GeneratedUnit, ...]:
    """Drop exact repeats; differing units under one name are kept for the sink to reject."""
    result: list[GeneratedUnit] = []
    seen: set[tuple[str, str, str]] = set()
    for unit in units:
        key = (unit.package, unit.name, unit.source)
        if key not in seen:
            seen.add(key)
            result.append(unit)
    return tuple(result)
