#!/usr/bin/env python3
"""
Tests for validating merged graphs.
"""

import unittest

from izumi.merge import (
    Accessor,
    BindingKey,
    ContributionCollector,
    Dependency,
    DependencyKind,
    DiagnosticKind,
    GraphResolver,
    GraphValidationError,
    InMemoryDeclarationIndex,
    MapKey,
    RawComponent,
    RawDeclaration,
    RawProvision,
    Scope,
    Validator,
)
from izumi.merge.model import ElementNode

APP = Scope("app.AppScope")


def validate(declarations, **component_kwargs):
    component = RawComponent("app.AppComponent", APP, **component_kwargs)
    index = InMemoryDeclarationIndex(declarations, [component])
    (graph,) = GraphResolver().resolve(ContributionCollector(index).collect(APP))
    return Validator().validate(graph)


def kinds(result):
    return [d.kind for d in result.diagnostics]


def bar_requiring_foo():
    return RawDeclaration.binding("app.Bar", APP, "app.Bar", [Dependency.on("app.Foo")])


class TestMissingDependencies(unittest.TestCase):
    """Test missing dependency detection."""

    def test_missing_dependency_names_key(self):
        """Test that the diagnostic names the missing key and the component."""
        result = validate([bar_requiring_foo()])

        self.assertFalse(result.ok)
        self.assertEqual(kinds(result), [DiagnosticKind.MISSING_DEPENDENCY])
        diagnostic = result.diagnostics[0]
        self.assertEqual(diagnostic.binding_key, BindingKey.of("app.Foo"))
        self.assertEqual(diagnostic.component, "app.AppComponent")
        self.assertIn("app.Foo", diagnostic.message)
        self.assertIn("app.Bar", diagnostic.message)

    def test_instance_parameter_satisfies_dependency(self):
        """Test that instance parameters of the component count as bindings."""
        result = validate(
            [RawDeclaration.binding("app.Bar", APP, "app.Bar", [Dependency.on("app.Config")])],
            instance_parameters=(Dependency.on("app.Config", name="config"),),
        )

        self.assertTrue(result.ok)
        self.assertEqual(result.diagnostics, ())

    def test_missing_accessor_key(self):
        """Test that every exposed request must be satisfiable."""
        result = validate([], accessors=(Accessor("api", BindingKey.of("app.Api")),))

        self.assertEqual(kinds(result), [DiagnosticKind.MISSING_DEPENDENCY])
        self.assertIn("accessor api", result.diagnostics[0].message)

    def test_empty_multibound_set_is_missing(self):
        """Test that a set nobody contributes to is missing."""
        result = validate(
            [
                RawDeclaration.binding(
                    "app.Registry", APP, "app.Registry", [Dependency.on_set("app.Plugin")]
                )
            ]
        )

        self.assertEqual(result.diagnostics[0].binding_key, BindingKey.set_of("app.Plugin"))

    def test_empty_map_is_missing(self):
        """Test that a dict nobody contributes to is missing."""
        result = validate(
            [],
            accessors=(Accessor("handlers", BindingKey.map_of("app.Handler", "type")),),
        )

        self.assertEqual(kinds(result), [DiagnosticKind.MISSING_DEPENDENCY])
        self.assertIn("dict[type, app.Handler]", result.diagnostics[0].message)

    def test_every_missing_dependency_is_reported(self):
        """Test that all problems are reported in one pass."""
        result = validate(
            [
                RawDeclaration.binding("app.Bar", APP, "app.Bar", [Dependency.on("app.Foo")]),
                RawDeclaration.binding(
                    "app.Baz", APP, "app.Baz", [Dependency.on("app.Foo"), Dependency.on("app.Qux")]
                ),
            ]
        )

        self.assertEqual(len(result.diagnostics), 3)


class TestDuplicates(unittest.TestCase):
    """Test duplicate binding detection."""

    def test_duplicate_names_both_sources(self):
        """Test one diagnostic per duplicated key naming every source."""
        result = validate(
            [
                RawDeclaration.module(
                    "app.NetworkModule", APP, [RawProvision("provide_api", "app.Api")]
                ),
                RawDeclaration.module(
                    "app.LegacyModule", APP, [RawProvision("legacy_api", "app.Api")]
                ),
            ]
        )

        self.assertEqual(kinds(result), [DiagnosticKind.DUPLICATE_BINDING])
        message = result.diagnostics[0].message
        self.assertIn("app.NetworkModule.provide_api", message)
        self.assertIn("app.LegacyModule.legacy_api", message)
        self.assertIn("app.AppComponent", message)

    def test_instance_parameter_and_binding(self):
        """Test that a key bound both by a module and an instance parameter is a duplicate."""
        result = validate(
            [RawDeclaration.binding("app.FileConfig", APP, "app.Config")],
            instance_parameters=(Dependency.on("app.Config"),),
        )

        self.assertEqual(kinds(result), [DiagnosticKind.DUPLICATE_BINDING])

    def test_conflicting_replacement(self):
        """Test that a target replaced twice fails validation."""
        result = validate(
            [
                RawDeclaration.module("app.NetworkModule", APP),
                RawDeclaration.module("app.FakeA", APP, replaces=["app.NetworkModule"]),
                RawDeclaration.module("app.FakeB", APP, replaces=["app.NetworkModule"]),
            ]
        )

        self.assertEqual(kinds(result), [DiagnosticKind.CONFLICTING_REPLACEMENT])
        self.assertIn("app.FakeA", result.diagnostics[0].message)
        self.assertIn("app.FakeB", result.diagnostics[0].message)

    def test_repeated_map_key(self):
        """Test that two entries under one map key are duplicates, other keys are not."""
        result = validate(
            [
                RawDeclaration.binding(
                    "app.AuthPlugin", APP, "app.Plugin", map_key=MapKey.of("auth")
                ),
                RawDeclaration.binding(
                    "app.OAuthPlugin", APP, "app.Plugin", map_key=MapKey.of("auth")
                ),
                RawDeclaration.binding(
                    "app.MetricsPlugin", APP, "app.Plugin", map_key=MapKey.of("metrics")
                ),
            ],
            accessors=(Accessor("plugins", BindingKey.map_of("app.Plugin")),),
        )

        self.assertEqual(kinds(result), [DiagnosticKind.DUPLICATE_BINDING])
        message = result.diagnostics[0].message
        self.assertIn("more than one entry for map key 'auth'", message)
        self.assertIn("[app.AuthPlugin, app.OAuthPlugin]", message)
        self.assertNotIn("app.MetricsPlugin", message)


class TestCycles(unittest.TestCase):
    """Test cycle detection."""

    def cycle(self, last_kind=DependencyKind.INSTANCE):
        return [
            RawDeclaration.binding("app.A", APP, "app.A", [Dependency.on("app.B")]),
            RawDeclaration.binding("app.B", APP, "app.B", [Dependency.on("app.C")]),
            RawDeclaration.binding("app.C", APP, "app.C", [Dependency.on("app.A", kind=last_kind)]),
        ]

    def test_cycle_path(self):
        """Test that an eager cycle is reported with its path."""
        result = validate(self.cycle())

        self.assertEqual(kinds(result), [DiagnosticKind.ILLEGAL_CYCLE])
        self.assertIn("app.A -> app.B -> app.C -> app.A", result.diagnostics[0].message)
        self.assertEqual(result.diagnostics[0].binding_key, BindingKey.of("app.A"))

    def test_lazy_edge_breaks_cycle(self):
        """Test that a deferred edge makes the same cycle legal."""
        for kind in (DependencyKind.LAZY, DependencyKind.PROVIDER):
            with self.subTest(kind=kind):
                result = validate(self.cycle(kind))

                self.assertTrue(result.ok)
                order = result.unwrap().wiring_order()
                self.assertEqual(
                    order, [BindingKey.of("app.C"), BindingKey.of("app.B"), BindingKey.of("app.A")]
                )

    def test_self_dependency(self):
        """Test that a binding requiring itself is a cycle."""
        result = validate([RawDeclaration.binding("app.A", APP, "app.A", [Dependency.on("app.A")])])

        self.assertEqual(kinds(result), [DiagnosticKind.ILLEGAL_CYCLE])
        self.assertIn("app.A -> app.A", result.diagnostics[0].message)

    def test_cycle_through_multibinding(self):
        """Test that a cycle going through a set element is reported."""
        result = validate(
            [
                RawDeclaration.binding(
                    "app.Registry", APP, "app.Registry", [Dependency.on_set("app.Plugin")]
                ),
                RawDeclaration.binding(
                    "app.AuthPlugin",
                    APP,
                    "app.Plugin",
                    [Dependency.on("app.Registry")],
                    multibinding=True,
                ),
            ]
        )

        self.assertEqual(kinds(result), [DiagnosticKind.ILLEGAL_CYCLE])
        self.assertEqual(result.diagnostics[0].binding_key, BindingKey.of("app.Registry"))
        element = ElementNode("app.AuthPlugin", BindingKey.set_of("app.Plugin"))
        self.assertIn(str(element), result.diagnostics[0].message)


class TestScopes(unittest.TestCase):
    """Test lifetime scope checks."""

    def test_scope_mismatch(self):
        """Test that bindings scoped to another scope are rejected."""
        result = validate(
            [
                RawDeclaration.binding(
                    "app.Session", APP, "app.Session", lifetime_scope=Scope("app.RequestScope")
                )
            ]
        )

        self.assertEqual(kinds(result), [DiagnosticKind.SCOPE_MISMATCH])
        self.assertIn("app.RequestScope", result.diagnostics[0].message)

    def test_matching_scope(self):
        """Test that bindings scoped to the component's scope are accepted."""
        result = validate(
            [RawDeclaration.binding("app.Session", APP, "app.Session", lifetime_scope=APP)]
        )

        self.assertTrue(result.ok)


class TestValidationResult(unittest.TestCase):
    """Test the validation result contract."""

    def test_unwrap_failure(self):
        """Test that unwrapping a failed result raises with all diagnostics."""
        result = validate([bar_requiring_foo()])

        with self.assertRaises(GraphValidationError) as context:
            result.unwrap()
        self.assertEqual(context.exception.component, "app.AppComponent")
        self.assertEqual(len(context.exception.diagnostics), 1)

    def test_validated_graph_is_unchanged(self):
        """Test that a successful result wraps the graph as it was."""
        result = validate(
            [
                RawDeclaration.binding("app.Api", APP, "app.Api", [Dependency.on("app.Client")]),
                RawDeclaration.binding("app.Client", APP, "app.Client"),
            ]
        )

        validated = result.unwrap()
        self.assertIs(validated.graph, result.graph)
        self.assertEqual(
            validated.wiring_order(), [BindingKey.of("app.Client"), BindingKey.of("app.Api")]
        )

    def test_malformed_component_fails(self):
        """Test that component declaration problems fail the component."""
        result = validate([], excludes=("app.Unknown",))

        self.assertFalse(result.ok)
        self.assertEqual(kinds(result), [DiagnosticKind.MALFORMED_COMPONENT])


if __name__ == "__main__":
    unittest.main()
