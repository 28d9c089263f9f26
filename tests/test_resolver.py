#!/usr/bin/env python3
"""
Tests for resolving contributions into merged graphs.
"""

import unittest

from izumi.merge import (
    Accessor,
    BindingKey,
    ContributionCollector,
    Dependency,
    DiagnosticKind,
    GraphResolver,
    InMemoryDeclarationIndex,
    MapKey,
    Priority,
    RawComponent,
    RawDeclaration,
    RawProvision,
    Scope,
)

APP = Scope("app.AppScope")
OTHER = Scope("app.OtherScope")


def provides(identity, *types, scope=APP, **kwargs):
    """A module providing each of ``types`` through a provider method."""
    provisions = [RawProvision(f"provide_{t.rsplit('.', 1)[-1].lower()}", t) for t in types]
    return RawDeclaration.module(identity, scope, provisions, **kwargs)


def component(identity="app.AppComponent", **kwargs):
    return RawComponent(identity, APP, **kwargs)


def resolve(declarations, components=None, scope=APP):
    index = InMemoryDeclarationIndex(declarations, components or [component()])
    collection = ContributionCollector(index).collect(scope)
    return GraphResolver().resolve(collection)


class TestModuleResolution(unittest.TestCase):
    """Test the final module list and binding set of a component."""

    def test_modules_in_discovery_order(self):
        """Test that modules keep discovery order rather than sorted order."""
        (graph,) = resolve(
            [
                provides("app.network.NetworkModule", "app.network.Api"),
                provides("app.storage.StorageModule", "app.storage.Db"),
                provides("app.analytics.AnalyticsModule", "app.analytics.Tracker"),
            ]
        )

        self.assertEqual(
            graph.module_identities,
            [
                "app.network.NetworkModule",
                "app.storage.StorageModule",
                "app.analytics.AnalyticsModule",
            ],
        )
        self.assertEqual(
            set(graph.bindings),
            {
                BindingKey.of("app.network.Api"),
                BindingKey.of("app.storage.Db"),
                BindingKey.of("app.analytics.Tracker"),
            },
        )

    def test_component_modules_come_first(self):
        """Test that modules listed on the component precede scope contributions."""
        (graph,) = resolve(
            [
                provides("app.network.NetworkModule", "app.network.Api"),
                provides("app.storage.StorageModule", "app.storage.Db"),
            ],
            [component(modules=("app.storage.StorageModule",))],
        )

        self.assertEqual(
            graph.module_identities, ["app.storage.StorageModule", "app.network.NetworkModule"]
        )
        self.assertEqual(graph.binding_order[0].key, BindingKey.of("app.storage.Db"))

    def test_one_graph_per_component(self):
        """Test resolving every component of a scope."""
        graphs = resolve(
            [provides("app.network.NetworkModule", "app.network.Api")],
            [component("app.FirstComponent"), component("app.SecondComponent")],
        )

        self.assertEqual(
            [g.component.identity for g in graphs], ["app.FirstComponent", "app.SecondComponent"]
        )

    def test_resolution_is_idempotent(self):
        """Test that resolving unchanged input twice yields equal graphs."""
        declarations = [
            provides("app.network.NetworkModule", "app.network.Api"),
            provides(
                "app.FakeNetworkModule", "app.network.Api", replaces=["app.network.NetworkModule"]
            ),
            RawDeclaration.binding("app.RealDb", APP, "app.Db"),
        ]

        self.assertEqual(resolve(declarations), resolve(declarations))


class TestReplacements(unittest.TestCase):
    """Test replacement precedence."""

    def test_replacement_wins(self):
        """Test that a replaced module and its bindings disappear."""
        (graph,) = resolve(
            [
                provides("app.network.NetworkModule", "app.network.Api"),
                provides("app.storage.StorageModule", "app.storage.Db"),
                provides(
                    "app.FakeNetworkModule",
                    "app.network.Api",
                    replaces=["app.network.NetworkModule"],
                ),
            ]
        )

        self.assertEqual(
            graph.module_identities, ["app.storage.StorageModule", "app.FakeNetworkModule"]
        )
        api = graph.bindings[BindingKey.of("app.network.Api")]
        self.assertEqual(api.origin, "app.FakeNetworkModule")
        self.assertEqual(graph.duplicates, ())

    def test_binding_replaces_binding(self):
        """Test that a contributed binding can replace another one."""
        (graph,) = resolve(
            [
                RawDeclaration.binding("app.RealApi", APP, "app.Api"),
                RawDeclaration.binding("app.FakeApi", APP, "app.Api", replaces=["app.RealApi"]),
            ]
        )

        self.assertEqual(graph.bindings[BindingKey.of("app.Api")].identity, "app.FakeApi")
        self.assertEqual(graph.duplicates, ())

    def test_excluded_replacement_is_inactive(self):
        """Test that excluding the replacer restores the replaced module."""
        (graph,) = resolve(
            [
                provides("app.network.NetworkModule", "app.network.Api"),
                provides(
                    "app.FakeNetworkModule",
                    "app.network.Api",
                    replaces=["app.network.NetworkModule"],
                ),
            ],
            [component(excludes=("app.FakeNetworkModule",))],
        )

        self.assertEqual(graph.module_identities, ["app.network.NetworkModule"])

    def test_conflicting_replacements(self):
        """Test that two replacers claiming one target are reported."""
        (graph,) = resolve(
            [
                provides("app.network.NetworkModule", "app.network.Api"),
                provides("app.FakeModuleA", "app.FakeA", replaces=["app.network.NetworkModule"]),
                provides("app.FakeModuleB", "app.FakeB", replaces=["app.network.NetworkModule"]),
            ]
        )

        self.assertEqual(len(graph.replacement_conflicts), 1)
        conflict = graph.replacement_conflicts[0]
        self.assertEqual(conflict.target, "app.network.NetworkModule")
        self.assertEqual(conflict.replacers, ("app.FakeModuleA", "app.FakeModuleB"))
        self.assertNotIn("app.network.NetworkModule", graph.module_identities)

    def test_included_modules_follow_their_parent(self):
        """Test that removing a module removes what it included."""
        (graph,) = resolve(
            [
                provides("app.OuterModule", "app.Api", includes=["lib.InnerModule"]),
                provides("lib.InnerModule", "lib.Db", scope=OTHER),
                provides("app.FakeOuterModule", "app.Api", replaces=["app.OuterModule"]),
            ]
        )

        self.assertEqual(graph.module_identities, ["app.FakeOuterModule"])
        self.assertNotIn(BindingKey.of("lib.Db"), graph.bindings)


class TestExclusions(unittest.TestCase):
    """Test exclusion directives."""

    def test_component_exclusion(self):
        """Test that a component can exclude a contributed binding."""
        (graph,) = resolve(
            [
                RawDeclaration.binding("app.RealApi", APP, "app.Api"),
                RawDeclaration.binding("app.RealDb", APP, "app.Db"),
            ],
            [component(excludes=("app.RealDb",))],
        )

        self.assertEqual(list(graph.bindings), [BindingKey.of("app.Api")])

    def test_exclusion_for_one_component(self):
        """Test that a targeted exclusion leaves other components alone."""
        first, second = resolve(
            [
                provides("app.network.NetworkModule", "app.network.Api"),
                RawDeclaration.exclusion(
                    "app.TestExclusions",
                    APP,
                    ["app.network.NetworkModule"],
                    component="app.TestComponent",
                ),
            ],
            [component("app.AppComponent"), component("app.TestComponent")],
        )

        self.assertEqual(first.module_identities, ["app.network.NetworkModule"])
        self.assertEqual(second.module_identities, [])

    def test_exclusion_from_replaced_source_is_inactive(self):
        """Test that an exclusion declared by a replaced module does not apply."""
        (graph,) = resolve(
            [
                provides(
                    "app.DevModule",
                    "app.DevTools",
                    replaces=["app.ExclusionsModule"],
                ),
                RawDeclaration.exclusion("app.ExclusionsModule", APP, ["app.RealApi"]),
                RawDeclaration.binding("app.RealApi", APP, "app.Api"),
            ]
        )

        self.assertIn(BindingKey.of("app.Api"), graph.bindings)


class TestBindingSelection(unittest.TestCase):
    """Test priorities, duplicates and multibindings."""

    def test_higher_priority_wins(self):
        """Test that the highest priority contributed binding is chosen."""
        (graph,) = resolve(
            [
                RawDeclaration.binding("app.RealApi", APP, "app.Api"),
                RawDeclaration.binding("app.FastApi", APP, "app.Api", priority=Priority.HIGH),
            ]
        )

        self.assertEqual(graph.bindings[BindingKey.of("app.Api")].identity, "app.FastApi")
        self.assertEqual(graph.duplicates, ())
        self.assertEqual(len(graph.binding_order), 1)

    def test_equal_priority_is_duplicate(self):
        """Test that equal priorities do not resolve a conflict."""
        (graph,) = resolve(
            [
                RawDeclaration.binding("app.RealApi", APP, "app.Api", priority=Priority.HIGH),
                RawDeclaration.binding("app.OtherApi", APP, "app.Api", priority=Priority.HIGH),
            ]
        )

        self.assertEqual(len(graph.duplicates), 1)
        self.assertEqual(graph.duplicates[0].sources, ["app.RealApi", "app.OtherApi"])

    def test_module_bindings_are_not_arbitrated(self):
        """Test that priorities never shadow a module provider method."""
        (graph,) = resolve(
            [
                provides("app.network.NetworkModule", "app.Api"),
                RawDeclaration.binding("app.FastApi", APP, "app.Api", priority=Priority.HIGHEST),
            ]
        )

        self.assertEqual(len(graph.duplicates), 1)
        self.assertEqual(
            graph.duplicates[0].sources, ["app.network.NetworkModule.provide_api", "app.FastApi"]
        )

    def test_qualified_bindings_do_not_clash(self):
        """Test that qualifiers separate bindings of one type."""
        (graph,) = resolve(
            [
                RawDeclaration.binding("app.PrimaryDb", APP, "app.Db", qualifier="primary"),
                RawDeclaration.binding("app.ReplicaDb", APP, "app.Db", qualifier="replica"),
            ]
        )

        self.assertEqual(graph.duplicates, ())
        self.assertEqual(len(graph.bindings), 2)

    def test_multibindings_collect_into_set(self):
        """Test that multibinding contributions never count as duplicates."""
        (graph,) = resolve(
            [
                RawDeclaration.binding("app.AuthPlugin", APP, "app.Plugin", multibinding=True),
                RawDeclaration.binding("app.MetricsPlugin", APP, "app.Plugin", multibinding=True),
                RawDeclaration.binding(
                    "app.Registry", APP, "app.Registry", [Dependency.on_set("app.Plugin")]
                ),
            ]
        )

        set_key = BindingKey.set_of("app.Plugin")
        self.assertEqual(graph.duplicates, ())
        self.assertEqual(
            [b.identity for b in graph.multibindings[set_key]],
            ["app.AuthPlugin", "app.MetricsPlugin"],
        )
        self.assertTrue(graph.has_key(set_key))
        self.assertFalse(graph.has_key(BindingKey.set_of("app.Missing")))

    def test_map_multibindings_collect_into_dict(self):
        """Test that keyed elements feed the dict key of their map key type."""
        (graph,) = resolve(
            [
                RawDeclaration.binding(
                    "app.AuthPlugin", APP, "app.Plugin", map_key=MapKey.of("auth")
                ),
                RawDeclaration.binding("app.AuditPlugin", APP, "app.Plugin", multibinding=True),
                RawDeclaration.binding(
                    "app.MetricsPlugin", APP, "app.Plugin", map_key=MapKey.of("metrics")
                ),
            ]
        )

        map_key = BindingKey.map_of("app.Plugin")
        self.assertEqual(
            [b.identity for b in graph.multibindings[map_key]],
            ["app.AuthPlugin", "app.MetricsPlugin"],
        )
        self.assertEqual(
            [b.identity for b in graph.multibindings[BindingKey.set_of("app.Plugin")]],
            ["app.AuditPlugin"],
        )
        self.assertFalse(graph.has_key(BindingKey.map_of("app.Plugin", "int")))


def api_access(identity="app.ApiAccess", name="api", key="app.Api", **kwargs):
    return RawDeclaration.interface(
        identity, APP, [Accessor(name, BindingKey.of(key))], **kwargs
    )


class TestContributedInterfaces(unittest.TestCase):
    """Test merging the accessors of contributed interfaces into components."""

    def test_accessors_are_merged(self):
        """Test that interface accessors follow the component's own accessors."""
        (graph,) = resolve(
            [api_access(), api_access("app.DbAccess", "db", "app.Db")],
            [component(accessors=(Accessor("config", BindingKey.of("app.Config")),))],
        )

        self.assertEqual([a.name for a in graph.component.accessors], ["config", "api", "db"])
        self.assertEqual(graph.interface_identities, ["app.ApiAccess", "app.DbAccess"])
        self.assertEqual(graph.diagnostics, ())

    def test_repeated_accessor_is_exposed_once(self):
        """Test that an accessor already declared with the same key is not repeated."""
        (graph,) = resolve(
            [api_access()],
            [component(accessors=(Accessor("api", BindingKey.of("app.Api")),))],
        )

        self.assertEqual([a.name for a in graph.component.accessors], ["api"])

    def test_excluded_interface(self):
        """Test that an excluded interface contributes nothing to the component."""
        first, second = resolve(
            [api_access()],
            [
                component("app.AppComponent"),
                component("app.TestComponent", excludes=("app.ApiAccess",)),
            ],
        )

        self.assertEqual([a.name for a in first.component.accessors], ["api"])
        self.assertEqual(second.component.accessors, ())
        self.assertEqual(second.interfaces, ())

    def test_replaced_interface(self):
        """Test that a replacing interface takes the place of the replaced one."""
        (graph,) = resolve(
            [
                api_access(),
                api_access(
                    "app.testing.FakeApiAccess",
                    key="app.testing.FakeApi",
                    replaces=["app.ApiAccess"],
                ),
            ]
        )

        self.assertEqual(graph.interface_identities, ["app.testing.FakeApiAccess"])
        self.assertEqual(
            [a.key for a in graph.component.accessors], [BindingKey.of("app.testing.FakeApi")]
        )
        self.assertEqual(graph.diagnostics, ())

    def test_conflicting_accessor(self):
        """Test that one accessor name bound to two keys is reported."""
        (graph,) = resolve(
            [api_access(), api_access("app.OtherAccess", key="app.OtherApi")],
        )

        (problem,) = graph.diagnostics
        self.assertIs(problem.kind, DiagnosticKind.MALFORMED_COMPONENT)
        self.assertIn("accessor api as both app.Api and app.OtherApi", problem.message)
        self.assertIn("app.OtherAccess", problem.message)


if __name__ == "__main__":
    unittest.main()
