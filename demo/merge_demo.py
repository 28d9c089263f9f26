#!/usr/bin/env python3
"""
Demonstration of Chibi Izumi Merge.

This demo shows:
1. Merging modules and contributed bindings of a scope into a component
2. Multibindings collected into a set
3. Replacing and excluding contributions for a test component
4. Diagnostics for a component with a missing dependency
5. Incremental rounds and emission conflicts
"""

import logging

from izumi.merge import (
    Accessor,
    BindingKey,
    Dependency,
    DependencyKind,
    EmissionConflictError,
    InMemoryDeclarationIndex,
    InMemorySink,
    MergeDriver,
    RawComponent,
    RawDeclaration,
    RawProvision,
    Scope,
)

logging.basicConfig(level=logging.INFO, format="%(name)s - %(levelname)s - %(message)s")

SHOP = Scope("shop.ShopScope")
ADMIN = Scope("shop.admin.AdminScope")


def shop_declarations() -> list[RawDeclaration]:
    """Declarations a front-end would discover in the shop codebase."""
    return [
        RawDeclaration.module(
            "shop.payments.PaymentsModule",
            SHOP,
            [
                RawProvision(
                    "provide_gateway",
                    "shop.payments.PaymentGateway",
                    dependencies=(Dependency.on("shop.Config", name="config"),),
                )
            ],
        ),
        RawDeclaration.module(
            "shop.storage.StorageModule",
            SHOP,
            [
                RawProvision(
                    "provide_db",
                    "shop.storage.Db",
                    qualifier="primary",
                    dependencies=(Dependency.on("shop.Config", name="config"),),
                )
            ],
        ),
        RawDeclaration.binding(
            "shop.catalog.Catalog",
            SHOP,
            "shop.catalog.Catalog",
            [Dependency.on("shop.storage.Db", "primary", name="db")],
        ),
        RawDeclaration.binding(
            "shop.plugins.AuditPlugin", SHOP, "shop.plugins.CheckoutPlugin", multibinding=True
        ),
        RawDeclaration.binding(
            "shop.checkout.Checkout",
            SHOP,
            "shop.checkout.Checkout",
            [
                Dependency.on(
                    "shop.payments.PaymentGateway", name="gateway", kind=DependencyKind.PROVIDER
                ),
                Dependency.on("shop.catalog.Catalog", name="catalog"),
                Dependency.on_set("shop.plugins.CheckoutPlugin", name="plugins"),
            ],
        ),
        RawDeclaration.module(
            "shop.testing.FakePaymentsModule",
            None,
            [RawProvision("provide_gateway", "shop.payments.PaymentGateway")],
        ),
        RawDeclaration.binding(
            "shop.admin.Reports",
            ADMIN,
            "shop.admin.Reports",
            [Dependency.on("shop.admin.Exporter", name="exporter")],
        ),
    ]


def shop_components() -> list[RawComponent]:
    checkout = Accessor("checkout", BindingKey.of("shop.checkout.Checkout"))
    config = Dependency.on("shop.Config", name="config")
    return [
        RawComponent(
            "shop.ShopComponent", SHOP, instance_parameters=(config,), accessors=(checkout,)
        ),
        RawComponent(
            "shop.testing.TestShopComponent",
            SHOP,
            modules=("shop.testing.FakePaymentsModule",),
            excludes=("shop.payments.PaymentsModule",),
            instance_parameters=(config,),
            accessors=(checkout,),
        ),
        RawComponent(
            "shop.admin.AdminComponent",
            ADMIN,
            accessors=(Accessor("reports", BindingKey.of("shop.admin.Reports")),),
        ),
    ]


def main():
    """Run the demo."""
    print("=== Chibi Izumi Merge Demo ===\n")

    index = InMemoryDeclarationIndex(shop_declarations(), shop_components())
    sink = InMemorySink()
    driver = MergeDriver(index, sink)

    print("1. Merging the shop scope:")
    print("-" * 30)
    shop = driver.merge(SHOP)
    for outcome in shop.outcomes:
        print(f"{outcome.component.identity}: {outcome.state.value}")
        if outcome.graph is not None:
            print(f"  modules: {', '.join(outcome.graph.module_identities)}")
    print(f"Units emitted: {', '.join(sink.names())}")

    print("\n2. Generated sources:")
    print("-" * 30)
    print(sink.get("shop.checkout", "CheckoutFactory"))
    print(sink.get("shop", "ShopComponent_Merged"))

    print("\n3. Test component with a fake payment gateway:")
    print("-" * 30)
    print(sink.get("shop.testing", "TestShopComponent_Merged"))

    print("\n4. Missing dependency detection:")
    print("-" * 30)
    (admin,) = driver.merge_scopes([ADMIN])
    for diagnostic in admin.all_diagnostics:
        print(f"Caught expected diagnostic: {diagnostic}")

    print("\n5. Incremental rounds:")
    print("-" * 30)
    index.add_round(
        [
            RawDeclaration.binding(
                "shop.plugins.DiscountPlugin",
                SHOP,
                "shop.plugins.CheckoutPlugin",
                multibinding=True,
            )
        ]
    )
    try:
        driver.merge(SHOP)
        print("This shouldn't print - the component changed since the last emission")
    except EmissionConflictError as e:
        print(f"Caught expected emission conflict: {e}")

    fresh = MergeDriver(index)
    result = fresh.merge(SHOP)
    print(f"Fresh build generated {len(result.units)} unit(s):")
    for name in fresh.sink.names():
        print(f"  {name}")

    print("\nDemo completed successfully!")


if __name__ == "__main__":
    main()
