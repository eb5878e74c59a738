from storesync.actions import (
    ProductCreate,
    ReadQuery,
    ResolvedTransferOrder,
    SaleOrder,
    TransferOrder,
)
from storesync.catalog import CatalogLocation, CatalogProduct, CatalogSnapshot
from storesync.resolver import (
    DEFAULT_ORDER_NOTE,
    DEFAULT_THRESHOLD,
    resolve_action,
    resolve_location_ref,
    resolve_product_ref,
)


def _product(index, name, sku):
    return CatalogProduct(id=f"p{index}", name=name, sku=sku, category="General", threshold=10)


def _location(index, name, city="Pune"):
    return CatalogLocation(id=f"l{index}", name=name, type="store", city=city)


def test_exact_sku_beats_substring_matches():
    products = [_product(1, "Widget", "W-1"), _product(2, "Widget Pro", "W-10"), _product(3, "W-1 Spare", "SP-1")]
    resolution = resolve_product_ref("w-1", products)
    assert resolution.status == "resolved"
    assert resolution.value.id == "p1"


def test_exact_name_beats_substring_matches():
    products = [_product(1, "Widget", "A-1"), _product(2, "Widget Pro", "A-2")]
    resolution = resolve_product_ref(" WIDGET ", products)
    assert resolution.resolved
    assert resolution.value.id == "p1"


def test_substring_ambiguity_lists_every_candidate():
    products = [_product(1, "Blue Widget", "B-1"), _product(2, "Red Widget", "R-1")]
    resolution = resolve_product_ref("widget", products)
    assert resolution.status == "ambiguous"
    assert [candidate.id for candidate in resolution.candidates] == ["p1", "p2"]
    assert resolution.message == 'Multiple products match "widget". Please be more specific.'


def test_blank_and_unknown_refs():
    assert resolve_product_ref("   ", [_product(1, "Widget", "W-1")]).status == "not_found"
    missing = resolve_location_ref("Atlantis", [_location(1, "Warehouse 1")])
    assert missing.status == "not_found"
    assert missing.message == 'No location matched "Atlantis".'


def test_location_matches_on_city():
    locations = [_location(1, "Main Store", city="Mumbai"), _location(2, "Depot", city="Pune")]
    assert resolve_location_ref("mumbai", locations).value.id == "l1"


def test_clarification_options_are_capped_at_eight():
    catalog = CatalogSnapshot(products=[_product(i, f"Cable {i}", f"CB-{i}") for i in range(12)])
    outcome = resolve_action(ReadQuery(intent="stock_by_product", product_ref="cable"), catalog)
    assert outcome.action is None
    assert len(outcome.clarification.options) == 8
    assert outcome.clarification.options[0].label == "Cable 0 (CB-0)"
    assert outcome.clarification.options[0].value == 'Use product "CB-0" in this request.'


def test_transfer_clarifies_only_the_failing_lookup():
    catalog = CatalogSnapshot(
        products=[_product(1, "Widget", "W-1")],
        locations=[_location(1, "Warehouse 1"), _location(2, "Store North"), _location(3, "Store South")],
    )
    action = TransferOrder(
        product_ref="Widget", from_location_ref="Warehouse 1", to_location_ref="store", quantity=3
    )
    outcome = resolve_action(action, catalog)
    assert outcome.clarification.message == 'Multiple locations match "store". Please be more specific.'
    assert [option.label for option in outcome.clarification.options] == ["Store North, Pune", "Store South, Pune"]


def test_transfer_resolves_ids_and_default_note():
    catalog = CatalogSnapshot(
        products=[_product(1, "Widget", "W-1")],
        locations=[_location(1, "Warehouse 1"), _location(2, "Store 2")],
    )
    outcome = resolve_action(
        TransferOrder(product_ref="W-1", from_location_ref="Warehouse 1", to_location_ref="Store 2", quantity=3.7),
        catalog,
    )
    assert outcome.action == ResolvedTransferOrder(
        product_id="p1",
        from_location_id="l1",
        to_location_id="l2",
        quantity=3,
        note=DEFAULT_ORDER_NOTE,
        summary='Create transfer order for 3 units of "Widget" from "Warehouse 1" to "Store 2".',
    )


def test_product_create_defaults_threshold_and_warns_without_sku():
    outcome = resolve_action(ProductCreate(name="Lamp", category="Lighting"), CatalogSnapshot())
    assert outcome.action.threshold == DEFAULT_THRESHOLD
    assert outcome.action.warnings == ("SKU missing: an SKU will be generated.",)


def test_sale_keeps_explicit_note():
    catalog = CatalogSnapshot(products=[_product(1, "Widget", "W-1")], locations=[_location(1, "Warehouse 1")])
    outcome = resolve_action(
        SaleOrder(product_ref="widget", location_ref="warehouse", quantity=2, note="walk-in"),
        catalog,
    )
    assert outcome.action.note == "walk-in"
    assert outcome.action.summary == 'Create sale order for 2 units of "Widget" at "Warehouse 1".'


def test_summary_reads_need_no_references():
    outcome = resolve_action(ReadQuery(intent="low_stock"), CatalogSnapshot())
    assert outcome.action.intent == "low_stock"
    assert outcome.action.product_id is None
