from storesync.actions import (
    ResolvedInventoryCreateEntry,
    ResolvedProductCreate,
    ResolvedProductUpdate,
    ResolvedReadQuery,
    ResolvedRestockOrder,
    ResolvedSaleOrder,
    ResolvedTransferOrder,
)
from storesync.preflight import preflight_validate

from conftest import WORKSPACE


def test_sale_beyond_stock_reports_both_quantities(store, seeded, catalog):
    action = ResolvedSaleOrder(
        product_id=seeded["widget"], location_id=seeded["warehouse"], quantity=9, note="n", summary="s"
    )
    result = preflight_validate(store, WORKSPACE, action, catalog)
    assert not result.ok
    assert result.message == "Current QTY is 5 and order is 9. Sale order can't be created."


def test_sale_without_inventory_row_counts_as_zero(store, seeded, catalog):
    action = ResolvedSaleOrder(
        product_id=seeded["widget"], location_id=seeded["store"], quantity=1, note="n", summary="s"
    )
    assert preflight_validate(store, WORKSPACE, action, catalog).message.startswith("Current QTY is 0")


def test_sale_within_stock_passes(store, seeded, catalog):
    action = ResolvedSaleOrder(
        product_id=seeded["widget"], location_id=seeded["warehouse"], quantity=5, note="n", summary="s"
    )
    assert preflight_validate(store, WORKSPACE, action, catalog).ok


def test_transfer_to_same_location_is_rejected(store, seeded, catalog):
    action = ResolvedTransferOrder(
        product_id=seeded["gadget"],
        from_location_id=seeded["warehouse"],
        to_location_id=seeded["warehouse"],
        quantity=2,
        note="n",
        summary="s",
    )
    result = preflight_validate(store, WORKSPACE, action, catalog)
    assert result.message == "From location and to location must be different for transfer orders."


def test_duplicate_sku_is_case_insensitive(store, seeded, catalog):
    action = ResolvedProductCreate(name="Widget 2", category="Hardware", threshold=5, sku="wid-001", summary="s")
    assert preflight_validate(store, WORKSPACE, action, catalog).message == (
        'SKU "wid-001" already exists in your workspace.'
    )


def test_product_update_may_keep_its_own_sku(store, seeded, catalog):
    action = ResolvedProductUpdate(product_id=seeded["widget"], sku="WID-001", summary="s")
    assert preflight_validate(store, WORKSPACE, action, catalog).ok
    empty = ResolvedProductUpdate(product_id=seeded["widget"], summary="s")
    assert preflight_validate(store, WORKSPACE, empty, catalog).message == "No product fields were provided for update."


def test_quantity_rules(store, seeded, catalog):
    entry = ResolvedInventoryCreateEntry(
        product_id=seeded["gadget"], location_id=seeded["store"], quantity=0, summary="s"
    )
    assert preflight_validate(store, WORKSPACE, entry, catalog).message == (
        "Inventory entry quantity must be greater than zero."
    )
    restock = ResolvedRestockOrder(
        product_id=seeded["gadget"], location_id=seeded["store"], quantity=0, note="n", summary="s"
    )
    assert preflight_validate(store, WORKSPACE, restock, catalog).message == "Order quantity must be greater than zero."


def test_reads_always_pass(store, seeded, catalog):
    assert preflight_validate(store, WORKSPACE, ResolvedReadQuery(intent="low_stock", summary="s"), catalog).ok
