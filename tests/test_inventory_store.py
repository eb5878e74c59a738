import pytest

from storesync.errors import AlreadyExistsError, InsufficientStockError, RecordNotFoundError, StoreError

from conftest import WORKSPACE


def _quantity(store, product_id, location_id):
    level = store.find_inventory_item(WORKSPACE, product_id, location_id)
    return None if level is None else level.quantity


def test_catalog_listing_is_workspace_scoped(store, seeded):
    store.insert_product("other-ws", "Foreign", "FOR-1", "Misc", 1)
    assert {product.name for product in store.list_products(WORKSPACE)} == {"Widget", "Gadget"}
    assert {location.name for location in store.list_locations(WORKSPACE)} == {"Warehouse 1", "Store 2"}


def test_duplicate_inventory_pair_raises(store, seeded):
    with pytest.raises(AlreadyExistsError, match="already exists"):
        store.insert_inventory(WORKSPACE, seeded["widget"], seeded["warehouse"], 1)


def test_inventory_threshold_defaults_to_product(store, seeded):
    store.insert_inventory(WORKSPACE, seeded["gadget"], seeded["store"], 3)
    assert store.find_inventory_item(WORKSPACE, seeded["gadget"], seeded["store"]).threshold == 10


def test_duplicate_sku_raises(store, seeded):
    with pytest.raises(AlreadyExistsError, match='SKU "WID-001"'):
        store.insert_product(WORKSPACE, "Widget Copy", "WID-001", "Hardware", 5)


def test_sale_decrements_and_records_order(store, seeded):
    order_id = store.create_order_and_apply_inventory(
        WORKSPACE, seeded["gadget"], seeded["warehouse"], "sale", 4, "ai", "note"
    )
    assert _quantity(store, seeded["gadget"], seeded["warehouse"]) == 16
    orders = store.list_orders(WORKSPACE)
    assert [(order.id, order.type, order.quantity, order.source) for order in orders] == [
        (order_id, "sale", 4, "ai")
    ]


def test_failed_sale_leaves_no_order(store, seeded):
    with pytest.raises(InsufficientStockError, match="Current QTY is 5 and order is 6."):
        store.create_order_and_apply_inventory(
            WORKSPACE, seeded["widget"], seeded["warehouse"], "sale", 6, "ai", "note"
        )
    assert _quantity(store, seeded["widget"], seeded["warehouse"]) == 5
    assert store.list_orders(WORKSPACE) == []


def test_restock_requires_existing_row(store, seeded):
    with pytest.raises(RecordNotFoundError):
        store.create_order_and_apply_inventory(WORKSPACE, seeded["widget"], seeded["store"], "restock", 2, "ai", "n")
    assert store.list_orders(WORKSPACE) == []


def test_transfer_moves_stock_and_provisions_destination(store, seeded):
    store.create_transfer_and_move_inventory(
        WORKSPACE, seeded["gadget"], seeded["warehouse"], seeded["store"], 7, "move", "ai"
    )
    assert _quantity(store, seeded["gadget"], seeded["warehouse"]) == 13
    assert _quantity(store, seeded["gadget"], seeded["store"]) == 7
    (order,) = store.list_orders(WORKSPACE)
    assert order.type == "transfer"
    assert order.to_location_id == seeded["store"]


def test_failed_transfer_rolls_back_destination(store, seeded):
    with pytest.raises(InsufficientStockError):
        store.create_transfer_and_move_inventory(
            WORKSPACE, seeded["widget"], seeded["warehouse"], seeded["store"], 50, "move", "ai"
        )
    assert _quantity(store, seeded["widget"], seeded["store"]) is None


def test_archive_soft_deletes_and_drops_inventory(store, seeded):
    assert store.archive_product(WORKSPACE, seeded["widget"])
    widget = next(product for product in store.list_products(WORKSPACE) if product.id == seeded["widget"])
    assert widget.is_active is False
    assert _quantity(store, seeded["widget"], seeded["warehouse"]) is None
    assert not store.archive_product(WORKSPACE, "missing")


def test_inventory_rows_join_catalog(store, seeded):
    rows = store.list_inventory_rows(WORKSPACE)
    assert [(row.product_name, row.location_name, row.quantity) for row in rows] == [
        ("Gadget", "Warehouse 1", 20),
        ("Widget", "Warehouse 1", 5),
    ]


def test_unknown_order_source_or_type_is_refused(store, seeded):
    with pytest.raises(StoreError, match='Unsupported order source "web".'):
        store.create_order_and_apply_inventory(WORKSPACE, seeded["widget"], seeded["warehouse"], "sale", 1, "web", "n")
    with pytest.raises(StoreError, match='Unsupported order source "web".'):
        store.create_transfer_and_move_inventory(
            WORKSPACE, seeded["widget"], seeded["warehouse"], seeded["store"], 1, "move", "web"
        )
    with pytest.raises(StoreError, match='Unsupported order type "transfer".'):
        store.create_order_and_apply_inventory(WORKSPACE, seeded["widget"], seeded["warehouse"], "transfer", 1, "ai", "n")
    assert _quantity(store, seeded["widget"], seeded["warehouse"]) == 5
    assert store.list_orders(WORKSPACE) == []
