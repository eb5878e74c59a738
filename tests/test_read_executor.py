from storesync.actions import ResolvedReadQuery
from storesync.catalog import InventoryRow
from storesync.read_executor import execute_read_action, location_snapshot

from conftest import WORKSPACE


def _row(index, quantity, threshold=10, category="General"):
    return InventoryRow(
        product_id=f"p{index}",
        location_id="l1",
        quantity=quantity,
        threshold=threshold,
        product_name=f"Item {index}",
        sku=f"IT-{index}",
        category=category,
        location_name="Depot",
        city="Pune",
    )


def test_low_stock_returns_rows_and_chart(store, seeded):
    outcome = execute_read_action(store, WORKSPACE, ResolvedReadQuery(intent="low_stock", summary="s"))
    assert outcome.message == "Found 1 low-stock item(s)."
    assert outcome.rows == [
        {"product": "Widget", "sku": "WID-001", "location": "Warehouse 1", "quantity": 5, "threshold": 10}
    ]
    payload = outcome.payload()
    assert payload["chartData"]["type"] == "bar"
    assert payload["chartData"]["data"] == [{"name": "Widget", "quantity": 5, "threshold": 10}]


def test_low_stock_with_nothing_low_has_no_chart(store, seeded):
    store.update_inventory_quantity(WORKSPACE, seeded["widget"], seeded["warehouse"], 50)
    outcome = execute_read_action(store, WORKSPACE, ResolvedReadQuery(intent="low_stock", summary="s"))
    assert outcome.message == "No low-stock items found."
    assert outcome.payload() == {"rows": []}


def test_inventory_summary_groups_by_category(store, seeded):
    outcome = execute_read_action(store, WORKSPACE, ResolvedReadQuery(intent="inventory_summary", summary="s"))
    assert outcome.message == "Inventory summary: 2 rows, 25 total units."
    assert sorted(outcome.rows, key=lambda row: row["category"]) == [
        {"category": "Electronics", "quantity": 20},
        {"category": "Hardware", "quantity": 5},
    ]
    assert outcome.chart["type"] == "pie"


def test_stock_by_product_filters_one_product(store, seeded):
    outcome = execute_read_action(
        store,
        WORKSPACE,
        ResolvedReadQuery(intent="stock_by_product", product_id=seeded["gadget"], summary="s"),
    )
    assert [row["product"] for row in outcome.rows] == ["Gadget"]
    assert outcome.chart["label"] == "Gadget Stock"


def test_location_snapshot_chart_is_capped():
    rows = [_row(index, quantity=index) for index in range(15)]
    outcome = location_snapshot(rows, "l1")
    assert len(outcome.rows) == 15
    assert len(outcome.chart["data"]) == 12
    assert outcome.chart["label"] == "Depot Snapshot"
