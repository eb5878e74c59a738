from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .actions import ResolvedReadQuery
from .catalog import InventoryRow

if TYPE_CHECKING:
    from .inventory_store import InventoryStore

LOW_STOCK_CHART_LIMIT = 10
SNAPSHOT_CHART_LIMIT = 12


@dataclass
class ReadOutcome:
    message: str
    rows: List[Dict[str, Any]] = field(default_factory=list)
    chart: Optional[Dict[str, Any]] = None

    def payload(self) -> Dict[str, Any]:
        """JSON shape stored on the run and returned as readResult."""
        data: Dict[str, Any] = {"rows": self.rows}
        if self.chart is not None:
            data["chartData"] = self.chart
        return data


def _stock_row(row: InventoryRow) -> Dict[str, Any]:
    return {
        "location": row.location_name,
        "product": row.product_name,
        "sku": row.sku,
        "quantity": row.quantity,
        "threshold": row.threshold,
    }


def _bar(label: str, data: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"type": "bar", "label": label, "data": data}


def low_stock(rows: List[InventoryRow]) -> ReadOutcome:
    low = [
        {
            "product": row.product_name,
            "sku": row.sku,
            "location": row.location_name,
            "quantity": row.quantity,
            "threshold": row.threshold,
        }
        for row in rows
        if row.quantity <= row.threshold
    ]
    if not low:
        return ReadOutcome(message="No low-stock items found.")
    chart = _bar(
        "Low Stock Items",
        [
            {"name": item["product"], "quantity": item["quantity"], "threshold": item["threshold"]}
            for item in low[:LOW_STOCK_CHART_LIMIT]
        ],
    )
    return ReadOutcome(message=f"Found {len(low)} low-stock item(s).", rows=low, chart=chart)


def inventory_summary(rows: List[InventoryRow]) -> ReadOutcome:
    # Categories keep first-seen order.
    by_category: "OrderedDict[str, int]" = OrderedDict()
    total = 0
    for row in rows:
        total += row.quantity
        category = row.category or "Uncategorized"
        by_category[category] = by_category.get(category, 0) + row.quantity

    category_rows = [{"category": category, "quantity": quantity} for category, quantity in by_category.items()]
    chart = {
        "type": "pie",
        "label": "Stock by Category",
        "data": [{"name": item["category"], "value": item["quantity"]} for item in category_rows],
    }
    return ReadOutcome(
        message=f"Inventory summary: {len(rows)} rows, {total} total units.",
        rows=category_rows,
        chart=chart,
    )


def stock_by_product(rows: List[InventoryRow], product_id: Optional[str]) -> ReadOutcome:
    stock = [_stock_row(row) for row in rows if row.product_id == product_id]
    label = f"{stock[0]['product'] if stock else 'Product'} Stock"
    chart = _bar(
        label,
        [{"name": item["location"], "quantity": item["quantity"], "threshold": item["threshold"]} for item in stock],
    )
    return ReadOutcome(message=f"Stock-by-product returned {len(stock)} location row(s).", rows=stock, chart=chart)


def location_snapshot(rows: List[InventoryRow], location_id: Optional[str]) -> ReadOutcome:
    snapshot = [_stock_row(row) for row in rows if row.location_id == location_id]
    label = f"{snapshot[0]['location'] if snapshot else 'Location'} Snapshot"
    chart = _bar(
        label,
        [
            {"name": item["product"], "quantity": item["quantity"], "threshold": item["threshold"]}
            for item in snapshot[:SNAPSHOT_CHART_LIMIT]
        ],
    )
    return ReadOutcome(message=f"Location snapshot returned {len(snapshot)} product row(s).", rows=snapshot, chart=chart)


def execute_read_action(store: "InventoryStore", workspace_id: str, action: ResolvedReadQuery) -> ReadOutcome:
    """Purpose: Answer a read intent from the inventory-catalog projection.
    Inputs/Outputs: Inputs are the store, workspace id, and resolved read query;
        output is a ReadOutcome with rows and optional chart data.
    Side Effects / State: One read query; no writes.
    Dependencies: InventoryStore.list_inventory_rows and the per-intent projections.
    Failure Modes: Store errors propagate as StoreError.
    If Removed: Read prompts cannot be answered.
    Testing Notes: Each projection is a pure function over InventoryRow lists.
    """
    rows = store.list_inventory_rows(workspace_id)
    if action.intent == "low_stock":
        return low_stock(rows)
    if action.intent == "inventory_summary":
        return inventory_summary(rows)
    if action.intent == "stock_by_product":
        return stock_by_product(rows, action.product_id)
    return location_snapshot(rows, action.location_id)
