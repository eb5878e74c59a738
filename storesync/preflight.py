from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from .actions import (
    ResolvedAction,
    ResolvedInventoryCreateEntry,
    ResolvedInventorySetQuantity,
    ResolvedLocationCreate,
    ResolvedLocationUpdate,
    ResolvedProductCreate,
    ResolvedProductUpdate,
    ResolvedRestockOrder,
    ResolvedTransferOrder,
)
from .catalog import CatalogSnapshot
from .utils import is_whole_number, normalize_ref

if TYPE_CHECKING:
    from .inventory_store import InventoryStore

logger = logging.getLogger("storesync.preflight")


@dataclass
class PreflightResult:
    ok: bool
    message: Optional[str] = None


OK = PreflightResult(ok=True)


def _fail(message: str) -> PreflightResult:
    return PreflightResult(ok=False, message=message)


def _sku_taken(catalog: CatalogSnapshot, sku: str, exclude_id: Optional[str] = None) -> bool:
    target = normalize_ref(sku)
    return any(
        normalize_ref(product.sku) == target and product.id != exclude_id
        for product in catalog.products
    )


def _is_non_negative_int(value: Any) -> bool:
    return is_whole_number(value) and value >= 0


def _check_product_create(action: ResolvedProductCreate, catalog: CatalogSnapshot, stock) -> PreflightResult:
    if not action.name.strip() or not action.category.strip():
        return _fail("Product name and category are required.")
    if not _is_non_negative_int(action.threshold):
        return _fail("Product threshold must be a non-negative integer.")
    if action.sku and _sku_taken(catalog, action.sku):
        return _fail(f'SKU "{action.sku}" already exists in your workspace.')
    return OK


def _check_product_update(action: ResolvedProductUpdate, catalog: CatalogSnapshot, stock) -> PreflightResult:
    if all(
        value is None
        for value in (action.name, action.sku, action.category, action.threshold, action.is_active)
    ):
        return _fail("No product fields were provided for update.")
    if action.threshold is not None and not _is_non_negative_int(action.threshold):
        return _fail("Product threshold must be a non-negative integer.")
    if action.sku and _sku_taken(catalog, action.sku, exclude_id=action.product_id):
        return _fail(f'SKU "{action.sku}" already exists in your workspace.')
    return OK


def _check_location_create(action: ResolvedLocationCreate, catalog: CatalogSnapshot, stock) -> PreflightResult:
    if not action.name.strip() or not action.city.strip():
        return _fail("Location name and city are required.")
    return OK


def _check_location_update(action: ResolvedLocationUpdate, catalog: CatalogSnapshot, stock) -> PreflightResult:
    if all(value is None for value in (action.name, action.type, action.city, action.is_active)):
        return _fail("No location fields were provided for update.")
    return OK


def _check_inventory_entry(action: ResolvedInventoryCreateEntry, catalog: CatalogSnapshot, stock) -> PreflightResult:
    if not is_whole_number(action.quantity) or action.quantity <= 0:
        return _fail("Inventory entry quantity must be greater than zero.")
    return OK


def _check_inventory_set(action: ResolvedInventorySetQuantity, catalog: CatalogSnapshot, stock) -> PreflightResult:
    if not _is_non_negative_int(action.quantity):
        return _fail("Inventory quantity must be a non-negative integer.")
    return OK


def _check_outbound_order(action, catalog: CatalogSnapshot, stock) -> PreflightResult:
    """Purpose: Validate a sale or transfer against live source stock.
    Inputs/Outputs: Inputs are the resolved order, the snapshot, and a stock reader;
        output is a PreflightResult.
    Side Effects / State: One inventory read through the store.
    Dependencies: InventoryStore.find_inventory_item via the stock callable.
    Failure Modes: A missing source row counts as zero available. Store errors propagate.
    If Removed: Sales and transfers could drive inventory negative at the store.
    Testing Notes: Requesting more than available embeds both numbers in the message.
    """
    if not is_whole_number(action.quantity) or action.quantity <= 0:
        return _fail("Order quantity must be greater than zero.")

    # Re-read the live row; the snapshot carries no quantities.
    is_transfer = isinstance(action, ResolvedTransferOrder)
    source_id = action.from_location_id if is_transfer else action.location_id
    level = stock(action.product_id, source_id)
    available = level.quantity if level is not None else 0
    if available < action.quantity:
        label = "Transfer" if is_transfer else "Sale"
        return _fail(f"Current QTY is {available} and order is {action.quantity}. {label} order can't be created.")

    if is_transfer and action.from_location_id == action.to_location_id:
        return _fail("From location and to location must be different for transfer orders.")
    return OK


def _check_restock(action: ResolvedRestockOrder, catalog: CatalogSnapshot, stock) -> PreflightResult:
    if not is_whole_number(action.quantity) or action.quantity <= 0:
        return _fail("Order quantity must be greater than zero.")
    return OK


CHECKS: Dict[str, Callable[..., PreflightResult]] = {
    "product.create": _check_product_create,
    "product.update": _check_product_update,
    "location.create": _check_location_create,
    "location.update": _check_location_update,
    "inventory.create_entry": _check_inventory_entry,
    "inventory.set_quantity": _check_inventory_set,
    "order.create_sale": _check_outbound_order,
    "order.create_transfer": _check_outbound_order,
    "order.create_restock": _check_restock,
}


def preflight_validate(
    store: "InventoryStore",
    workspace_id: str,
    action: ResolvedAction,
    catalog: CatalogSnapshot,
) -> PreflightResult:
    """Purpose: Re-check business invariants for a resolved action against live state.
    Inputs/Outputs: Inputs are the store, workspace id, resolved action, and a fresh
        catalog snapshot; output is a PreflightResult with the violated rule on failure.
    Side Effects / State: May read one inventory row; never writes.
    Dependencies: CHECKS table; kinds without an entry (archive, deactivate, reads) pass.
    Failure Modes: Store read failures propagate as StoreError.
    If Removed: Confirmation could be offered for actions that cannot succeed.
    Testing Notes: Called at plan time and again at execute time with a new snapshot.
    """
    check = CHECKS.get(action.kind)
    if check is None:
        return OK

    def stock(product_id: str, location_id: str):
        return store.find_inventory_item(workspace_id, product_id, location_id)

    result = check(action, catalog, stock)
    if not result.ok:
        logger.info("workspace=%s kind=%s preflight failed: %s", workspace_id, action.kind, result.message)
    return result
