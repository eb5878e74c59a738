from __future__ import annotations

import logging
import random
import string
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from .actions import (
    ResolvedAction,
    ResolvedInventoryCreateEntry,
    ResolvedInventorySetQuantity,
    ResolvedLocationCreate,
    ResolvedLocationDeactivate,
    ResolvedLocationUpdate,
    ResolvedProductArchive,
    ResolvedProductCreate,
    ResolvedProductUpdate,
    ResolvedRestockOrder,
    ResolvedTransferOrder,
)
from .catalog import CatalogProduct, CatalogSnapshot
from .errors import AlreadyExistsError, RecordNotFoundError, StoreError
from .utils import normalize_ref

if TYPE_CHECKING:
    from .inventory_store import InventoryStore

logger = logging.getLogger("storesync.executor")

ORDER_SOURCE = "ai"
SKU_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


@dataclass
class ExecutionOutcome:
    message: str
    affected: Dict[str, Any] = field(default_factory=dict)


def generate_sku(name: str, products: List[CatalogProduct], rng: Optional[random.Random] = None) -> str:
    """Purpose: Build a catalog-unique SKU from a product name.
    Inputs/Outputs: Inputs are the name, existing products, optional RNG; output is
        "<INITIALS>-<4 random uppercase alphanumerics>".
    Side Effects / State: Consumes randomness.
    Dependencies: normalize_ref for the uniqueness comparison.
    Failure Modes: None; a name without letters falls back to the "SKU" prefix.
    If Removed: product.create without an SKU cannot execute.
    Testing Notes: Pass a seeded Random to make the suffix deterministic.
    """
    rng = rng or random.Random()
    base = "".join(chunk[0].upper() for chunk in name.split())[:4] or "SKU"
    taken = {normalize_ref(product.sku) for product in products}
    while True:
        candidate = f"{base}-{''.join(rng.choice(SKU_SUFFIX_ALPHABET) for _ in range(4))}"
        if normalize_ref(candidate) not in taken:
            return candidate


def _set_fields(**values: Any) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _product_create(store, workspace_id: str, action: ResolvedProductCreate, catalog: CatalogSnapshot) -> ExecutionOutcome:
    sku = (action.sku or "").strip() or generate_sku(action.name, catalog.products)
    product_id = store.insert_product(workspace_id, action.name, sku, action.category, action.threshold)
    return ExecutionOutcome(
        message=f'Product "{action.name}" created successfully.',
        affected={"productId": product_id, "sku": sku},
    )


def _product_update(store, workspace_id: str, action: ResolvedProductUpdate, catalog: CatalogSnapshot) -> ExecutionOutcome:
    existing = catalog.product_by_id(action.product_id)
    if existing is None:
        raise RecordNotFoundError("Product not found in current workspace.")
    changes = _set_fields(
        name=action.name,
        sku=action.sku,
        category=action.category,
        threshold=action.threshold,
        is_active=action.is_active,
    )
    if not store.update_product(workspace_id, action.product_id, changes):
        raise RecordNotFoundError("Product not found in current workspace.")
    return ExecutionOutcome(
        message=f'Product "{existing.name}" updated successfully.',
        affected={"productId": action.product_id},
    )


def _product_archive(store, workspace_id: str, action: ResolvedProductArchive, catalog: CatalogSnapshot) -> ExecutionOutcome:
    if not store.archive_product(workspace_id, action.product_id):
        raise RecordNotFoundError("Product archive operation did not affect any records.")
    return ExecutionOutcome(
        message="Product archived successfully.",
        affected={"productId": action.product_id, "archived": True},
    )


def _location_create(store, workspace_id: str, action: ResolvedLocationCreate, catalog: CatalogSnapshot) -> ExecutionOutcome:
    location_id = store.insert_location(workspace_id, action.name, action.type, action.city)
    return ExecutionOutcome(
        message=f'Location "{action.name}" created successfully.',
        affected={"locationId": location_id},
    )


def _location_update(store, workspace_id: str, action: ResolvedLocationUpdate, catalog: CatalogSnapshot) -> ExecutionOutcome:
    existing = catalog.location_by_id(action.location_id)
    if existing is None:
        raise RecordNotFoundError("Location not found in current workspace.")
    changes = _set_fields(name=action.name, type=action.type, city=action.city, is_active=action.is_active)
    if not store.update_location(workspace_id, action.location_id, changes):
        raise RecordNotFoundError("Location not found in current workspace.")
    return ExecutionOutcome(
        message=f'Location "{existing.name}" updated successfully.',
        affected={"locationId": action.location_id},
    )


def _location_deactivate(
    store, workspace_id: str, action: ResolvedLocationDeactivate, catalog: CatalogSnapshot
) -> ExecutionOutcome:
    existing = catalog.location_by_id(action.location_id)
    if existing is None or not store.update_location(workspace_id, action.location_id, {"is_active": False}):
        raise RecordNotFoundError("Location not found in current workspace.")
    return ExecutionOutcome(
        message=f'Location "{existing.name}" deactivated successfully.',
        affected={"locationId": action.location_id, "isActive": False},
    )


def _inventory_entry(
    store, workspace_id: str, action: ResolvedInventoryCreateEntry, catalog: CatalogSnapshot
) -> ExecutionOutcome:
    store.insert_inventory(workspace_id, action.product_id, action.location_id, action.quantity)
    return ExecutionOutcome(
        message="Inventory entry created successfully.",
        affected={"productId": action.product_id, "locationId": action.location_id, "quantity": action.quantity},
    )


def _inventory_set(
    store, workspace_id: str, action: ResolvedInventorySetQuantity, catalog: CatalogSnapshot
) -> ExecutionOutcome:
    if not store.update_inventory_quantity(workspace_id, action.product_id, action.location_id, action.quantity):
        raise RecordNotFoundError("No inventory entry exists for this product at this location.")
    return ExecutionOutcome(
        message="Inventory quantity updated successfully.",
        affected={"productId": action.product_id, "locationId": action.location_id, "quantity": action.quantity},
    )


def ensure_inventory_row(store: "InventoryStore", workspace_id: str, product_id: str, location_id: str) -> None:
    """Insert a zero-quantity row unless one exists; losing an insert race counts as success."""
    if store.find_inventory_item(workspace_id, product_id, location_id) is not None:
        return
    try:
        store.insert_inventory(workspace_id, product_id, location_id, 0)
    except AlreadyExistsError:
        logger.debug("workspace=%s inventory row already provisioned", workspace_id)


def _sale_or_restock(store, workspace_id: str, action, catalog: CatalogSnapshot) -> ExecutionOutcome:
    is_restock = isinstance(action, ResolvedRestockOrder)
    if is_restock:
        ensure_inventory_row(store, workspace_id, action.product_id, action.location_id)
    order_type = "restock" if is_restock else "sale"
    order_id = store.create_order_and_apply_inventory(
        workspace_id,
        action.product_id,
        action.location_id,
        order_type,
        action.quantity,
        ORDER_SOURCE,
        action.note,
    )
    return ExecutionOutcome(
        message=f"{order_type.capitalize()} order created successfully.",
        affected={
            "orderId": order_id,
            "productId": action.product_id,
            "locationId": action.location_id,
            "quantity": action.quantity,
        },
    )


def _transfer(store, workspace_id: str, action: ResolvedTransferOrder, catalog: CatalogSnapshot) -> ExecutionOutcome:
    order_id = store.create_transfer_and_move_inventory(
        workspace_id,
        action.product_id,
        action.from_location_id,
        action.to_location_id,
        action.quantity,
        action.note,
        ORDER_SOURCE,
    )
    return ExecutionOutcome(
        message="Transfer order created successfully.",
        affected={
            "orderId": order_id,
            "productId": action.product_id,
            "fromLocationId": action.from_location_id,
            "toLocationId": action.to_location_id,
            "quantity": action.quantity,
        },
    )


EXECUTORS: Dict[str, Callable[..., ExecutionOutcome]] = {
    "product.create": _product_create,
    "product.update": _product_update,
    "product.archive": _product_archive,
    "location.create": _location_create,
    "location.update": _location_update,
    "location.deactivate": _location_deactivate,
    "inventory.create_entry": _inventory_entry,
    "inventory.set_quantity": _inventory_set,
    "order.create_sale": _sale_or_restock,
    "order.create_restock": _sale_or_restock,
    "order.create_transfer": _transfer,
}


def execute_mutating_action(
    store: "InventoryStore",
    workspace_id: str,
    action: ResolvedAction,
    catalog: CatalogSnapshot,
) -> ExecutionOutcome:
    """Purpose: Apply exactly one validated mutating action to the store.
    Inputs/Outputs: Inputs are the store, workspace id, resolved action, and the
        snapshot fetched for this execute; output is an ExecutionOutcome.
    Side Effects / State: One store operation (restock may first provision a row).
    Dependencies: EXECUTORS table and InventoryStore mutations.
    Failure Modes: Store failures propagate as StoreError subclasses; nothing retries.
    If Removed: Confirmed runs can never take effect.
    Testing Notes: Affected maps use camelCase keys for direct API output.
    """
    executor = EXECUTORS.get(action.kind)
    if executor is None:
        raise StoreError(f'Action "{action.kind}" is not a mutating action.')
    outcome = executor(store, workspace_id, action, catalog)
    logger.info("workspace=%s kind=%s executed", workspace_id, action.kind)
    return outcome
