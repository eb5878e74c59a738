"""Catalog snapshot records and the per-run fetcher.

The snapshot holds every product and location of a workspace, active or not, so
reference resolution and preflight see the full catalog. It is fetched fresh for
each plan and each execute; nothing is cached between calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from .errors import CatalogUnavailable, StoreError

if TYPE_CHECKING:
    from .inventory_store import InventoryStore

logger = logging.getLogger("storesync.catalog")

LOCATION_TYPES = ("warehouse", "store", "online")


@dataclass
class CatalogProduct:
    """Catalog view of a product row."""
    id: str
    name: str
    sku: str
    category: str
    threshold: int
    is_active: bool = True


@dataclass
class CatalogLocation:
    """Catalog view of a location row."""
    id: str
    name: str
    type: str
    city: str
    is_active: bool = True


@dataclass
class InventoryRow:
    """Inventory row joined with its product and location for read projections."""
    product_id: str
    location_id: str
    quantity: int
    threshold: int
    product_name: str
    sku: str
    category: str
    location_name: str
    city: str


@dataclass
class CatalogSnapshot:
    products: List[CatalogProduct] = field(default_factory=list)
    locations: List[CatalogLocation] = field(default_factory=list)

    def product_by_id(self, product_id: str) -> Optional[CatalogProduct]:
        return next((product for product in self.products if product.id == product_id), None)

    def location_by_id(self, location_id: str) -> Optional[CatalogLocation]:
        return next((location for location in self.locations if location.id == location_id), None)

    def product_hints(self, limit: int = 50) -> List[str]:
        """Purpose: Build bounded "name [sku]" hints for the intent prompt.
        Inputs/Outputs: Input is the hint cap; output is a list of strings.
        Side Effects / State: None.
        Dependencies: Used by build_system_prompt.
        Failure Modes: None; empty catalogs yield an empty list.
        If Removed: The model has no catalog vocabulary to bias references.
        Testing Notes: A catalog of 60 products yields exactly 50 hints.
        """
        return [f"{product.name} [{product.sku}]" for product in self.products[:limit]]

    def location_hints(self, limit: int = 50) -> List[str]:
        return [f"{location.name} ({location.type})" for location in self.locations[:limit]]


def fetch_catalog(store: "InventoryStore", workspace_id: str) -> CatalogSnapshot:
    """Purpose: Load every product and location of a workspace for one plan/execute step.
    Inputs/Outputs: Inputs are the store and workspace id; output is a CatalogSnapshot.
    Side Effects / State: Issues two read queries; no caching.
    Dependencies: InventoryStore.list_products and list_locations.
    Failure Modes: Any store failure is raised as CatalogUnavailable.
    If Removed: Resolution and preflight have nothing to match against.
    Testing Notes: A failing store must raise CatalogUnavailable, never return partial data.
    """
    try:
        products = store.list_products(workspace_id)
        locations = store.list_locations(workspace_id)
    except StoreError as exc:
        logger.error("workspace=%s catalog fetch failed: %s", workspace_id, exc)
        raise CatalogUnavailable("Catalog is unavailable right now. Try again shortly.") from exc
    logger.debug("workspace=%s catalog products=%d locations=%d", workspace_id, len(products), len(locations))
    return CatalogSnapshot(products=products, locations=locations)
