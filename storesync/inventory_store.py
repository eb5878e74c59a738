"""SQLAlchemy-backed catalog, inventory, and order store.

Every public method is scoped to a workspace and runs in its own transaction.
Compound order operations (append the order row and move inventory) commit as
one unit, so a decrement and its order row are never observed half-applied.
Database failures surface as StoreError subclasses with operator-safe messages.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .catalog import CatalogLocation, CatalogProduct, InventoryRow
from .db_models import InventoryItem, Location, Order, Product, utcnow
from .errors import AlreadyExistsError, InsufficientStockError, RecordNotFoundError, StoreError

logger = logging.getLogger("storesync.store")

STOCK_ORDER_TYPES = ("sale", "restock")
ORDER_SOURCES = ("manual", "ai")


@dataclass
class StockLevel:
    quantity: int
    threshold: int


@contextmanager
def _store_errors(operation: str, conflict: Optional[str] = None) -> Iterator[None]:
    """Translate driver errors into StoreError, leaving typed store errors untouched.

    Uniqueness violations become AlreadyExistsError carrying ``conflict``.
    """
    try:
        yield
    except StoreError:
        raise
    except IntegrityError as exc:
        logger.info("store operation=%s conflict: %s", operation, exc.orig)
        raise AlreadyExistsError(conflict or "Record already exists.") from exc
    except SQLAlchemyError as exc:
        logger.error("store operation=%s failed: %s", operation, exc)
        raise StoreError(f"Store operation failed: {operation}.") from exc


def _check_source(source: str) -> None:
    if source not in ORDER_SOURCES:
        raise StoreError(f'Unsupported order source "{source}".')


class InventoryStore:
    """Query and mutation operations over products, locations, inventory, and orders."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    # Queries

    def list_products(self, workspace_id: str) -> List[CatalogProduct]:
        with _store_errors("list_products"), self._session_factory() as session:
            rows = (
                session.query(Product)
                .filter(Product.workspace_id == workspace_id)
                .order_by(Product.created_at, Product.name)
                .all()
            )
            return [
                CatalogProduct(
                    id=row.id,
                    name=row.name,
                    sku=row.sku,
                    category=row.category,
                    threshold=row.threshold if row.threshold is not None else 20,
                    is_active=bool(row.is_active),
                )
                for row in rows
            ]

    def list_locations(self, workspace_id: str) -> List[CatalogLocation]:
        with _store_errors("list_locations"), self._session_factory() as session:
            rows = (
                session.query(Location)
                .filter(Location.workspace_id == workspace_id)
                .order_by(Location.created_at, Location.name)
                .all()
            )
            return [
                CatalogLocation(
                    id=row.id,
                    name=row.name,
                    type=row.type,
                    city=row.city,
                    is_active=bool(row.is_active),
                )
                for row in rows
            ]

    def find_inventory_item(self, workspace_id: str, product_id: str, location_id: str) -> Optional[StockLevel]:
        with _store_errors("find_inventory_item"), self._session_factory() as session:
            row = (
                session.query(InventoryItem)
                .filter(
                    InventoryItem.workspace_id == workspace_id,
                    InventoryItem.product_id == product_id,
                    InventoryItem.location_id == location_id,
                )
                .first()
            )
            if row is None:
                return None
            return StockLevel(quantity=int(row.quantity), threshold=int(row.threshold))

    def list_inventory_rows(self, workspace_id: str) -> List[InventoryRow]:
        """Purpose: Project inventory joined with product and location for read intents.
        Inputs/Outputs: Input is workspace id; output is a list of InventoryRow.
        Side Effects / State: One read query.
        Dependencies: Product, Location, and InventoryItem tables.
        Failure Modes: Database errors raise StoreError.
        If Removed: Read intents have no data source.
        Testing Notes: Rows come back ordered by product name, then location name.
        """
        with _store_errors("list_inventory_rows"), self._session_factory() as session:
            result = (
                session.query(InventoryItem, Product, Location)
                .join(Product, Product.id == InventoryItem.product_id)
                .join(Location, Location.id == InventoryItem.location_id)
                .filter(InventoryItem.workspace_id == workspace_id)
                .order_by(Product.name, Location.name)
                .all()
            )
            return [
                InventoryRow(
                    product_id=item.product_id,
                    location_id=item.location_id,
                    quantity=int(item.quantity),
                    threshold=int(item.threshold),
                    product_name=product.name,
                    sku=product.sku,
                    category=product.category or "Uncategorized",
                    location_name=location.name,
                    city=location.city,
                )
                for item, product, location in result
            ]

    # Catalog mutations

    def insert_product(
        self, workspace_id: str, name: str, sku: str, category: str, threshold: int, is_active: bool = True
    ) -> str:
        conflict = f'SKU "{sku}" already exists in your workspace.'
        with _store_errors("insert_product", conflict), self._session_factory.begin() as session:
            product = Product(
                workspace_id=workspace_id,
                name=name,
                sku=sku,
                category=category,
                threshold=threshold,
                is_active=is_active,
            )
            session.add(product)
            session.flush()
            return product.id

    def update_product(self, workspace_id: str, product_id: str, fields: Dict[str, object]) -> bool:
        conflict = f'SKU "{fields.get("sku")}" already exists in your workspace.'
        with _store_errors("update_product", conflict), self._session_factory.begin() as session:
            matched = (
                session.query(Product)
                .filter(Product.workspace_id == workspace_id, Product.id == product_id)
                .update(fields, synchronize_session=False)
            )
            return matched > 0

    def archive_product(self, workspace_id: str, product_id: str) -> bool:
        """Soft-delete a product and remove all of its inventory rows in one transaction."""
        with _store_errors("archive_product"), self._session_factory.begin() as session:
            matched = (
                session.query(Product)
                .filter(Product.workspace_id == workspace_id, Product.id == product_id)
                .update({"is_active": False}, synchronize_session=False)
            )
            if not matched:
                return False
            session.query(InventoryItem).filter(
                InventoryItem.workspace_id == workspace_id,
                InventoryItem.product_id == product_id,
            ).delete(synchronize_session=False)
            return True

    def insert_location(self, workspace_id: str, name: str, location_type: str, city: str, is_active: bool = True) -> str:
        with _store_errors("insert_location"), self._session_factory.begin() as session:
            location = Location(
                workspace_id=workspace_id,
                name=name,
                type=location_type,
                city=city,
                is_active=is_active,
            )
            session.add(location)
            session.flush()
            return location.id

    def update_location(self, workspace_id: str, location_id: str, fields: Dict[str, object]) -> bool:
        with _store_errors("update_location"), self._session_factory.begin() as session:
            matched = (
                session.query(Location)
                .filter(Location.workspace_id == workspace_id, Location.id == location_id)
                .update(fields, synchronize_session=False)
            )
            return matched > 0

    # Inventory mutations

    def insert_inventory(
        self,
        workspace_id: str,
        product_id: str,
        location_id: str,
        quantity: int,
        threshold: Optional[int] = None,
    ) -> str:
        """Purpose: Insert one inventory row for a (product, location) pair.
        Inputs/Outputs: Inputs are ids, quantity, optional threshold; output is the row id.
        Side Effects / State: Inserts into inventory_items.
        Dependencies: Product threshold is the default when none is given.
        Failure Modes: A duplicate pair raises AlreadyExistsError; other errors StoreError.
        If Removed: Entries and restock auto-provisioning cannot create rows.
        Testing Notes: Inserting the same pair twice raises AlreadyExistsError.
        """
        conflict = "An inventory entry already exists for this product at this location."
        with _store_errors("insert_inventory", conflict), self._session_factory.begin() as session:
            if threshold is None:
                product = session.get(Product, product_id)
                threshold = product.threshold if product is not None else 20
            item = InventoryItem(
                workspace_id=workspace_id,
                product_id=product_id,
                location_id=location_id,
                quantity=quantity,
                threshold=threshold,
            )
            session.add(item)
            session.flush()
            return item.id

    def update_inventory_quantity(self, workspace_id: str, product_id: str, location_id: str, quantity: int) -> bool:
        with _store_errors("update_inventory_quantity"), self._session_factory.begin() as session:
            matched = (
                session.query(InventoryItem)
                .filter(
                    InventoryItem.workspace_id == workspace_id,
                    InventoryItem.product_id == product_id,
                    InventoryItem.location_id == location_id,
                )
                .update({"quantity": quantity, "updated_at": utcnow()}, synchronize_session=False)
            )
            return matched > 0

    # Orders

    def create_order_and_apply_inventory(
        self,
        workspace_id: str,
        product_id: str,
        location_id: str,
        order_type: str,
        quantity: int,
        source: str,
        note: str,
    ) -> str:
        """Purpose: Append a sale or restock order and apply it to inventory atomically.
        Inputs/Outputs: Inputs are ids, order type, quantity, source, note; output is the order id.
        Side Effects / State: Inserts an order row and decrements (sale) or increments (restock)
            the inventory row in one transaction.
        Dependencies: The inventory row must already exist.
        Failure Modes: Missing row raises RecordNotFoundError; a sale larger than stock raises
            InsufficientStockError; both roll back the order insert.
        If Removed: Sale and restock actions cannot execute.
        Testing Notes: A failed sale leaves both tables unchanged.
        """
        if order_type not in STOCK_ORDER_TYPES:
            raise StoreError(f'Unsupported order type "{order_type}".')
        _check_source(source)
        with _store_errors("create_order_and_apply_inventory"), self._session_factory.begin() as session:
            if order_type == "sale":
                self._decrement(session, workspace_id, product_id, location_id, quantity)
            else:
                self._increment(session, workspace_id, product_id, location_id, quantity)
            order = Order(
                workspace_id=workspace_id,
                product_id=product_id,
                location_id=location_id,
                type=order_type,
                quantity=quantity,
                source=source,
                note=note,
            )
            session.add(order)
            session.flush()
            logger.info("workspace=%s order=%s type=%s qty=%d", workspace_id, order.id, order_type, quantity)
            return order.id

    def create_transfer_and_move_inventory(
        self,
        workspace_id: str,
        product_id: str,
        from_location_id: str,
        to_location_id: str,
        quantity: int,
        note: str,
        source: str,
    ) -> str:
        _check_source(source)
        with _store_errors("create_transfer_and_move_inventory"), self._session_factory.begin() as session:
            self._decrement(session, workspace_id, product_id, from_location_id, quantity)
            destination = self._inventory_row(session, workspace_id, product_id, to_location_id)
            if destination is None:
                product = session.get(Product, product_id)
                session.add(
                    InventoryItem(
                        workspace_id=workspace_id,
                        product_id=product_id,
                        location_id=to_location_id,
                        quantity=0,
                        threshold=product.threshold if product is not None else 20,
                    )
                )
                session.flush()
            self._increment(session, workspace_id, product_id, to_location_id, quantity)
            order = Order(
                workspace_id=workspace_id,
                product_id=product_id,
                location_id=from_location_id,
                to_location_id=to_location_id,
                type="transfer",
                quantity=quantity,
                source=source,
                note=note,
            )
            session.add(order)
            session.flush()
            logger.info(
                "workspace=%s order=%s type=transfer qty=%d from=%s to=%s",
                workspace_id,
                order.id,
                quantity,
                from_location_id,
                to_location_id,
            )
            return order.id

    def list_orders(self, workspace_id: str) -> List[Order]:
        with _store_errors("list_orders"), self._session_factory() as session:
            return (
                session.query(Order)
                .filter(Order.workspace_id == workspace_id)
                .order_by(Order.created_at)
                .all()
            )

    @staticmethod
    def _inventory_row(session, workspace_id: str, product_id: str, location_id: str) -> Optional[InventoryItem]:
        return (
            session.query(InventoryItem)
            .filter(
                InventoryItem.workspace_id == workspace_id,
                InventoryItem.product_id == product_id,
                InventoryItem.location_id == location_id,
            )
            .first()
        )

    def _decrement(self, session, workspace_id: str, product_id: str, location_id: str, quantity: int) -> None:
        # Conditional update so a concurrent decrement cannot drive stock negative.
        matched = (
            session.query(InventoryItem)
            .filter(
                InventoryItem.workspace_id == workspace_id,
                InventoryItem.product_id == product_id,
                InventoryItem.location_id == location_id,
                InventoryItem.quantity >= quantity,
            )
            .update(
                {"quantity": InventoryItem.quantity - quantity, "updated_at": utcnow()},
                synchronize_session=False,
            )
        )
        if matched:
            return
        row = self._inventory_row(session, workspace_id, product_id, location_id)
        if row is None:
            raise RecordNotFoundError("No inventory entry exists for this product at the source location.")
        raise InsufficientStockError(f"Current QTY is {row.quantity} and order is {quantity}.")

    def _increment(self, session, workspace_id: str, product_id: str, location_id: str, quantity: int) -> None:
        matched = (
            session.query(InventoryItem)
            .filter(
                InventoryItem.workspace_id == workspace_id,
                InventoryItem.product_id == product_id,
                InventoryItem.location_id == location_id,
            )
            .update(
                {"quantity": InventoryItem.quantity + quantity, "updated_at": utcnow()},
                synchronize_session=False,
            )
        )
        if not matched:
            raise RecordNotFoundError("No inventory entry exists for this product at the destination location.")
