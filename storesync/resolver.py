"""Deterministic reference resolution against a catalog snapshot.

A reference walks an ordered ladder of pure matching rungs. The first rung that
yields any candidates decides the outcome: one candidate resolves, several are
ambiguous and become clarification options. There is no scoring, so an exact
SKU or name hit always wins over substring hits, even when the substring set
contains the exact entity too.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from .actions import (
    Action,
    InventoryCreateEntry,
    InventorySetQuantity,
    LocationCreate,
    LocationDeactivate,
    LocationUpdate,
    ProductArchive,
    ProductCreate,
    ProductUpdate,
    ReadQuery,
    ResolvedAction,
    ResolvedInventoryCreateEntry,
    ResolvedInventorySetQuantity,
    ResolvedLocationCreate,
    ResolvedLocationDeactivate,
    ResolvedLocationUpdate,
    ResolvedProductArchive,
    ResolvedProductCreate,
    ResolvedProductUpdate,
    ResolvedReadQuery,
    ResolvedRestockOrder,
    ResolvedSaleOrder,
    ResolvedTransferOrder,
    RestockOrder,
    SaleOrder,
    TransferOrder,
)
from .catalog import CatalogLocation, CatalogProduct, CatalogSnapshot
from .utils import normalize_ref

logger = logging.getLogger("storesync.resolver")

MAX_CLARIFICATION_OPTIONS = 8
DEFAULT_THRESHOLD = 20
DEFAULT_ORDER_NOTE = "Created via AI assistant"

Entity = Union[CatalogProduct, CatalogLocation]
Rung = Tuple[Callable[[str, Sequence[Entity]], List[Entity]], str]


@dataclass
class Resolution:
    """Outcome of one reference lookup: resolved, ambiguous, or not_found."""
    status: str
    message: str = ""
    value: Optional[Entity] = None
    candidates: List[Entity] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.status == "resolved" and self.value is not None


@dataclass
class ClarificationOption:
    label: str
    value: str


@dataclass
class Clarification:
    message: str
    options: List[ClarificationOption] = field(default_factory=list)


@dataclass
class ActionResolution:
    action: Optional[ResolvedAction] = None
    clarification: Optional[Clarification] = None


# Ladder rungs


def match_exact_sku(ref: str, products: Sequence[CatalogProduct]) -> List[CatalogProduct]:
    return [product for product in products if normalize_ref(product.sku) == ref]


def match_exact_name(ref: str, entities: Sequence[Entity]) -> List[Entity]:
    return [entity for entity in entities if normalize_ref(entity.name) == ref]


def match_product_substring(ref: str, products: Sequence[CatalogProduct]) -> List[CatalogProduct]:
    return [
        product
        for product in products
        if ref in normalize_ref(product.name) or ref in normalize_ref(product.sku)
    ]


def match_location_substring(ref: str, locations: Sequence[CatalogLocation]) -> List[CatalogLocation]:
    return [
        location
        for location in locations
        if ref in normalize_ref(location.name) or ref in normalize_ref(location.city)
    ]


PRODUCT_LADDER: List[Rung] = [
    (match_exact_sku, 'Multiple products match SKU "{ref}".'),
    (match_exact_name, 'Multiple products match "{ref}".'),
    (match_product_substring, 'Multiple products match "{ref}". Please be more specific.'),
]

LOCATION_LADDER: List[Rung] = [
    (match_exact_name, 'Multiple locations match "{ref}".'),
    (match_location_substring, 'Multiple locations match "{ref}". Please be more specific.'),
]


def resolve_ref(ref: Optional[str], entities: Sequence[Entity], ladder: List[Rung], noun: str) -> Resolution:
    """Purpose: Walk a match ladder for one free-text reference.
    Inputs/Outputs: Inputs are the raw reference, candidate entities, the ladder, and
        the entity noun used in messages; output is a Resolution.
    Side Effects / State: None; pure function.
    Dependencies: normalize_ref and the rung functions.
    Failure Modes: None; misses are reported as not_found.
    If Removed: Product and location references cannot be bound to ids.
    Testing Notes: Blank refs short-circuit without consulting any rung.
    """
    # Normalize once, then stop at the first rung with candidates.
    normalized = normalize_ref(ref)
    if not normalized:
        return Resolution(status="not_found", message=f"{noun.capitalize()} reference is missing.")

    for rung, ambiguous_message in ladder:
        candidates = rung(normalized, entities)
        if len(candidates) == 1:
            return Resolution(status="resolved", value=candidates[0])
        if candidates:
            return Resolution(
                status="ambiguous",
                message=ambiguous_message.format(ref=ref),
                candidates=list(candidates),
            )
    return Resolution(status="not_found", message=f'No {noun} matched "{ref}".')


def resolve_product_ref(ref: Optional[str], products: Sequence[CatalogProduct]) -> Resolution:
    return resolve_ref(ref, products, PRODUCT_LADDER, "product")


def resolve_location_ref(ref: Optional[str], locations: Sequence[CatalogLocation]) -> Resolution:
    return resolve_ref(ref, locations, LOCATION_LADDER, "location")


def to_option(entity: Entity) -> ClarificationOption:
    if isinstance(entity, CatalogProduct):
        return ClarificationOption(
            label=f"{entity.name} ({entity.sku})",
            value=f'Use product "{entity.sku}" in this request.',
        )
    label = f"{entity.name}, {entity.city}" if entity.city else entity.name
    return ClarificationOption(label=label, value=f'Use location "{entity.name}" in this request.')


def to_clarification(resolution: Resolution, fallback: str) -> Clarification:
    """Turn a failed lookup into a clarification with at most eight options."""
    options = [to_option(entity) for entity in resolution.candidates[:MAX_CLARIFICATION_OPTIONS]]
    return Clarification(message=resolution.message or fallback, options=options)


def _floor(value: float) -> int:
    return int(math.floor(value))


def _non_negative(value: Optional[float], default: Optional[int]) -> Optional[int]:
    if value is None or not math.isfinite(value):
        return default
    return max(0, _floor(value))


def _note(note: Optional[str]) -> str:
    return (note or "").strip() or DEFAULT_ORDER_NOTE


# Per-kind resolution


def _resolve_product_create(action: ProductCreate, catalog: CatalogSnapshot) -> ActionResolution:
    threshold = _non_negative(action.threshold, DEFAULT_THRESHOLD)
    return ActionResolution(
        action=ResolvedProductCreate(
            name=action.name,
            category=action.category,
            threshold=threshold,
            sku=action.sku,
            summary=f'Create product "{action.name}" in "{action.category}" with threshold {threshold}.',
            warnings=() if action.sku else ("SKU missing: an SKU will be generated.",),
        )
    )


def _resolve_product_update(action: ProductUpdate, catalog: CatalogSnapshot) -> ActionResolution:
    product = resolve_product_ref(action.product_ref, catalog.products)
    if not product.resolved:
        return ActionResolution(clarification=to_clarification(product, "I could not uniquely identify the product to update."))
    return ActionResolution(
        action=ResolvedProductUpdate(
            product_id=product.value.id,
            name=action.name,
            sku=action.sku,
            category=action.category,
            threshold=_non_negative(action.threshold, None),
            is_active=action.is_active,
            summary=f'Update product "{product.value.name}".',
        )
    )


def _resolve_product_archive(action: ProductArchive, catalog: CatalogSnapshot) -> ActionResolution:
    product = resolve_product_ref(action.product_ref, catalog.products)
    if not product.resolved:
        return ActionResolution(clarification=to_clarification(product, "I could not uniquely identify the product to archive."))
    return ActionResolution(
        action=ResolvedProductArchive(
            product_id=product.value.id,
            summary=f'Archive product "{product.value.name}" (soft-delete).',
            warnings=("Product archive is a soft-delete operation.",),
        )
    )


def _resolve_location_create(action: LocationCreate, catalog: CatalogSnapshot) -> ActionResolution:
    return ActionResolution(
        action=ResolvedLocationCreate(
            name=action.name,
            type=action.type,
            city=action.city,
            summary=f'Create {action.type} location "{action.name}" in {action.city}.',
        )
    )


def _resolve_location_update(action: LocationUpdate, catalog: CatalogSnapshot) -> ActionResolution:
    location = resolve_location_ref(action.location_ref, catalog.locations)
    if not location.resolved:
        return ActionResolution(clarification=to_clarification(location, "I could not uniquely identify the location to update."))
    return ActionResolution(
        action=ResolvedLocationUpdate(
            location_id=location.value.id,
            name=action.name,
            type=action.type,
            city=action.city,
            is_active=action.is_active,
            summary=f'Update location "{location.value.name}".',
        )
    )


def _resolve_location_deactivate(action: LocationDeactivate, catalog: CatalogSnapshot) -> ActionResolution:
    location = resolve_location_ref(action.location_ref, catalog.locations)
    if not location.resolved:
        return ActionResolution(
            clarification=to_clarification(location, "I could not uniquely identify the location to deactivate.")
        )
    return ActionResolution(
        action=ResolvedLocationDeactivate(
            location_id=location.value.id,
            summary=f'Deactivate location "{location.value.name}" (soft-delete).',
            warnings=("Location deactivation is a soft-delete operation.",),
        )
    )


def _resolve_inventory(action: Union[InventoryCreateEntry, InventorySetQuantity], catalog: CatalogSnapshot) -> ActionResolution:
    product = resolve_product_ref(action.product_ref, catalog.products)
    if not product.resolved:
        return ActionResolution(clarification=to_clarification(product, "I could not uniquely identify the inventory product."))
    location = resolve_location_ref(action.location_ref, catalog.locations)
    if not location.resolved:
        return ActionResolution(clarification=to_clarification(location, "I could not uniquely identify the inventory location."))

    quantity = _floor(action.quantity)
    if isinstance(action, InventoryCreateEntry):
        return ActionResolution(
            action=ResolvedInventoryCreateEntry(
                product_id=product.value.id,
                location_id=location.value.id,
                quantity=quantity,
                summary=(
                    f'Create inventory entry for "{product.value.name}" at "{location.value.name}" '
                    f"with quantity {quantity}."
                ),
            )
        )
    return ActionResolution(
        action=ResolvedInventorySetQuantity(
            product_id=product.value.id,
            location_id=location.value.id,
            quantity=quantity,
            summary=f'Set inventory for "{product.value.name}" at "{location.value.name}" to {quantity}.',
        )
    )


def _resolve_order(action: Union[SaleOrder, RestockOrder], catalog: CatalogSnapshot) -> ActionResolution:
    product = resolve_product_ref(action.product_ref, catalog.products)
    if not product.resolved:
        return ActionResolution(clarification=to_clarification(product, "I could not uniquely identify the order product."))
    location = resolve_location_ref(action.location_ref, catalog.locations)
    if not location.resolved:
        return ActionResolution(clarification=to_clarification(location, "I could not uniquely identify the order location."))

    quantity = _floor(action.quantity)
    cls = ResolvedSaleOrder if isinstance(action, SaleOrder) else ResolvedRestockOrder
    verb = "Create sale" if isinstance(action, SaleOrder) else "Create restock"
    return ActionResolution(
        action=cls(
            product_id=product.value.id,
            location_id=location.value.id,
            quantity=quantity,
            note=_note(action.note),
            summary=f'{verb} order for {quantity} units of "{product.value.name}" at "{location.value.name}".',
        )
    )


def _resolve_transfer(action: TransferOrder, catalog: CatalogSnapshot) -> ActionResolution:
    product = resolve_product_ref(action.product_ref, catalog.products)
    if not product.resolved:
        return ActionResolution(clarification=to_clarification(product, "I could not uniquely identify the transfer product."))
    source = resolve_location_ref(action.from_location_ref, catalog.locations)
    if not source.resolved:
        return ActionResolution(clarification=to_clarification(source, "I could not uniquely identify the source location."))
    destination = resolve_location_ref(action.to_location_ref, catalog.locations)
    if not destination.resolved:
        return ActionResolution(
            clarification=to_clarification(destination, "I could not uniquely identify the destination location.")
        )

    quantity = _floor(action.quantity)
    return ActionResolution(
        action=ResolvedTransferOrder(
            product_id=product.value.id,
            from_location_id=source.value.id,
            to_location_id=destination.value.id,
            quantity=quantity,
            note=_note(action.note),
            summary=(
                f'Create transfer order for {quantity} units of "{product.value.name}" '
                f'from "{source.value.name}" to "{destination.value.name}".'
            ),
        )
    )


def _resolve_read_query(action: ReadQuery, catalog: CatalogSnapshot) -> ActionResolution:
    if action.intent == "stock_by_product":
        product = resolve_product_ref(action.product_ref, catalog.products)
        if not product.resolved:
            return ActionResolution(
                clarification=to_clarification(product, "I could not uniquely identify the product for stock lookup.")
            )
        return ActionResolution(
            action=ResolvedReadQuery(
                intent=action.intent,
                product_id=product.value.id,
                summary=f'Show stock by location for "{product.value.name}".',
            )
        )

    if action.intent == "location_snapshot":
        location = resolve_location_ref(action.location_ref, catalog.locations)
        if not location.resolved:
            return ActionResolution(
                clarification=to_clarification(location, "I could not uniquely identify the location snapshot target.")
            )
        return ActionResolution(
            action=ResolvedReadQuery(
                intent=action.intent,
                location_id=location.value.id,
                summary=f'Show inventory snapshot for "{location.value.name}".',
            )
        )

    summary = "Show low-stock items." if action.intent == "low_stock" else "Show overall inventory summary."
    return ActionResolution(action=ResolvedReadQuery(intent=action.intent, summary=summary))


RESOLVERS: Dict[str, Callable[[Action, CatalogSnapshot], ActionResolution]] = {
    "product.create": _resolve_product_create,
    "product.update": _resolve_product_update,
    "product.archive": _resolve_product_archive,
    "location.create": _resolve_location_create,
    "location.update": _resolve_location_update,
    "location.deactivate": _resolve_location_deactivate,
    "inventory.create_entry": _resolve_inventory,
    "inventory.set_quantity": _resolve_inventory,
    "order.create_sale": _resolve_order,
    "order.create_restock": _resolve_order,
    "order.create_transfer": _resolve_transfer,
    "read.query": _resolve_read_query,
}


def resolve_action(action: Action, catalog: CatalogSnapshot) -> ActionResolution:
    """Purpose: Bind every reference of one action to catalog ids.
    Inputs/Outputs: Inputs are a parsed action and the snapshot; output holds either a
        resolved action (with summary and warnings) or a clarification.
    Side Effects / State: None; pure function.
    Dependencies: RESOLVERS, resolve_product_ref, resolve_location_ref.
    Failure Modes: The first failed lookup's clarification is returned alone.
    If Removed: Nothing downstream can validate or execute model output.
    Testing Notes: A transfer with an ambiguous destination reports only the destination.
    """
    outcome = RESOLVERS[action.kind](action, catalog)
    if outcome.clarification is not None:
        logger.debug("kind=%s unresolved: %s", action.kind, outcome.clarification.message)
    return outcome
