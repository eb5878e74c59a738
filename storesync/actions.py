"""Action types for assistant commands.

Raw actions carry free-text references as returned by the model; resolved
actions carry catalog ids plus a human summary and warnings. Each kind is its
own frozen dataclass, and the kind string lives on the class, so dispatch is a
dictionary lookup rather than a chain of optional-field checks.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple, Type, Union

from .catalog import LOCATION_TYPES
from .utils import as_bool, as_number, as_string

MUTATING_KINDS = frozenset(
    {
        "product.create",
        "product.update",
        "product.archive",
        "location.create",
        "location.update",
        "location.deactivate",
        "inventory.create_entry",
        "inventory.set_quantity",
        "order.create_sale",
        "order.create_restock",
        "order.create_transfer",
    }
)
READ_KIND = "read.query"
ACTION_KINDS: Tuple[str, ...] = (
    "product.create",
    "product.update",
    "product.archive",
    "location.create",
    "location.update",
    "location.deactivate",
    "inventory.create_entry",
    "inventory.set_quantity",
    "order.create_sale",
    "order.create_restock",
    "order.create_transfer",
    READ_KIND,
)
READ_INTENTS: Tuple[str, ...] = ("low_stock", "inventory_summary", "stock_by_product", "location_snapshot")


# Raw actions


@dataclass(frozen=True)
class ProductCreate:
    kind: ClassVar[str] = "product.create"
    name: str
    category: str
    sku: Optional[str] = None
    threshold: Optional[float] = None


@dataclass(frozen=True)
class ProductUpdate:
    kind: ClassVar[str] = "product.update"
    product_ref: str
    name: Optional[str] = None
    sku: Optional[str] = None
    category: Optional[str] = None
    threshold: Optional[float] = None
    is_active: Optional[bool] = None


@dataclass(frozen=True)
class ProductArchive:
    kind: ClassVar[str] = "product.archive"
    product_ref: str


@dataclass(frozen=True)
class LocationCreate:
    kind: ClassVar[str] = "location.create"
    name: str
    type: str
    city: str


@dataclass(frozen=True)
class LocationUpdate:
    kind: ClassVar[str] = "location.update"
    location_ref: str
    name: Optional[str] = None
    type: Optional[str] = None
    city: Optional[str] = None
    is_active: Optional[bool] = None


@dataclass(frozen=True)
class LocationDeactivate:
    kind: ClassVar[str] = "location.deactivate"
    location_ref: str


@dataclass(frozen=True)
class InventoryCreateEntry:
    kind: ClassVar[str] = "inventory.create_entry"
    product_ref: str
    location_ref: str
    quantity: float


@dataclass(frozen=True)
class InventorySetQuantity:
    kind: ClassVar[str] = "inventory.set_quantity"
    product_ref: str
    location_ref: str
    quantity: float


@dataclass(frozen=True)
class SaleOrder:
    kind: ClassVar[str] = "order.create_sale"
    product_ref: str
    location_ref: str
    quantity: float
    note: Optional[str] = None


@dataclass(frozen=True)
class RestockOrder:
    kind: ClassVar[str] = "order.create_restock"
    product_ref: str
    location_ref: str
    quantity: float
    note: Optional[str] = None


@dataclass(frozen=True)
class TransferOrder:
    kind: ClassVar[str] = "order.create_transfer"
    product_ref: str
    from_location_ref: str
    to_location_ref: str
    quantity: float
    note: Optional[str] = None


@dataclass(frozen=True)
class ReadQuery:
    kind: ClassVar[str] = READ_KIND
    intent: str
    product_ref: Optional[str] = None
    location_ref: Optional[str] = None


Action = Union[
    ProductCreate,
    ProductUpdate,
    ProductArchive,
    LocationCreate,
    LocationUpdate,
    LocationDeactivate,
    InventoryCreateEntry,
    InventorySetQuantity,
    SaleOrder,
    RestockOrder,
    TransferOrder,
    ReadQuery,
]


# Resolved actions


@dataclass(frozen=True)
class ResolvedProductCreate:
    kind: ClassVar[str] = "product.create"
    name: str
    category: str
    threshold: int
    sku: Optional[str] = None
    summary: str = ""
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedProductUpdate:
    kind: ClassVar[str] = "product.update"
    product_id: str
    name: Optional[str] = None
    sku: Optional[str] = None
    category: Optional[str] = None
    threshold: Optional[int] = None
    is_active: Optional[bool] = None
    summary: str = ""
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedProductArchive:
    kind: ClassVar[str] = "product.archive"
    product_id: str
    summary: str = ""
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedLocationCreate:
    kind: ClassVar[str] = "location.create"
    name: str
    type: str
    city: str
    summary: str = ""
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedLocationUpdate:
    kind: ClassVar[str] = "location.update"
    location_id: str
    name: Optional[str] = None
    type: Optional[str] = None
    city: Optional[str] = None
    is_active: Optional[bool] = None
    summary: str = ""
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedLocationDeactivate:
    kind: ClassVar[str] = "location.deactivate"
    location_id: str
    summary: str = ""
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedInventoryCreateEntry:
    kind: ClassVar[str] = "inventory.create_entry"
    product_id: str
    location_id: str
    quantity: int
    summary: str = ""
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedInventorySetQuantity:
    kind: ClassVar[str] = "inventory.set_quantity"
    product_id: str
    location_id: str
    quantity: int
    summary: str = ""
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedSaleOrder:
    kind: ClassVar[str] = "order.create_sale"
    product_id: str
    location_id: str
    quantity: int
    note: str
    summary: str = ""
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedRestockOrder:
    kind: ClassVar[str] = "order.create_restock"
    product_id: str
    location_id: str
    quantity: int
    note: str
    summary: str = ""
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedTransferOrder:
    kind: ClassVar[str] = "order.create_transfer"
    product_id: str
    from_location_id: str
    to_location_id: str
    quantity: int
    note: str
    summary: str = ""
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResolvedReadQuery:
    kind: ClassVar[str] = READ_KIND
    intent: str
    product_id: Optional[str] = None
    location_id: Optional[str] = None
    summary: str = ""
    warnings: Tuple[str, ...] = ()


ResolvedAction = Union[
    ResolvedProductCreate,
    ResolvedProductUpdate,
    ResolvedProductArchive,
    ResolvedLocationCreate,
    ResolvedLocationUpdate,
    ResolvedLocationDeactivate,
    ResolvedInventoryCreateEntry,
    ResolvedInventorySetQuantity,
    ResolvedSaleOrder,
    ResolvedRestockOrder,
    ResolvedTransferOrder,
    ResolvedReadQuery,
]

RESOLVED_TYPES: Dict[str, Type[Any]] = {
    cls.kind: cls
    for cls in (
        ResolvedProductCreate,
        ResolvedProductUpdate,
        ResolvedProductArchive,
        ResolvedLocationCreate,
        ResolvedLocationUpdate,
        ResolvedLocationDeactivate,
        ResolvedInventoryCreateEntry,
        ResolvedInventorySetQuantity,
        ResolvedSaleOrder,
        ResolvedRestockOrder,
        ResolvedTransferOrder,
        ResolvedReadQuery,
    )
}


def is_mutating(action: Union[Action, ResolvedAction]) -> bool:
    return action.kind in MUTATING_KINDS


# Schema validation


def as_location_type(value: Any) -> Optional[str]:
    text = as_string(value)
    if text is None:
        return None
    lowered = text.lower()
    return lowered if lowered in LOCATION_TYPES else None


def as_read_intent(value: Any) -> Optional[str]:
    text = as_string(value)
    if text is None:
        return None
    lowered = text.lower()
    return lowered if lowered in READ_INTENTS else None


def _parse_product_create(record: Dict[str, Any]) -> Optional[Action]:
    name = as_string(record.get("name"))
    category = as_string(record.get("category"))
    if not name or not category:
        return None
    return ProductCreate(
        name=name,
        category=category,
        sku=as_string(record.get("sku")),
        threshold=as_number(record.get("threshold")),
    )


def _parse_product_update(record: Dict[str, Any]) -> Optional[Action]:
    product_ref = as_string(record.get("product_ref"))
    if not product_ref:
        return None
    return ProductUpdate(
        product_ref=product_ref,
        name=as_string(record.get("name")),
        sku=as_string(record.get("sku")),
        category=as_string(record.get("category")),
        threshold=as_number(record.get("threshold")),
        is_active=as_bool(record.get("is_active")),
    )


def _parse_product_archive(record: Dict[str, Any]) -> Optional[Action]:
    product_ref = as_string(record.get("product_ref"))
    return ProductArchive(product_ref=product_ref) if product_ref else None


def _parse_location_create(record: Dict[str, Any]) -> Optional[Action]:
    name = as_string(record.get("name"))
    city = as_string(record.get("city"))
    location_type = as_location_type(record.get("type"))
    if not name or not city or not location_type:
        return None
    return LocationCreate(name=name, type=location_type, city=city)


def _parse_location_update(record: Dict[str, Any]) -> Optional[Action]:
    location_ref = as_string(record.get("location_ref"))
    if not location_ref:
        return None
    return LocationUpdate(
        location_ref=location_ref,
        name=as_string(record.get("name")),
        type=as_location_type(record.get("type")),
        city=as_string(record.get("city")),
        is_active=as_bool(record.get("is_active")),
    )


def _parse_location_deactivate(record: Dict[str, Any]) -> Optional[Action]:
    location_ref = as_string(record.get("location_ref"))
    return LocationDeactivate(location_ref=location_ref) if location_ref else None


def _inventory_parser(cls: Type[Any]) -> Callable[[Dict[str, Any]], Optional[Action]]:
    def parse(record: Dict[str, Any]) -> Optional[Action]:
        product_ref = as_string(record.get("product_ref"))
        location_ref = as_string(record.get("location_ref"))
        quantity = as_number(record.get("quantity"))
        if not product_ref or not location_ref or quantity is None:
            return None
        return cls(product_ref=product_ref, location_ref=location_ref, quantity=quantity)

    return parse


def _order_parser(cls: Type[Any]) -> Callable[[Dict[str, Any]], Optional[Action]]:
    def parse(record: Dict[str, Any]) -> Optional[Action]:
        product_ref = as_string(record.get("product_ref"))
        location_ref = as_string(record.get("location_ref"))
        quantity = as_number(record.get("quantity"))
        if not product_ref or not location_ref or quantity is None:
            return None
        return cls(
            product_ref=product_ref,
            location_ref=location_ref,
            quantity=quantity,
            note=as_string(record.get("note")),
        )

    return parse


def _parse_transfer(record: Dict[str, Any]) -> Optional[Action]:
    product_ref = as_string(record.get("product_ref"))
    from_ref = as_string(record.get("from_location_ref"))
    to_ref = as_string(record.get("to_location_ref"))
    quantity = as_number(record.get("quantity"))
    if not product_ref or not from_ref or not to_ref or quantity is None:
        return None
    return TransferOrder(
        product_ref=product_ref,
        from_location_ref=from_ref,
        to_location_ref=to_ref,
        quantity=quantity,
        note=as_string(record.get("note")),
    )


def _parse_read_query(record: Dict[str, Any]) -> Optional[Action]:
    intent = as_read_intent(record.get("intent"))
    if not intent:
        return None
    return ReadQuery(
        intent=intent,
        product_ref=as_string(record.get("product_ref")),
        location_ref=as_string(record.get("location_ref")),
    )


ACTION_PARSERS: Dict[str, Callable[[Dict[str, Any]], Optional[Action]]] = {
    "product.create": _parse_product_create,
    "product.update": _parse_product_update,
    "product.archive": _parse_product_archive,
    "location.create": _parse_location_create,
    "location.update": _parse_location_update,
    "location.deactivate": _parse_location_deactivate,
    "inventory.create_entry": _inventory_parser(InventoryCreateEntry),
    "inventory.set_quantity": _inventory_parser(InventorySetQuantity),
    "order.create_sale": _order_parser(SaleOrder),
    "order.create_restock": _order_parser(RestockOrder),
    "order.create_transfer": _parse_transfer,
    READ_KIND: _parse_read_query,
}


def parse_action(value: Any) -> Optional[Action]:
    """Purpose: Structurally check one raw model action against the closed kind set.
    Inputs/Outputs: Input is any decoded JSON value; output is a typed action or None.
    Side Effects / State: None.
    Dependencies: ACTION_PARSERS and the utils coercion helpers.
    Failure Modes: Never raises; malformed input yields None.
    If Removed: Untyped model output would flow into resolution.
    Testing Notes: Unknown kinds, missing required fields, and non-dicts return None.
    """
    if not isinstance(value, dict):
        return None
    kind = as_string(value.get("kind"))
    parser = ACTION_PARSERS.get(kind or "")
    if parser is None:
        return None
    return parser(value)


def parse_actions(raw_actions: Any) -> List[Action]:
    """Parse a model action list, dropping malformed elements."""
    if not isinstance(raw_actions, list):
        return []
    parsed = (parse_action(item) for item in raw_actions)
    return [action for action in parsed if action is not None]


def select_primary(actions: List[Action]) -> Optional[Tuple[int, Action]]:
    """Return (index, action) of the first mutating action, else of the first action."""
    for index, action in enumerate(actions):
        if is_mutating(action):
            return index, action
    if actions:
        return 0, actions[0]
    return None


# Encoding


def action_to_dict(action: Union[Action, ResolvedAction]) -> Dict[str, Any]:
    """Serialize an action for JSON columns, dropping unset optional fields."""
    payload: Dict[str, Any] = {"kind": action.kind}
    for key, value in asdict(action).items():
        if value is None:
            continue
        payload[key] = list(value) if isinstance(value, tuple) else value
    return payload


def decode_resolved_action(payload: Any) -> Optional[ResolvedAction]:
    """Purpose: Rebuild a stored resolved action verbatim for execution.
    Inputs/Outputs: Input is the JSON payload from the action row; output is a typed
        resolved action or None.
    Side Effects / State: None.
    Dependencies: RESOLVED_TYPES.
    Failure Modes: Unknown kinds, missing required fields, or non-finite quantities
        yield None.
    If Removed: Execute would have to re-run resolution against possibly changed text.
    Testing Notes: action_to_dict output decodes to an equal dataclass.
    """
    if not isinstance(payload, dict):
        return None
    cls = RESOLVED_TYPES.get(str(payload.get("kind", "")))
    if cls is None:
        return None
    allowed = {item.name for item in fields(cls)}
    values = {key: value for key, value in payload.items() if key in allowed}
    if "warnings" in values:
        values["warnings"] = tuple(str(item) for item in values["warnings"] or ())
    quantity = values.get("quantity")
    if quantity is not None and (isinstance(quantity, bool) or not isinstance(quantity, (int, float)) or not math.isfinite(quantity)):
        return None
    try:
        return cls(**values)
    except TypeError:
        return None
