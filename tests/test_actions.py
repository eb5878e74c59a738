from storesync.actions import (
    ProductCreate,
    ReadQuery,
    ResolvedRestockOrder,
    RestockOrder,
    TransferOrder,
    action_to_dict,
    decode_resolved_action,
    parse_action,
    parse_actions,
    select_primary,
)


def test_parse_restock_accepts_numeric_string_quantity():
    action = parse_action(
        {"kind": "order.create_restock", "product_ref": " Widget ", "location_ref": "Warehouse 1", "quantity": "15"}
    )
    assert action == RestockOrder(product_ref="Widget", location_ref="Warehouse 1", quantity=15)


def test_parse_location_type_and_intent_are_case_insensitive():
    location = parse_action({"kind": "location.create", "name": "Depot", "type": "Warehouse", "city": "Pune"})
    assert location.type == "warehouse"
    read = parse_action({"kind": "read.query", "intent": "LOW_STOCK"})
    assert read == ReadQuery(intent="low_stock")


def test_malformed_elements_are_dropped():
    actions = parse_actions(
        [
            {"kind": "product.create", "name": "Lamp"},  # missing category
            {"kind": "order.delete", "product_ref": "x"},
            "not an object",
            {"kind": "location.create", "name": "X", "type": "moon", "city": "Y"},
            {"kind": "product.create", "name": "Lamp", "category": "Lighting", "threshold": "5"},
        ]
    )
    assert actions == [ProductCreate(name="Lamp", category="Lighting", threshold=5)]


def test_parse_actions_requires_a_list():
    assert parse_actions({"kind": "read.query"}) == []
    assert parse_actions(None) == []


def test_transfer_requires_both_locations():
    assert parse_action(
        {"kind": "order.create_transfer", "product_ref": "Widget", "from_location_ref": "A", "quantity": 2}
    ) is None
    assert isinstance(
        parse_action(
            {
                "kind": "order.create_transfer",
                "product_ref": "Widget",
                "from_location_ref": "A",
                "to_location_ref": "B",
                "quantity": 2,
            }
        ),
        TransferOrder,
    )


def test_select_primary_prefers_first_mutating_action():
    actions = [
        ReadQuery(intent="low_stock"),
        RestockOrder(product_ref="Widget", location_ref="W1", quantity=1),
    ]
    index, action = select_primary(actions)
    assert index == 1
    assert action.kind == "order.create_restock"
    assert select_primary([ReadQuery(intent="inventory_summary")])[0] == 0
    assert select_primary([]) is None


def test_resolved_action_survives_storage_encoding():
    resolved = ResolvedRestockOrder(
        product_id="p1",
        location_id="l1",
        quantity=15,
        note="Created via AI assistant",
        summary="Create restock order",
        warnings=("careful",),
    )
    payload = action_to_dict(resolved)
    assert payload["kind"] == "order.create_restock"
    assert payload["warnings"] == ["careful"]
    assert decode_resolved_action(payload) == resolved


def test_decode_rejects_unknown_or_incomplete_payloads():
    assert decode_resolved_action({}) is None
    assert decode_resolved_action({"kind": "order.delete"}) is None
    assert decode_resolved_action({"kind": "order.create_sale", "product_id": "p1"}) is None
    assert decode_resolved_action(
        {"kind": "order.create_sale", "product_id": "p", "location_id": "l", "quantity": "9", "note": "n"}
    ) is None
