# tests/conftest.py
from __future__ import annotations

import json
from dataclasses import replace
from typing import Any, Dict, List, Optional

import pytest

from storesync.catalog import fetch_catalog
from storesync.config import BASE_DIR, Settings
from storesync.db import build_engine, build_session_factory, init_db
from storesync.inventory_store import InventoryStore
from storesync.orchestrator import AssistantOrchestrator, Identity
from storesync.run_store import RunStore

WORKSPACE = "ws-1"
USER = "user-1"


class FakeLlm:
    """Completion double returning canned replies in order and recording calls."""

    def __init__(self, *replies: Any) -> None:
        self.replies: List[Any] = list(replies)
        self.calls: List[Dict[str, Any]] = []

    def complete(self, system_prompt: str, user_prompt: str, history: Optional[List[Dict[str, str]]] = None) -> str:
        self.calls.append({"system_prompt": system_prompt, "user_prompt": user_prompt, "history": history or []})
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, (dict, list)):
            return json.dumps(reply)
        return reply


def plan_reply(*actions: Dict[str, Any], message: str = "") -> Dict[str, Any]:
    return {"assistant_message": message, "actions": list(actions)}


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> InventoryStore:
    return InventoryStore(session_factory)


@pytest.fixture
def run_store(session_factory) -> RunStore:
    return RunStore(session_factory)


@pytest.fixture
def identity() -> Identity:
    return Identity(user_id=USER, workspace_id=WORKSPACE)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        gemini_api_key="test-key",
        gemini_model="gemini-test",
        database_url="sqlite://",
        prompts_dir=BASE_DIR / "prompts",
        writes_enabled=True,
    )


@pytest.fixture
def seeded(store) -> Dict[str, str]:
    """Two products below/above threshold at Warehouse 1 plus an empty Store 2."""
    ids = {
        "widget": store.insert_product(WORKSPACE, "Widget", "WID-001", "Hardware", 10),
        "gadget": store.insert_product(WORKSPACE, "Gadget", "GAD-001", "Electronics", 10),
        "warehouse": store.insert_location(WORKSPACE, "Warehouse 1", "warehouse", "Pune"),
        "store": store.insert_location(WORKSPACE, "Store 2", "store", "Mumbai"),
    }
    store.insert_inventory(WORKSPACE, ids["widget"], ids["warehouse"], 5)
    store.insert_inventory(WORKSPACE, ids["gadget"], ids["warehouse"], 20)
    return ids


@pytest.fixture
def catalog(store, seeded):
    return fetch_catalog(store, WORKSPACE)


@pytest.fixture
def make_orchestrator(settings, store, run_store):
    def build(*replies: Any, llm: Any = None, **overrides: Any) -> AssistantOrchestrator:
        client = llm if llm is not None else FakeLlm(*replies)
        return AssistantOrchestrator(
            settings=replace(settings, **overrides),
            store=store,
            run_store=run_store,
            llm=client,
        )

    return build
