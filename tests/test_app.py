import pytest
from fastapi.testclient import TestClient

import storesync.app
from storesync.app import create_app

from conftest import USER, WORKSPACE, FakeLlm, plan_reply

HEADERS = {"X-User-Id": USER, "X-Workspace-Id": WORKSPACE}


@pytest.fixture
def llm():
    return FakeLlm()


@pytest.fixture
def client(settings, session_factory, seeded, llm):
    app = create_app(settings=settings, session_factory=session_factory, llm=llm)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["writesEnabled"] is True


def test_missing_identity_is_unauthorized(client):
    response = client.post("/api/assistant/plan", json={"message": "Show low stock"})
    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_USER_UNRESOLVED"

    response = client.post("/api/assistant/plan", json={"message": "x"}, headers={"X-User-Id": USER})
    assert response.status_code == 401
    assert response.json()["code"] == "WORKSPACE_UNAVAILABLE"


def test_empty_prompt_returns_failed_body(client):
    response = client.post("/api/assistant/plan", json={"message": "  "}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json() == {
        "status": "failed",
        "code": "INVALID_PROMPT",
        "assistantMessage": "Please enter a prompt.",
    }


def test_invalid_body_is_rejected(client):
    headers = {**HEADERS, "Content-Type": "application/json"}
    response = client.post("/api/assistant/plan", content="not json", headers=headers)
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_JSON"


def test_plan_execute_and_requery(client, llm):
    llm.replies.append(
        plan_reply(
            {"kind": "order.create_restock", "product_ref": "Widget", "location_ref": "Store 2", "quantity": 15}
        )
    )
    planned = client.post("/api/assistant/plan", json={"message": "Restock 15 Widget at Store 2"}, headers=HEADERS)
    assert planned.status_code == 200
    run_id = planned.json()["runId"]
    assert planned.json()["status"] == "needs_confirmation"
    assert planned.json()["actionPreview"]["kind"] == "order.create_restock"

    executed = client.post("/api/assistant/execute", json={"runId": run_id}, headers=HEADERS)
    assert executed.status_code == 200
    assert executed.json()["execution"]["succeeded"] is True
    assert executed.json()["execution"]["affected"]["quantity"] == 15

    fetched = client.get(f"/api/assistant/runs/{run_id}", headers=HEADERS)
    assert fetched.json()["status"] == "executed"
    assert fetched.json()["execution"]["affected"] == executed.json()["execution"]["affected"]


def test_read_response_carries_rows_and_chart(client, llm):
    llm.replies.append(plan_reply({"kind": "read.query", "intent": "low_stock"}))
    body = client.post("/api/assistant/plan", json={"message": "Show low stock"}, headers=HEADERS).json()
    assert body["status"] == "read_only_response"
    assert body["readResult"]["rows"][0]["sku"] == "WID-001"
    assert body["readResult"]["chartData"]["type"] == "bar"


def test_execute_error_statuses(client):
    missing = client.post("/api/assistant/execute", json={}, headers=HEADERS)
    assert missing.status_code == 400
    assert missing.json()["code"] == "INVALID_REQUEST"

    unknown = client.post("/api/assistant/execute", json={"runId": "nope"}, headers=HEADERS)
    assert unknown.status_code == 404
    assert unknown.json()["status"] == "failed"


def test_model_failure_is_a_persisted_failed_run(client, llm):
    llm.replies.append("not json at all")
    body = client.post("/api/assistant/plan", json={"message": "Show low stock"}, headers=HEADERS).json()
    assert body["status"] == "failed"
    assert body["runId"]
    fetched = client.get(f"/api/assistant/runs/{body['runId']}", headers=HEADERS).json()
    assert fetched["status"] == "failed"


def test_import_builds_no_application():
    assert not hasattr(storesync.app, "app")


def test_rejected_execute_names_the_run(client, llm):
    llm.replies.append(plan_reply({"kind": "read.query", "intent": "low_stock"}))
    run_id = client.post("/api/assistant/plan", json={"message": "Show low stock"}, headers=HEADERS).json()["runId"]

    response = client.post("/api/assistant/execute", json={"runId": run_id}, headers=HEADERS)
    assert response.status_code == 400
    assert response.json() == {
        "runId": run_id,
        "status": "failed",
        "code": "RUN_NOT_EXECUTABLE",
        "assistantMessage": 'Run is not executable in status "read_only_response".',
    }
