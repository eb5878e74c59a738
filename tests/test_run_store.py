from datetime import timedelta

import pytest
from sqlalchemy import text

from storesync.db_models import utcnow
from storesync.errors import RunTransitionError, StoreError
from storesync.run_store import ActionStatus, RunStatus, can_transition

from conftest import USER, WORKSPACE


def _run(run_store, conversation_id=None, prompt="show low stock"):
    return run_store.create_run(WORKSPACE, USER, prompt, "gemini-test", conversation_id)


def test_transition_table():
    assert can_transition(RunStatus.PROCESSING, RunStatus.NEEDS_CONFIRMATION)
    assert can_transition(RunStatus.NEEDS_CONFIRMATION, RunStatus.EXECUTED)
    assert not can_transition(RunStatus.PROCESSING, RunStatus.EXECUTED)
    assert not can_transition(RunStatus.EXECUTED, RunStatus.FAILED)
    assert not can_transition(RunStatus.FAILED, RunStatus.PROCESSING)


def test_transition_persists_values(run_store):
    run = _run(run_store)
    run_store.transition(
        run.id,
        RunStatus.PROCESSING,
        RunStatus.NEEDS_CLARIFICATION,
        assistant_message="Which one?",
        clarification={"reason": "Which one?"},
    )
    stored = run_store.get_run(run.id, WORKSPACE)
    assert stored.status == "needs_clarification"
    assert stored.clarification == {"reason": "Which one?"}
    assert run_store.get_run(run.id, "other-ws") is None


def test_transition_from_stale_status_raises(run_store):
    run = _run(run_store)
    run_store.transition(run.id, RunStatus.PROCESSING, RunStatus.FAILED, error="boom")
    with pytest.raises(RunTransitionError):
        run_store.transition(run.id, RunStatus.PROCESSING, RunStatus.READ_ONLY_RESPONSE)


def test_disallowed_transition_and_unknown_fields_raise(run_store):
    run = _run(run_store)
    with pytest.raises(RunTransitionError):
        run_store.transition(run.id, RunStatus.PROCESSING, RunStatus.EXECUTED)
    with pytest.raises(RunTransitionError):
        run_store.transition(run.id, RunStatus.PROCESSING, RunStatus.FAILED, prompt="rewrite")


def test_claim_succeeds_only_once(run_store):
    run = _run(run_store)
    assert not run_store.claim_for_execution(run.id)
    run_store.transition(run.id, RunStatus.PROCESSING, RunStatus.NEEDS_CONFIRMATION)
    assert run_store.claim_for_execution(run.id)
    assert not run_store.claim_for_execution(run.id)
    assert run_store.get_run(run.id).confirmed_at is not None


def test_only_primary_row_carries_resolved_payload(run_store):
    run = _run(run_store)
    actions = [{"kind": "read.query", "intent": "low_stock"}, {"kind": "order.create_restock", "product_ref": "w"}]
    resolved = {"kind": "order.create_restock", "product_id": "p", "location_id": "l", "quantity": 1, "note": "n"}
    run_store.insert_action_rows(run, actions, primary_index=1, resolved=resolved, status=ActionStatus.VALIDATED)

    rows = run_store.list_action_rows(run.id)
    assert [(row.action_index, row.status, row.resolved_payload) for row in rows] == [
        (0, "planned", None),
        (1, "validated", resolved),
    ]
    primary = run_store.primary_action_row(run.id)
    assert primary.action_index == 1

    run_store.finalize_action_row(primary.id, ActionStatus.EXECUTED, result={"ok": True})
    assert run_store.primary_action_row(run.id).status == "executed"


def test_planned_rows_have_no_primary(run_store):
    run = _run(run_store)
    run_store.insert_action_rows(run, [{"kind": "product.archive", "product_ref": "a"}])
    assert run_store.primary_action_row(run.id) is None


def test_recent_run_count(run_store):
    _run(run_store)
    _run(run_store)
    assert run_store.count_recent_runs(USER, utcnow() - timedelta(minutes=5)) == 2
    assert run_store.count_recent_runs(USER, utcnow() + timedelta(minutes=5)) == 0
    assert run_store.count_recent_runs("someone-else", utcnow() - timedelta(minutes=5)) == 0


def test_conversation_runs_oldest_first(run_store):
    first = _run(run_store, "conv-1", "first")
    second = _run(run_store, "conv-1", "second")
    current = _run(run_store, "conv-1", "third")
    _run(run_store, "conv-2", "elsewhere")
    runs = run_store.list_conversation_runs(WORKSPACE, "conv-1", exclude_run_id=current.id)
    assert [run.id for run in runs] == [first.id, second.id]


def test_database_errors_surface_as_store_errors(run_store, session_factory):
    run = _run(run_store)
    with session_factory.begin() as session:
        session.execute(text("DROP TABLE ai_command_actions"))

    with pytest.raises(StoreError, match="Unable to load assistant actions."):
        run_store.primary_action_row(run.id)
    with pytest.raises(StoreError, match="Unable to update assistant action."):
        run_store.finalize_action_row("missing", ActionStatus.FAILED, error="boom")
