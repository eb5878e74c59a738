"""Persistence for assistant runs and their action rows.

A run moves through a small forward-only state machine. Every status change is
one conditional UPDATE keyed on the expected current status, so two requests
racing on the same run cannot both succeed; the loser sees zero matched rows.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .db_models import CommandAction, CommandRun, utcnow
from .errors import RunTransitionError, StoreError

logger = logging.getLogger("storesync.runs")


class RunStatus(str, Enum):
    PROCESSING = "processing"
    NEEDS_CLARIFICATION = "needs_clarification"
    NEEDS_CONFIRMATION = "needs_confirmation"
    READ_ONLY_RESPONSE = "read_only_response"
    EXECUTED = "executed"
    FAILED = "failed"


class ActionStatus(str, Enum):
    PLANNED = "planned"
    VALIDATED = "validated"
    EXECUTED = "executed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: Dict[RunStatus, FrozenSet[RunStatus]] = {
    RunStatus.PROCESSING: frozenset(
        {
            RunStatus.NEEDS_CLARIFICATION,
            RunStatus.NEEDS_CONFIRMATION,
            RunStatus.READ_ONLY_RESPONSE,
            RunStatus.FAILED,
        }
    ),
    RunStatus.NEEDS_CONFIRMATION: frozenset({RunStatus.EXECUTED, RunStatus.FAILED}),
}

RUN_FIELDS = frozenset(
    {
        "assistant_message",
        "clarification",
        "normalized_intent",
        "execution_result",
        "error",
        "confirmed_at",
        "executed_at",
    }
)


def can_transition(from_status: RunStatus, to_status: RunStatus) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


@contextmanager
def _run_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("run store failed to %s: %s", operation, exc)
        raise StoreError(f"Unable to {operation}.") from exc


class RunStore:
    """SQLAlchemy-backed store for ai_command_runs and ai_command_actions."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def create_run(
        self,
        workspace_id: str,
        user_id: str,
        prompt: str,
        model: str,
        conversation_id: Optional[str] = None,
    ) -> CommandRun:
        try:
            with self._session_factory.begin() as session:
                run = CommandRun(
                    workspace_id=workspace_id,
                    user_id=user_id,
                    conversation_id=conversation_id,
                    prompt=prompt,
                    model=model,
                    status=RunStatus.PROCESSING.value,
                )
                session.add(run)
                session.flush()
        except SQLAlchemyError as exc:
            logger.error("user=%s workspace=%s run init failed: %s", user_id, workspace_id, exc)
            raise StoreError("Unable to initialize assistant run.") from exc
        logger.info("run=%s user=%s status=processing", run.id, user_id)
        return run

    def get_run(self, run_id: str, workspace_id: Optional[str] = None) -> Optional[CommandRun]:
        with _run_errors("load assistant run"), self._session_factory() as session:
            query = session.query(CommandRun).filter(CommandRun.id == run_id)
            if workspace_id is not None:
                query = query.filter(CommandRun.workspace_id == workspace_id)
            return query.first()

    def count_recent_runs(self, user_id: str, since: datetime) -> int:
        """Purpose: Count runs a user created since a cutoff, for rate limiting.
        Inputs/Outputs: Inputs are user id and cutoff; output is the row count.
        Side Effects / State: One aggregate query; correct across processes.
        Dependencies: ai_command_runs.created_at index.
        Failure Modes: Database errors raise StoreError.
        If Removed: A single user could issue unbounded model calls.
        Testing Notes: Runs older than the cutoff are not counted.
        """
        try:
            with self._session_factory() as session:
                return (
                    session.query(func.count(CommandRun.id))
                    .filter(CommandRun.user_id == user_id, CommandRun.created_at >= since)
                    .scalar()
                    or 0
                )
        except SQLAlchemyError as exc:
            raise StoreError("Unable to check the assistant rate limit.") from exc

    def transition(self, run_id: str, from_status: RunStatus, to_status: RunStatus, **values: Any) -> None:
        """Purpose: Move a run to a new status together with its message and payloads.
        Inputs/Outputs: Inputs are the run id, expected and target status, and column
            values (assistant_message, clarification, normalized_intent,
            execution_result, error, confirmed_at, executed_at); no return value.
        Side Effects / State: One conditional UPDATE; all columns change together.
        Dependencies: ALLOWED_TRANSITIONS.
        Failure Modes: Disallowed transitions, unknown columns, or zero matched rows
            raise RunTransitionError.
        If Removed: Runs stay in processing and confirmation cannot be tracked.
        Testing Notes: A second transition from the same status must raise.
        """
        if not can_transition(from_status, to_status):
            raise RunTransitionError(f"Transition {from_status.value} -> {to_status.value} is not allowed.")
        unknown = set(values) - RUN_FIELDS
        if unknown:
            raise RunTransitionError(f"Unknown run fields: {', '.join(sorted(unknown))}.")

        update = dict(values)
        update["status"] = to_status.value
        update["updated_at"] = utcnow()
        with _run_errors("update assistant run"), self._session_factory.begin() as session:
            matched = (
                session.query(CommandRun)
                .filter(CommandRun.id == run_id, CommandRun.status == from_status.value)
                .update(update, synchronize_session=False)
            )
        if not matched:
            raise RunTransitionError(f"Run {run_id} is no longer in status {from_status.value}.")
        logger.info("run=%s status=%s", run_id, to_status.value)

    def claim_for_execution(self, run_id: str) -> bool:
        """Stamp confirmed_at on an unclaimed needs_confirmation run; False if another request won."""
        now = utcnow()
        with _run_errors("claim assistant run"), self._session_factory.begin() as session:
            matched = (
                session.query(CommandRun)
                .filter(
                    CommandRun.id == run_id,
                    CommandRun.status == RunStatus.NEEDS_CONFIRMATION.value,
                    CommandRun.confirmed_at.is_(None),
                )
                .update({"confirmed_at": now, "updated_at": now}, synchronize_session=False)
            )
        return matched > 0

    def insert_action_rows(
        self,
        run: CommandRun,
        actions: List[Dict[str, Any]],
        primary_index: Optional[int] = None,
        resolved: Optional[Dict[str, Any]] = None,
        status: ActionStatus = ActionStatus.PLANNED,
        error: Optional[str] = None,
        result: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Purpose: Record every parsed action of a run in action_index order.
        Inputs/Outputs: Inputs are the run, encoded raw actions, the primary action's
            index and resolved payload, and the primary row's status/error/result.
        Side Effects / State: Inserts one row per action in one transaction. Only the
            primary row carries a resolved payload and the outcome status; the rest
            stay planned.
        Dependencies: CommandAction model.
        Failure Modes: Database errors raise StoreError.
        If Removed: Runs lose their audit trail and execute has nothing to load.
        Testing Notes: Non-primary rows must have resolved_payload None.
        """
        if not actions:
            return
        try:
            with self._session_factory.begin() as session:
                for index, payload in enumerate(actions):
                    is_primary = index == primary_index
                    session.add(
                        CommandAction(
                            run_id=run.id,
                            workspace_id=run.workspace_id,
                            user_id=run.user_id,
                            action_index=index,
                            kind=payload["kind"],
                            action_payload=payload,
                            resolved_payload=resolved if is_primary else None,
                            status=status.value if is_primary else ActionStatus.PLANNED.value,
                            error=error if is_primary else None,
                            result=result if is_primary else None,
                        )
                    )
        except SQLAlchemyError as exc:
            logger.error("run=%s action insert failed: %s", run.id, exc)
            raise StoreError("Unable to record assistant actions.") from exc

    def list_action_rows(self, run_id: str) -> List[CommandAction]:
        with _run_errors("load assistant actions"), self._session_factory() as session:
            return (
                session.query(CommandAction)
                .filter(CommandAction.run_id == run_id)
                .order_by(CommandAction.action_index)
                .all()
            )

    def primary_action_row(self, run_id: str) -> Optional[CommandAction]:
        """Lowest-indexed action row that carries a resolved payload."""
        with _run_errors("load assistant actions"), self._session_factory() as session:
            return (
                session.query(CommandAction)
                .filter(CommandAction.run_id == run_id, CommandAction.resolved_payload.isnot(None))
                .order_by(CommandAction.action_index)
                .first()
            )

    def finalize_action_row(
        self,
        action_id: str,
        status: ActionStatus,
        error: Optional[str] = None,
        result: Optional[Dict[str, Any]] = None,
    ) -> None:
        with _run_errors("update assistant action"), self._session_factory.begin() as session:
            session.query(CommandAction).filter(CommandAction.id == action_id).update(
                {"status": status.value, "error": error, "result": result, "updated_at": utcnow()},
                synchronize_session=False,
            )

    def list_conversation_runs(
        self,
        workspace_id: str,
        conversation_id: str,
        limit: int = 4,
        exclude_run_id: Optional[str] = None,
    ) -> List[CommandRun]:
        """Most recent runs of a conversation, returned oldest first."""
        with _run_errors("load conversation history"), self._session_factory() as session:
            query = session.query(CommandRun).filter(
                CommandRun.workspace_id == workspace_id,
                CommandRun.conversation_id == conversation_id,
            )
            if exclude_run_id is not None:
                query = query.filter(CommandRun.id != exclude_run_id)
            rows = (
                query.order_by(CommandRun.created_at.desc())
                .limit(limit)
                .all()
            )
        return list(reversed(rows))
