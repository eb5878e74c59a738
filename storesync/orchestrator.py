"""Plan and execute entry points for assistant commands.

Planning runs as an ordered list of steps over a PlanContext. A step that
reaches a terminal outcome persists it and sets ``context.response``; the
runner then skips every remaining step. Execution is a straight-line sequence
guarded by a conditional claim on the run row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from .actions import (
    Action,
    ResolvedAction,
    action_to_dict,
    decode_resolved_action,
    is_mutating,
    select_primary,
)
from .adk_runtime import AdkAgent, AdkStep
from .catalog import CatalogSnapshot, fetch_catalog
from .config import Settings
from .db_models import CommandAction, CommandRun, utcnow
from .errors import (
    AssistantError,
    RateLimited,
    RequestRejected,
    RunInProgress,
    RunNotExecutable,
    RunNotFound,
    RunTransitionError,
    StoreError,
)
from .intent_extractor import IntentExtractor, ModelPlan, looks_like_order_edit_or_delete, validate_prompt
from .inventory_store import InventoryStore
from .models import (
    ActionPreview,
    AssistantResponse,
    Clarification,
    ClarificationOption,
    ExecutionResult,
    ReadResult,
)
from .mutating_executor import ExecutionOutcome, execute_mutating_action
from .preflight import preflight_validate
from .read_executor import execute_read_action
from .resolver import resolve_action
from .run_store import ActionStatus, RunStatus, RunStore

logger = logging.getLogger("storesync.orchestrator")

ORDER_IMMUTABLE_MESSAGE = (
    "Orders are immutable. I can create compensating orders (sale/restock/transfer), "
    "but I cannot edit or delete existing orders."
)
ORDER_COMPENSATION_OPTIONS = [
    {"label": "Compensating restock", "value": "Create restock order for [qty] [product] at [location]"},
    {"label": "Transfer stock", "value": "Create transfer order for [qty] [product] from [A] to [B]"},
]
NO_ACTION_MESSAGE = (
    "I could not map that request to a supported action. Try including product/location/quantity details."
)
MULTI_WRITE_MESSAGE = (
    "Please request only one write action per prompt. I can safely execute one mutating action at a time."
)
MISSING_KEY_MESSAGE = "Set GEMINI_API_KEY before using the AI assistant."
WRITES_DISABLED_MESSAGE = (
    "AI write execution is disabled. Set AI_ASSISTANT_WRITES_ENABLED=true to enable writes."
)
PLAN_FAILED_MESSAGE = "Assistant planning failed."
EXECUTION_FAILED_MESSAGE = "Execution failed."
HISTORY_RUNS = 4


class ExecutionBlocked(Exception):
    """A claimed run that must fail without attempting the mutation."""

    def __init__(self, message: str, error: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.error = error


@dataclass(frozen=True)
class Identity:
    """Authenticated caller: a stable user id and the workspace it acts in."""
    user_id: str
    workspace_id: str


@dataclass
class PlanContext:
    """Mutable context passed through each plan step."""
    identity: Identity
    message: str
    conversation_id: Optional[str] = None
    prompt: str = ""
    run: Optional[CommandRun] = None
    catalog: Optional[CatalogSnapshot] = None
    plan: Optional[ModelPlan] = None
    primary_index: Optional[int] = None
    primary: Optional[Action] = None
    resolved: Optional[ResolvedAction] = None
    response: Optional[AssistantResponse] = None
    thinking_logs: List[Dict[str, str]] = field(default_factory=list)

    @property
    def finished(self) -> bool:
        return self.response is not None

    @property
    def encoded_actions(self) -> List[Dict[str, Any]]:
        return [action_to_dict(action) for action in (self.plan.actions if self.plan else [])]

    def log(self, event: str, detail: str, status: str = "success") -> None:
        """Append a structured trace entry and mirror it to the module logger."""
        self.thinking_logs.append({"event": event, "detail": detail, "status": status})
        run_id = self.run.id if self.run is not None else "-"
        logger.debug("run=%s event=%s status=%s detail=%s", run_id, event, status, detail)


def _clarification_payload(reason: str, options: Optional[List[Dict[str, str]]] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"reason": reason}
    if options:
        payload["options"] = options
    return payload


def _clarification_model(payload: Optional[Dict[str, Any]]) -> Optional[Clarification]:
    if not payload:
        return None
    options = payload.get("options")
    return Clarification(
        reason=payload.get("reason", ""),
        options=[ClarificationOption(**option) for option in options] if options is not None else None,
    )


class AssistantOrchestrator:
    """Two-phase plan/execute protocol over the run store and inventory store."""

    def __init__(
        self,
        settings: Settings,
        store: InventoryStore,
        run_store: RunStore,
        llm=None,
    ) -> None:
        """Purpose: Wire the orchestrator and build the plan step pipeline.
        Inputs/Outputs: Inputs are Settings, both stores, and an optional completion
            client exposing complete(system_prompt, user_prompt, history).
        Side Effects / State: Builds the AdkAgent; no I/O.
        Dependencies: IntentExtractor, AdkAgent, and the step methods below.
        Failure Modes: None at construction. A missing llm fails plans at run time.
        If Removed: Neither endpoint can do anything.
        Testing Notes: Pass a fake llm with canned text to exercise every outcome.
        """
        self._settings = settings
        self._store = store
        self._runs = run_store
        self._llm = llm
        self._extractor = IntentExtractor(llm, settings.prompts_dir, settings.catalog_hint_limit) if llm else None
        self._agent = AdkAgent(
            [
                AdkStep("validate_input", self._step_validate_input),
                AdkStep("rate_limit", self._step_rate_limit),
                AdkStep("create_run", self._step_create_run),
                AdkStep("order_policy_guard", self._step_order_policy_guard),
                AdkStep(
                    "credentials_guard",
                    self._step_credentials_guard,
                    skip_if=lambda context: self._extractor is not None,
                ),
                AdkStep("fetch_catalog", self._step_fetch_catalog),
                AdkStep("extract_intent", self._step_extract_intent),
                AdkStep("batch_policy", self._step_batch_policy),
                AdkStep("resolve_references", self._step_resolve_references),
                AdkStep("preflight", self._step_preflight),
                AdkStep("respond", self._step_respond),
                AdkStep("record_outcome", self._step_record_outcome, always_run=True),
            ],
            stop_when=lambda context: context.finished,
        )

    # Plan

    def plan(self, identity: Identity, message: str, conversation_id: Optional[str] = None) -> AssistantResponse:
        """Purpose: Turn one prompt into a terminal run outcome.
        Inputs/Outputs: Inputs are the caller identity, prompt text, and optional
            conversation id; output is an AssistantResponse.
        Side Effects / State: Creates one run, may insert action rows, performs at
            most one model call, and may serve a read query. Never mutates the domain.
        Dependencies: The plan step pipeline.
        Failure Modes: RequestRejected propagates before any run exists. Any other
            failure after the run exists is persisted as a failed run and returned.
        If Removed: No prompt can be planned.
        Testing Notes: Every returned response corresponds to a persisted terminal status.
        """
        context = PlanContext(identity=identity, message=message, conversation_id=conversation_id)
        try:
            self._agent.run(context)
        except RequestRejected:
            raise
        except AssistantError as exc:
            if context.run is None:
                raise
            context.log("plan", str(exc), status="error")
            return self._fail_plan(context, str(exc) or PLAN_FAILED_MESSAGE)
        except Exception:
            if context.run is None:
                raise
            logger.exception("run=%s planning crashed", context.run.id)
            return self._fail_plan(context, PLAN_FAILED_MESSAGE)

        if context.response is None:
            # Every path through respond sets a response; reaching here is a wiring bug.
            return self._fail_plan(context, PLAN_FAILED_MESSAGE)
        return context.response

    def _step_validate_input(self, context: PlanContext) -> None:
        context.prompt = validate_prompt(context.message, self._settings.max_prompt_length)

    def _step_rate_limit(self, context: PlanContext) -> None:
        """Purpose: Enforce the per-user planning ceiling before a run is created.
        Inputs/Outputs: Input is the context; no return value.
        Side Effects / State: One count query.
        Dependencies: RunStore.count_recent_runs.
        Failure Modes: Raises RateLimited when the ceiling is reached. A failing count
            query is logged and the check is skipped.
        If Removed: A single user could issue unbounded model calls.
        Testing Notes: Seed max runs inside the window and expect RateLimited.
        """
        window = self._settings.rate_limit_window_sec
        limit = self._settings.rate_limit_max_requests
        since = utcnow() - timedelta(seconds=window)
        try:
            recent = self._runs.count_recent_runs(context.identity.user_id, since)
        except StoreError as exc:
            logger.warning("user=%s rate limit check skipped: %s", context.identity.user_id, exc)
            return
        if recent >= limit:
            minutes = max(1, window // 60)
            raise RateLimited(
                f"Rate limit reached. Try again in a few minutes (max {limit} prompts per {minutes} minutes)."
            )

    def _step_create_run(self, context: PlanContext) -> None:
        context.run = self._runs.create_run(
            workspace_id=context.identity.workspace_id,
            user_id=context.identity.user_id,
            prompt=context.prompt,
            model=self._settings.gemini_model,
            conversation_id=context.conversation_id,
        )
        context.log("create_run", f"prompt_chars={len(context.prompt)}")

    def _step_order_policy_guard(self, context: PlanContext) -> None:
        # Deny-by-pattern; the model is never consulted for order edits.
        if not looks_like_order_edit_or_delete(context.prompt):
            return
        clarification = _clarification_payload(ORDER_IMMUTABLE_MESSAGE, ORDER_COMPENSATION_OPTIONS)
        self._runs.transition(
            context.run.id,
            RunStatus.PROCESSING,
            RunStatus.NEEDS_CLARIFICATION,
            assistant_message=ORDER_IMMUTABLE_MESSAGE,
            clarification=clarification,
        )
        context.log("order_policy_guard", "order edit/delete blocked", status="blocked")
        context.response = AssistantResponse(
            runId=context.run.id,
            status=RunStatus.NEEDS_CLARIFICATION.value,
            assistantMessage=ORDER_IMMUTABLE_MESSAGE,
            clarification=_clarification_model(clarification),
        )

    def _step_credentials_guard(self, context: PlanContext) -> None:
        self._runs.transition(
            context.run.id,
            RunStatus.PROCESSING,
            RunStatus.FAILED,
            assistant_message=MISSING_KEY_MESSAGE,
            error=MISSING_KEY_MESSAGE,
        )
        context.response = self._failed(context.run.id, MISSING_KEY_MESSAGE)

    def _step_fetch_catalog(self, context: PlanContext) -> None:
        context.catalog = fetch_catalog(self._store, context.identity.workspace_id)
        context.log(
            "fetch_catalog",
            f"products={len(context.catalog.products)} locations={len(context.catalog.locations)}",
        )

    def _step_extract_intent(self, context: PlanContext) -> None:
        history = self._conversation_history(context)
        context.plan = self._extractor.extract(context.prompt, context.catalog, history)
        context.log("extract_intent", f"actions={len(context.plan.actions)} history_turns={len(history)}")

    def _conversation_history(self, context: PlanContext) -> List[Dict[str, str]]:
        if not context.conversation_id:
            return []
        runs = self._runs.list_conversation_runs(
            context.identity.workspace_id,
            context.conversation_id,
            limit=HISTORY_RUNS,
            exclude_run_id=context.run.id,
        )
        turns: List[Dict[str, str]] = []
        for run in runs:
            turns.append({"role": "user", "text": run.prompt})
            if run.assistant_message:
                turns.append({"role": "model", "text": run.assistant_message})
        return turns

    def _step_batch_policy(self, context: PlanContext) -> None:
        """Purpose: Reject empty batches and batches with more than one write.
        Inputs/Outputs: Input is the context with a parsed plan; no return value.
        Side Effects / State: On rejection, inserts planned action rows (multi-write
            only) and moves the run to needs_clarification.
        Dependencies: select_primary and is_mutating from actions.
        Failure Modes: Store errors propagate to plan().
        If Removed: Multiple writes could be confirmed as one run.
        Testing Notes: Two mutating actions yield planned rows and no resolved payload.
        """
        actions = context.plan.actions
        if not actions:
            message = context.plan.assistant_message or NO_ACTION_MESSAGE
            self._clarify(context, message, normalized_intent={"raw": context.plan.raw})
            return

        writes = sum(1 for action in actions if is_mutating(action))
        if writes > 1:
            self._runs.insert_action_rows(context.run, context.encoded_actions)
            self._clarify(context, MULTI_WRITE_MESSAGE, normalized_intent={"actions": context.encoded_actions})
            return

        context.primary_index, context.primary = select_primary(actions)

    def _step_resolve_references(self, context: PlanContext) -> None:
        outcome = resolve_action(context.primary, context.catalog)
        if outcome.clarification is None:
            context.resolved = outcome.action
            context.log("resolve_references", context.resolved.summary)
            return

        options = [{"label": option.label, "value": option.value} for option in outcome.clarification.options]
        self._runs.insert_action_rows(context.run, context.encoded_actions)
        payload = _clarification_payload(outcome.clarification.message)
        # Resolution clarifications always carry an options list, possibly empty.
        payload["options"] = options
        self._clarify(
            context,
            outcome.clarification.message,
            clarification=payload,
            normalized_intent={"actions": context.encoded_actions},
        )

    def _step_preflight(self, context: PlanContext) -> None:
        result = preflight_validate(self._store, context.identity.workspace_id, context.resolved, context.catalog)
        if result.ok:
            return
        message = result.message or "Preflight validation failed."
        self._runs.insert_action_rows(
            context.run,
            context.encoded_actions,
            primary_index=context.primary_index,
            resolved=action_to_dict(context.resolved),
            status=ActionStatus.FAILED,
            error=message,
        )
        self._runs.transition(
            context.run.id,
            RunStatus.PROCESSING,
            RunStatus.FAILED,
            assistant_message=message,
            error=message,
            normalized_intent=self._normalized_intent(context),
        )
        context.log("preflight", message, status="failed")
        context.response = self._failed(context.run.id, message)

    def _step_respond(self, context: PlanContext) -> None:
        if not is_mutating(context.resolved):
            self._respond_read(context)
            return

        if not self._settings.writes_enabled:
            self._runs.insert_action_rows(
                context.run,
                context.encoded_actions,
                primary_index=context.primary_index,
                resolved=action_to_dict(context.resolved),
                status=ActionStatus.FAILED,
                error=WRITES_DISABLED_MESSAGE,
            )
            self._runs.transition(
                context.run.id,
                RunStatus.PROCESSING,
                RunStatus.FAILED,
                assistant_message=WRITES_DISABLED_MESSAGE,
                error=WRITES_DISABLED_MESSAGE,
                normalized_intent=self._normalized_intent(context),
            )
            context.response = self._failed(context.run.id, WRITES_DISABLED_MESSAGE)
            return

        resolved = context.resolved
        message = context.plan.assistant_message or f"Prepared one action: {resolved.summary}. Confirm to execute."
        self._runs.insert_action_rows(
            context.run,
            context.encoded_actions,
            primary_index=context.primary_index,
            resolved=action_to_dict(resolved),
            status=ActionStatus.VALIDATED,
        )
        self._runs.transition(
            context.run.id,
            RunStatus.PROCESSING,
            RunStatus.NEEDS_CONFIRMATION,
            assistant_message=message,
            normalized_intent=self._normalized_intent(context),
        )
        context.log("respond", f"awaiting confirmation kind={resolved.kind}")
        context.response = AssistantResponse(
            runId=context.run.id,
            status=RunStatus.NEEDS_CONFIRMATION.value,
            assistantMessage=message,
            actionPreview=ActionPreview(kind=resolved.kind, summary=resolved.summary, warnings=list(resolved.warnings)),
        )

    def _respond_read(self, context: PlanContext) -> None:
        outcome = execute_read_action(self._store, context.identity.workspace_id, context.resolved)
        payload = outcome.payload()
        self._runs.insert_action_rows(
            context.run,
            context.encoded_actions,
            primary_index=context.primary_index,
            resolved=action_to_dict(context.resolved),
            status=ActionStatus.EXECUTED,
            result=payload,
        )
        self._runs.transition(
            context.run.id,
            RunStatus.PROCESSING,
            RunStatus.READ_ONLY_RESPONSE,
            assistant_message=outcome.message,
            execution_result=payload,
            normalized_intent=self._normalized_intent(context),
        )
        context.log("respond", f"read intent={context.resolved.intent} rows={len(outcome.rows)}")
        context.response = AssistantResponse(
            runId=context.run.id,
            status=RunStatus.READ_ONLY_RESPONSE.value,
            assistantMessage=outcome.message,
            readResult=ReadResult(**payload),
        )

    def _step_record_outcome(self, context: PlanContext) -> None:
        status = context.response.status if context.response is not None else "-"
        failed_events = sum(1 for entry in context.thinking_logs if entry["status"] != "success")
        logger.info(
            "run=%s outcome=%s events=%d flagged=%d",
            context.run.id if context.run is not None else "-",
            status,
            len(context.thinking_logs),
            failed_events,
        )

    def _normalized_intent(self, context: PlanContext) -> Dict[str, Any]:
        intent: Dict[str, Any] = {"actions": context.encoded_actions}
        if context.resolved is not None:
            intent["resolved_action"] = action_to_dict(context.resolved)
        return intent

    def _clarify(
        self,
        context: PlanContext,
        message: str,
        clarification: Optional[Dict[str, Any]] = None,
        normalized_intent: Optional[Dict[str, Any]] = None,
    ) -> None:
        clarification = clarification or _clarification_payload(message)
        self._runs.transition(
            context.run.id,
            RunStatus.PROCESSING,
            RunStatus.NEEDS_CLARIFICATION,
            assistant_message=message,
            clarification=clarification,
            normalized_intent=normalized_intent,
        )
        context.log("clarify", message, status="needs_clarification")
        context.response = AssistantResponse(
            runId=context.run.id,
            status=RunStatus.NEEDS_CLARIFICATION.value,
            assistantMessage=message,
            clarification=_clarification_model(clarification),
        )

    def _fail_plan(self, context: PlanContext, message: str) -> AssistantResponse:
        try:
            self._runs.transition(
                context.run.id,
                RunStatus.PROCESSING,
                RunStatus.FAILED,
                assistant_message=message,
                error=message,
            )
        except RunTransitionError:
            logger.error("run=%s could not be marked failed; already terminal", context.run.id)
        return self._failed(context.run.id, message)

    @staticmethod
    def _failed(run_id: Optional[str], message: str, execution: Optional[ExecutionResult] = None) -> AssistantResponse:
        return AssistantResponse(
            runId=run_id,
            status=RunStatus.FAILED.value,
            assistantMessage=message,
            execution=execution,
        )

    # Execute

    def execute(self, identity: Identity, run_id: Optional[str]) -> AssistantResponse:
        """Purpose: Apply the confirmed action of a run exactly once.
        Inputs/Outputs: Inputs are the caller identity and run id; output is an
            AssistantResponse with the execution outcome.
        Side Effects / State: Claims the run, re-fetches the catalog, re-runs
            preflight, performs one store mutation, and persists executed or failed.
        Dependencies: RunStore, decode_resolved_action, preflight_validate,
            execute_mutating_action.
        Failure Modes: Unknown runs raise RunNotFound; non-confirmable runs raise
            RunNotExecutable; a lost claim raises RunInProgress. Store failures become
            a failed run; nothing is retried.
        If Removed: Confirmed actions never take effect.
        Testing Notes: A second execute after success replays the stored affected map.
        """
        run_id = (run_id or "").strip()
        if not run_id:
            raise RequestRejected("Missing runId.", code="INVALID_REQUEST")

        run = self._runs.get_run(run_id, identity.workspace_id)
        if run is None:
            raise RunNotFound("Assistant run not found.")
        if run.status == RunStatus.EXECUTED.value:
            return self._replay(run)
        if run.status != RunStatus.NEEDS_CONFIRMATION.value:
            raise RunNotExecutable(f'Run is not executable in status "{run.status}".', run_id=run.id)

        if not self._runs.claim_for_execution(run.id):
            latest = self._runs.get_run(run.id, identity.workspace_id)
            if latest is not None and latest.status == RunStatus.EXECUTED.value:
                return self._replay(latest)
            raise RunInProgress(
                "This run is already being executed. Re-query the run for its result.",
                run_id=run.id,
            )

        # Every failure past the claim ends the run and its action row.
        row: Optional[CommandAction] = None
        action: Optional[ResolvedAction] = None
        try:
            row = self._runs.primary_action_row(run.id)
            action = self._load_claimed_action(row)
            outcome = self._apply_action(identity.workspace_id, action)
        except ExecutionBlocked as blocked:
            return self._fail_execution(run.id, row.id if row is not None else None, blocked.message, blocked.error)
        except AssistantError as exc:
            message = str(exc) or EXECUTION_FAILED_MESSAGE
            logger.warning("run=%s kind=%s execution failed: %s", run.id, action.kind if action else "-", message)
            return self._fail_execution(
                run.id,
                row.id if row is not None else None,
                message,
                execution=ExecutionResult(succeeded=False, kind=action.kind if action else None, message=message),
            )
        except Exception:
            logger.exception("run=%s execution crashed", run.id)
            return self._fail_execution(
                run.id,
                row.id if row is not None else None,
                EXECUTION_FAILED_MESSAGE,
                execution=ExecutionResult(
                    succeeded=False,
                    kind=action.kind if action else None,
                    message=EXECUTION_FAILED_MESSAGE,
                ),
            )

        result = {"kind": action.kind, "message": outcome.message, "affected": outcome.affected}
        self._runs.finalize_action_row(row.id, ActionStatus.EXECUTED, result=result)
        self._runs.transition(
            run.id,
            RunStatus.NEEDS_CONFIRMATION,
            RunStatus.EXECUTED,
            assistant_message=outcome.message,
            execution_result=result,
            executed_at=utcnow(),
        )
        return AssistantResponse(
            runId=run.id,
            status=RunStatus.EXECUTED.value,
            assistantMessage=outcome.message,
            execution=ExecutionResult(
                succeeded=True,
                kind=action.kind,
                message=outcome.message,
                affected=outcome.affected,
            ),
        )

    def _load_claimed_action(self, row: Optional[CommandAction]) -> ResolvedAction:
        if row is None:
            raise ExecutionBlocked("No executable action found for this run.", "Missing action row.")
        action = decode_resolved_action(row.resolved_payload)
        if action is None or not is_mutating(action):
            raise ExecutionBlocked("Run does not contain a valid mutating action.", "Invalid resolved action payload.")
        return action

    def _apply_action(self, workspace_id: str, action: ResolvedAction) -> ExecutionOutcome:
        """Purpose: Re-validate a claimed action against live state and apply it.
        Inputs/Outputs: Inputs are the workspace id and the stored resolved action;
            output is the executor's ExecutionOutcome.
        Side Effects / State: One catalog fetch, one preflight read, one mutation.
        Dependencies: fetch_catalog, preflight_validate, execute_mutating_action.
        Failure Modes: Writes disabled or a failed preflight raise ExecutionBlocked;
            store and catalog failures propagate to execute().
        If Removed: execute() has no path from a claim to a mutation.
        Testing Notes: Drain stock between plan and execute to hit the preflight block.
        """
        if not self._settings.writes_enabled:
            raise ExecutionBlocked(WRITES_DISABLED_MESSAGE)
        catalog = fetch_catalog(self._store, workspace_id)
        check = preflight_validate(self._store, workspace_id, action, catalog)
        if not check.ok:
            raise ExecutionBlocked(check.message or "Preflight validation failed.")
        return execute_mutating_action(self._store, workspace_id, action, catalog)

    def _replay(self, run: CommandRun) -> AssistantResponse:
        stored = run.execution_result or {}
        return AssistantResponse(
            runId=run.id,
            status=RunStatus.EXECUTED.value,
            assistantMessage="This run was already executed.",
            execution=ExecutionResult(
                succeeded=True,
                kind=stored.get("kind"),
                message="Already executed.",
                affected=stored.get("affected") or {},
            ),
        )

    def _fail_execution(
        self,
        run_id: str,
        action_id: Optional[str],
        message: str,
        error: Optional[str] = None,
        execution: Optional[ExecutionResult] = None,
    ) -> AssistantResponse:
        if action_id is not None:
            self._runs.finalize_action_row(action_id, ActionStatus.FAILED, error=error or message)
        self._runs.transition(
            run_id,
            RunStatus.NEEDS_CONFIRMATION,
            RunStatus.FAILED,
            assistant_message=message,
            error=error or message,
        )
        return self._failed(run_id, message, execution)

    # Re-query

    def get_run(self, identity: Identity, run_id: str) -> AssistantResponse:
        """Rebuild the response of a persisted run, for callers that lost the original reply."""
        run = self._runs.get_run(run_id, identity.workspace_id)
        if run is None:
            raise RunNotFound("Assistant run not found.")

        response = AssistantResponse(
            runId=run.id,
            status=run.status,
            assistantMessage=run.assistant_message or "",
            clarification=_clarification_model(run.clarification),
        )
        if run.status == RunStatus.READ_ONLY_RESPONSE.value and run.execution_result:
            response.readResult = ReadResult(**run.execution_result)
        elif run.status == RunStatus.EXECUTED.value and run.execution_result:
            stored = run.execution_result
            response.execution = ExecutionResult(
                succeeded=True,
                kind=stored.get("kind"),
                message=stored.get("message"),
                affected=stored.get("affected") or {},
            )
        elif run.status == RunStatus.NEEDS_CONFIRMATION.value:
            row = self._runs.primary_action_row(run.id)
            action = decode_resolved_action(row.resolved_payload) if row is not None else None
            if action is not None:
                response.actionPreview = ActionPreview(
                    kind=action.kind,
                    summary=action.summary,
                    warnings=list(action.warnings),
                )
        return response
