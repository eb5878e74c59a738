from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .actions import ACTION_KINDS, READ_INTENTS, Action, parse_actions
from .catalog import CatalogSnapshot
from .errors import ModelRequestError, ModelResponseParseError, PromptRejected
from .prompt_loader import load_prompt, render_prompt
from .utils import as_string, parse_model_json

logger = logging.getLogger("storesync.intent")

INTENT_PROMPT_FILE = "intent_parser.txt"

ORDER_WORD_RE = re.compile(r"\border\b")
FORBIDDEN_VERB_RE = re.compile(r"\b(delete|remove|edit|update|modify|change)\b")
CREATE_VERB_RE = re.compile(r"\b(create|make|record|new)\b")


@dataclass
class ModelPlan:
    """Model reply after tolerant parsing and schema validation."""
    assistant_message: Optional[str]
    actions: List[Action] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)


def validate_prompt(message: Optional[str], max_length: int) -> str:
    """Purpose: Trim and bound a prompt before anything is persisted or sent.
    Inputs/Outputs: Input is the raw message and the length ceiling; output is the
        trimmed prompt.
    Side Effects / State: None.
    Dependencies: PromptRejected from errors.
    Failure Modes: Empty or over-ceiling prompts raise PromptRejected.
    If Removed: Oversized prompts reach the model and inflate cost.
    Testing Notes: A prompt of exactly max_length characters is accepted.
    """
    prompt = (message or "").strip()
    if not prompt:
        raise PromptRejected("Please enter a prompt.")
    if len(prompt) > max_length:
        raise PromptRejected(f"Prompt is too long. Keep it within {max_length} characters.")
    return prompt


def looks_like_order_edit_or_delete(prompt: str) -> bool:
    """True when a prompt asks to change an existing order rather than create one."""
    lowered = prompt.lower()
    return (
        bool(ORDER_WORD_RE.search(lowered))
        and bool(FORBIDDEN_VERB_RE.search(lowered))
        and not CREATE_VERB_RE.search(lowered)
    )


def build_system_prompt(template: str, catalog: CatalogSnapshot, hint_limit: int = 50) -> str:
    """Purpose: Render the intent-parser contract with bounded catalog hints.
    Inputs/Outputs: Inputs are the template text, snapshot, and hint cap; output is the
        system prompt.
    Side Effects / State: None.
    Dependencies: render_prompt, CatalogSnapshot hint helpers, ACTION_KINDS, READ_INTENTS.
    Failure Modes: None; empty catalogs render "none".
    If Removed: The model has no contract and no vocabulary to bias references.
    Testing Notes: Hints never exceed hint_limit entries per entity type.
    """
    product_hints = ", ".join(catalog.product_hints(hint_limit))
    location_hints = ", ".join(catalog.location_hints(hint_limit))
    return render_prompt(
        template,
        {
            "ACTION_KINDS": ", ".join(ACTION_KINDS),
            "READ_INTENTS": ", ".join(READ_INTENTS),
            "PRODUCT_HINTS": product_hints or "none",
            "LOCATION_HINTS": location_hints or "none",
        },
    )


class IntentExtractor:
    """Turns a prompt into a ModelPlan through one completion call."""

    def __init__(self, llm, prompts_dir: Path, hint_limit: int = 50) -> None:
        self._llm = llm
        self._template_path = prompts_dir / INTENT_PROMPT_FILE
        self._hint_limit = hint_limit

    def extract(
        self,
        prompt: str,
        catalog: CatalogSnapshot,
        history: Optional[List[Dict[str, str]]] = None,
    ) -> ModelPlan:
        """Purpose: Obtain and parse a structured intent for one prompt.
        Inputs/Outputs: Inputs are the validated prompt, snapshot, and optional prior
            turns; output is a ModelPlan with schema-valid actions only.
        Side Effects / State: Exactly one model call; no retries.
        Dependencies: llm.complete, build_system_prompt, parse_model_json, parse_actions.
        Failure Modes: Transport failures and empty replies raise ModelRequestError;
            replies without a recoverable JSON object raise ModelResponseParseError.
        If Removed: Planning has no source of intents.
        Testing Notes: Use a fake llm returning fenced or prose-wrapped JSON.
        """
        # Build the contract, call once, then parse tolerantly.
        system_prompt = build_system_prompt(load_prompt(self._template_path), catalog, self._hint_limit)
        text = (self._llm.complete(system_prompt, prompt, history) or "").strip()
        if not text:
            raise ModelRequestError("LLM returned an empty response.")

        parsed = parse_model_json(text)
        if not isinstance(parsed, dict):
            logger.warning("model reply not parseable: %s", text[:200])
            raise ModelResponseParseError("LLM response could not be parsed as JSON.")

        actions = parse_actions(parsed.get("actions"))
        raw_count = len(parsed["actions"]) if isinstance(parsed.get("actions"), list) else 0
        if raw_count != len(actions):
            logger.info("dropped %d malformed action(s) from model reply", raw_count - len(actions))
        return ModelPlan(
            assistant_message=as_string(parsed.get("assistant_message")),
            actions=actions,
            raw=parsed,
        )
