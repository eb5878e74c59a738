from __future__ import annotations

import logging
from typing import Dict, List, Optional

import google.generativeai as genai

try:  # Prefer typed enums when available
    from google.generativeai import types as genai_types

    DEFAULT_SAFETY_SETTINGS = [
        {
            "category": genai_types.HarmCategory.HARM_CATEGORY_HARASSMENT,
            "threshold": genai_types.HarmBlockThreshold.BLOCK_NONE,
        },
        {
            "category": genai_types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
            "threshold": genai_types.HarmBlockThreshold.BLOCK_NONE,
        },
        {
            "category": genai_types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
            "threshold": genai_types.HarmBlockThreshold.BLOCK_NONE,
        },
    ]
except (ImportError, AttributeError):  # pragma: no cover - older SDKs expose string names only
    DEFAULT_SAFETY_SETTINGS = [
        {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_NONE"},
        {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_NONE"},
        {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_NONE"},
    ]

from .config import Settings
from .errors import ModelRequestError

logger = logging.getLogger("storesync.gemini")

INTENT_TEMPERATURE = 0.1
INTENT_MAX_OUTPUT_TOKENS = 700


class GeminiClient:
    """Single-shot completion boundary over the Gemini SDK."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Configure the Gemini SDK and initialize the model cache.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Configures the SDK API key and caches the default model.
        Dependencies: Uses google.generativeai and Settings from config.
        Failure Modes: Raises ValueError if the API key or model name is missing.
        If Removed: Planning cannot call the model at all.
        Testing Notes: Validate that a missing key raises ValueError.
        """
        # Configure API key and seed default model cache.
        self._settings = settings
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required")
        genai.configure(api_key=settings.gemini_api_key)
        self._models: Dict[str, genai.GenerativeModel] = {}
        self._default_model = _normalize_model_name(settings.gemini_model)
        if not self._default_model:
            raise ValueError("Gemini model name is required")

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        history: Optional[List[Dict[str, str]]] = None,
        temperature: float = INTENT_TEMPERATURE,
        max_output_tokens: int = INTENT_MAX_OUTPUT_TOKENS,
    ) -> str:
        """Purpose: Run one completion call for a system contract plus user prompt.
        Inputs/Outputs: Inputs are the system prompt, user prompt, and optional prior
            turns as {"role": "user"|"model", "text": ...}; output is the stripped text.
        Side Effects / State: One network call; may add a model to the cache.
        Dependencies: Uses build_contents and genai.GenerativeModel.generate_content.
        Failure Modes: Transport/SDK errors and empty replies raise ModelRequestError.
            No retries are attempted here.
        If Removed: The orchestrator has no way to obtain structured intents.
        Testing Notes: Swap in a fake exposing the same method for canned replies.
        """
        contents = build_contents(user_prompt, history)
        model = self._model(self._default_model, system_prompt)
        try:
            response = model.generate_content(
                contents,
                generation_config={
                    "temperature": temperature,
                    "max_output_tokens": max_output_tokens,
                },
                safety_settings=DEFAULT_SAFETY_SETTINGS,
            )
        except Exception as exc:  # SDK surfaces transport failures as assorted types
            logger.error("model=%s request failed: %s", self._default_model, exc)
            raise ModelRequestError(f"LLM request failed: {exc}") from exc

        try:
            text: Optional[str] = getattr(response, "text", None)
        except ValueError as exc:
            # .text raises when the candidate was blocked or has no parts.
            raise ModelRequestError("LLM returned an empty response.") from exc
        text = (text or "").strip()
        if not text:
            raise ModelRequestError("LLM returned an empty response.")
        logger.debug("model=%s reply_chars=%d", self._default_model, len(text))
        return text

    def _model(self, model_name: str, system_instruction: str) -> genai.GenerativeModel:
        # The system contract varies with the catalog, so cache by both keys.
        cache_key = f"{model_name}:{hash(system_instruction)}"
        if cache_key not in self._models:
            self._models.clear()
            self._models[cache_key] = genai.GenerativeModel(model_name, system_instruction=system_instruction)
        return self._models[cache_key]


def build_contents(user_prompt: str, history: Optional[List[Dict[str, str]]] = None) -> list:
    """Purpose: Convert prior turns and the current prompt into Gemini chat contents.
    Inputs/Outputs: Input is the prompt and optional history; output is a contents list.
    Side Effects / State: None.
    Dependencies: Used by GeminiClient.complete.
    Failure Modes: Turns with blank text are skipped; unknown roles become "user".
    If Removed: Conversation context cannot reach the model.
    Testing Notes: History order is preserved and the prompt is always the last entry.
    """
    # Role-tag each turn, then append the current prompt.
    contents: list = []
    for turn in history or []:
        text = (turn.get("text") or "").strip()
        if not text:
            continue
        role = "model" if turn.get("role") == "model" else "user"
        contents.append({"role": role, "parts": [{"text": text}]})
    contents.append({"role": "user", "parts": [{"text": user_prompt}]})
    return contents


def _normalize_model_name(name: Optional[str]) -> str:
    """Purpose: Normalize model names by stripping prefix and whitespace.
    Inputs/Outputs: Input is a model name string; output is normalized name.
    Side Effects / State: None.
    Dependencies: None; used by GeminiClient.
    Failure Modes: Returns empty string for falsy input.
    If Removed: Model selection may use invalid names and fail.
    Testing Notes: Ensure "models/foo" becomes "foo" and whitespace is trimmed.
    """
    # Strip "models/" prefix and whitespace.
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned
