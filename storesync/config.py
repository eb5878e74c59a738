from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class Settings:
    """Configuration container for the model, database, and assistant limits."""
    gemini_api_key: str
    gemini_model: str
    database_url: str
    prompts_dir: Path
    max_prompt_length: int = 1200
    rate_limit_window_sec: int = 300
    rate_limit_max_requests: int = 20
    writes_enabled: bool = False
    catalog_hint_limit: int = 50


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for the prompt directory.
    Failure Modes: Invalid integer env values raise ValueError.
    If Removed: App cannot configure the model, store, or limits and fails at startup.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve the prompt directory, then build Settings.
    prompts_dir = (BASE_DIR / "prompts").resolve()

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./storesync.db"),
        prompts_dir=prompts_dir,
        max_prompt_length=int(os.getenv("MAX_PROMPT_LENGTH", "1200")),
        rate_limit_window_sec=int(os.getenv("RATE_LIMIT_WINDOW_SEC", "300")),
        rate_limit_max_requests=int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "20")),
        writes_enabled=_env_flag("AI_ASSISTANT_WRITES_ENABLED"),
        catalog_hint_limit=int(os.getenv("CATALOG_HINT_LIMIT", "50")),
    )
