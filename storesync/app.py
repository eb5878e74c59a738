from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from .config import Settings, load_settings
from .db import build_engine, build_session_factory, init_db
from .deps import get_identity, get_orchestrator
from .errors import AssistantError, RequestRejected
from .gemini_client import GeminiClient
from .inventory_store import InventoryStore
from .models import AssistantResponse, ExecuteRequest, PlanRequest
from .orchestrator import AssistantOrchestrator, Identity
from .run_store import RunStore

BASE_DIR = Path(__file__).resolve().parent

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("storesync").setLevel(log_level)
logger = logging.getLogger("storesync.app")

ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


def _failure_body(code: str, message: str, run_id: Optional[str] = None) -> dict:
    return AssistantResponse(runId=run_id, status="failed", code=code, assistantMessage=message).dict(exclude_none=True)


def setup_exception_handlers(app: FastAPI) -> None:
    """Purpose: Map assistant errors to the failed-response JSON shape.
    Inputs/Outputs: Input is the FastAPI app; no return value.
    Side Effects / State: Registers exception handlers on the app.
    Dependencies: RequestRejected status codes and failure codes.
    Failure Modes: None.
    If Removed: Rejections surface as FastAPI's default error bodies.
    Testing Notes: An over-length prompt returns 400 with status "failed".
    """

    @app.exception_handler(RequestRejected)
    async def rejected_handler(request: Request, exc: RequestRejected) -> JSONResponse:
        return JSONResponse(content=_failure_body(exc.code, exc.message, exc.run_id), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(content=_failure_body("INVALID_JSON", "Invalid request body."), status_code=400)

    @app.exception_handler(AssistantError)
    async def assistant_error_handler(request: Request, exc: AssistantError) -> JSONResponse:
        logger.error("unhandled assistant error on %s: %s", request.url.path, exc)
        return JSONResponse(content=_failure_body("RUN_INIT_FAILED", str(exc)), status_code=500)


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    llm=None,
) -> FastAPI:
    """Purpose: Build the FastAPI app with stores, model client, and routes.
    Inputs/Outputs: Optional Settings, session factory, and completion client
        overrides; output is a FastAPI app.
    Side Effects / State: Creates database tables when no session factory is given;
        configures the Gemini SDK when an API key is present.
    Dependencies: load_settings, build_engine, GeminiClient, AssistantOrchestrator.
    Failure Modes: Invalid settings raise at start-up.
    If Removed: There is no HTTP surface for plan and execute.
    Testing Notes: Pass an in-memory session factory and a fake llm.
    """
    # Resolve settings and persistence, then wire the orchestrator.
    settings = settings or load_settings()
    if session_factory is None:
        engine = build_engine(settings.database_url)
        init_db(engine)
        session_factory = build_session_factory(engine)
    if llm is None and settings.gemini_api_key:
        llm = GeminiClient(settings)

    app = FastAPI(title="StoreSync Assistant")
    app.state.settings = settings
    app.state.orchestrator = AssistantOrchestrator(
        settings=settings,
        store=InventoryStore(session_factory),
        run_store=RunStore(session_factory),
        llm=llm,
    )
    setup_exception_handlers(app)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "model": settings.gemini_model, "writesEnabled": settings.writes_enabled}

    @app.post("/api/assistant/plan")
    def plan(
        request: PlanRequest,
        identity: Identity = Depends(get_identity),
        orchestrator: AssistantOrchestrator = Depends(get_orchestrator),
    ) -> dict:
        """Purpose: Plan one prompt into a terminal run outcome.
        Inputs/Outputs: Input is PlanRequest; output is the AssistantResponse JSON.
        Side Effects / State: Creates a run and its action rows.
        Dependencies: AssistantOrchestrator.plan.
        Failure Modes: Rejections map to 4xx failed bodies via the handlers.
        If Removed: Prompts cannot be submitted.
        Testing Notes: Post a read prompt and verify readResult rows.
        """
        response = orchestrator.plan(identity, request.message, request.conversationId)
        return response.dict(exclude_none=True)

    @app.post("/api/assistant/execute")
    def execute(
        request: ExecuteRequest,
        identity: Identity = Depends(get_identity),
        orchestrator: AssistantOrchestrator = Depends(get_orchestrator),
    ) -> dict:
        return orchestrator.execute(identity, request.runId).dict(exclude_none=True)

    @app.get("/api/assistant/runs/{run_id}")
    def get_run(
        run_id: str,
        identity: Identity = Depends(get_identity),
        orchestrator: AssistantOrchestrator = Depends(get_orchestrator),
    ) -> dict:
        # Re-query a run after a lost response.
        return orchestrator.get_run(identity, run_id).dict(exclude_none=True)

    return app

