from __future__ import annotations

from typing import Optional

from fastapi import Header, Request

from .errors import IdentityMissing
from .orchestrator import AssistantOrchestrator, Identity


def get_identity(
    x_user_id: Optional[str] = Header(default=None),
    x_workspace_id: Optional[str] = Header(default=None),
) -> Identity:
    """Purpose: Resolve the caller identity issued by the upstream auth layer.
    Inputs/Outputs: Inputs are the X-User-Id and X-Workspace-Id headers; output is an Identity.
    Side Effects / State: None.
    Dependencies: FastAPI Header injection.
    Failure Modes: Missing or blank headers raise IdentityMissing (401).
    If Removed: Runs could not be scoped to a user or workspace.
    Testing Notes: Omit either header and expect a 401 failed body.
    """
    user_id = (x_user_id or "").strip()
    workspace_id = (x_workspace_id or "").strip()
    if not user_id:
        raise IdentityMissing("Unable to resolve the authenticated user.")
    if not workspace_id:
        raise IdentityMissing("Unable to resolve the workspace for this user.", code="WORKSPACE_UNAVAILABLE")
    return Identity(user_id=user_id, workspace_id=workspace_id)


def get_orchestrator(request: Request) -> AssistantOrchestrator:
    return request.app.state.orchestrator
