from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# Field names are the camelCase wire names consumed by the chat client.


class PlanRequest(BaseModel):
    """Request payload for the plan endpoint."""
    message: str = ""
    conversationId: Optional[str] = Field(default=None)


class ExecuteRequest(BaseModel):
    """Request payload for the execute endpoint."""
    runId: Optional[str] = Field(default=None)


class ClarificationOption(BaseModel):
    label: str
    value: str


class Clarification(BaseModel):
    """Why the run needs input, with ready-to-resubmit follow-up phrases."""
    reason: str
    options: Optional[List[ClarificationOption]] = None


class ActionPreview(BaseModel):
    kind: str
    summary: str
    warnings: List[str] = Field(default_factory=list)


class ChartData(BaseModel):
    type: str
    label: Optional[str] = None
    data: List[Dict[str, Any]] = Field(default_factory=list)


class ReadResult(BaseModel):
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    chartData: Optional[ChartData] = None


class ExecutionResult(BaseModel):
    succeeded: bool
    kind: Optional[str] = None
    message: Optional[str] = None
    affected: Optional[Dict[str, Any]] = None


class AssistantResponse(BaseModel):
    """Response payload returned by plan, execute, and run lookups."""
    runId: Optional[str] = None
    status: str
    code: Optional[str] = None
    assistantMessage: str
    actionPreview: Optional[ActionPreview] = None
    clarification: Optional[Clarification] = None
    readResult: Optional[ReadResult] = None
    execution: Optional[ExecutionResult] = None
