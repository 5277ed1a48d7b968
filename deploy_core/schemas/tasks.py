"""
Operator API Schemas

Request/response bodies for the operator-facing HTTP surface.
"""

from typing import Optional, Literal
from datetime import datetime
from pydantic import BaseModel, Field

from .models import Color, Stage, Outcome, StageFailure, utcnow


class DeployRequest(BaseModel):
    """Request a deployment of a color to a target"""
    color: Color = Field(..., description="Color to make active")
    wait: bool = Field(default=False, description="Block until the attempt is terminal")

    class Config:
        json_schema_extra = {
            "example": {
                "color": "green",
                "wait": False,
            }
        }


class DeployResponse(BaseModel):
    """Result of a deployment request"""
    target: str
    status: Literal["accepted", "noop", "finished"]
    attempt_id: Optional[str] = None
    stage: Optional[Stage] = None
    outcome: Optional[Outcome] = None
    message: Optional[str] = None


class AttemptView(BaseModel):
    """Current stage and, once terminal, the structured reason"""
    attempt_id: str
    target: str
    source_color: Optional[Color] = None
    target_color: Color
    stage: Stage
    outcome: Outcome
    started_at: datetime
    ended_at: Optional[datetime] = None
    failure: Optional[StageFailure] = None
    warnings: list[str] = Field(default_factory=list)
    traffic_switched: bool = False
    cancel_requested: bool = False
    requires_reconciliation: bool = False


CancelDisposition = Literal["cancelled", "queued", "rejected"]


class CancelResult(BaseModel):
    """
    What happened to an operator abort.

    - cancelled: attempt stopped before traffic was touched
    - queued: switch in flight; abort will be satisfied by the rollback path
    - rejected: attempt is terminal or traffic already committed
    """
    attempt_id: str
    disposition: CancelDisposition
    stage: Stage
    message: str = ""
    requested_at: datetime = Field(default_factory=utcnow)


class ErrorResponse(BaseModel):
    """Error body"""
    error: str
    message: str
    details: dict = Field(default_factory=dict)
