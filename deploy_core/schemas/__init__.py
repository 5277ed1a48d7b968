"""
Pydantic schemas for the domain model, workflow state, and operator API.
"""

from .state import WorkflowState
from .models import (
    Color,
    HealthStatus,
    Stage,
    Outcome,
    Instance,
    Fleet,
    StageFailure,
    StageTransition,
    DeploymentAttempt,
    TargetState,
    SmokeCheck,
    STAGE_TRANSITIONS,
    TRAFFIC_STAGES,
    can_transition,
    utcnow,
)
from .tasks import (
    DeployRequest,
    DeployResponse,
    AttemptView,
    CancelResult,
    ErrorResponse,
)

__all__ = [
    "WorkflowState",
    "Color",
    "HealthStatus",
    "Stage",
    "Outcome",
    "Instance",
    "Fleet",
    "StageFailure",
    "StageTransition",
    "DeploymentAttempt",
    "TargetState",
    "SmokeCheck",
    "STAGE_TRANSITIONS",
    "TRAFFIC_STAGES",
    "can_transition",
    "utcnow",
    "DeployRequest",
    "DeployResponse",
    "AttemptView",
    "CancelResult",
    "ErrorResponse",
]
