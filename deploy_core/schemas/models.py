"""
Domain Models for Blue/Green Releases

These Pydantic models represent the core domain objects shared by the
orchestrator and its components: colors, fleets, instances, and the
persisted deployment attempt with its stage transition table.
"""

from enum import Enum
from typing import Any, Optional
from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field

from ..exceptions import InvalidTransitionError


def utcnow() -> datetime:
    """Timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


class Color(str, Enum):
    """One of the two parallel fleets"""
    BLUE = "blue"
    GREEN = "green"

    def other(self) -> "Color":
        return Color.GREEN if self is Color.BLUE else Color.BLUE


class HealthStatus(str, Enum):
    """Last known health of an instance"""
    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class Stage(str, Enum):
    """Deployment state machine states"""
    IDLE = "idle"
    PROVISIONING_TARGET = "provisioning_target"
    HEALTH_CHECKING = "health_checking"
    SMOKE_TESTING = "smoke_testing"
    SWITCHING_TRAFFIC = "switching_traffic"
    VERIFYING = "verifying"
    RETIRING_OLD = "retiring_old"
    ROLLING_BACK = "rolling_back"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class Outcome(str, Enum):
    """Result of a deployment attempt"""
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


# Allowed forward moves. RollingBack is the only branch back toward the
# original color; terminal stages have no exits.
STAGE_TRANSITIONS: dict[Stage, frozenset[Stage]] = {
    Stage.IDLE: frozenset({Stage.PROVISIONING_TARGET}),
    Stage.PROVISIONING_TARGET: frozenset({Stage.HEALTH_CHECKING, Stage.FAILED}),
    Stage.HEALTH_CHECKING: frozenset({Stage.SMOKE_TESTING, Stage.ROLLING_BACK, Stage.FAILED}),
    Stage.SMOKE_TESTING: frozenset({Stage.SWITCHING_TRAFFIC, Stage.ROLLING_BACK, Stage.FAILED}),
    Stage.SWITCHING_TRAFFIC: frozenset({Stage.VERIFYING, Stage.ROLLING_BACK}),
    Stage.VERIFYING: frozenset({Stage.RETIRING_OLD, Stage.ROLLING_BACK}),
    Stage.RETIRING_OLD: frozenset({Stage.COMPLETED}),
    Stage.ROLLING_BACK: frozenset({Stage.ROLLED_BACK, Stage.FAILED}),
    Stage.COMPLETED: frozenset(),
    Stage.FAILED: frozenset(),
    Stage.ROLLED_BACK: frozenset(),
}

TERMINAL_OUTCOMES: dict[Stage, Outcome] = {
    Stage.COMPLETED: Outcome.SUCCEEDED,
    Stage.FAILED: Outcome.FAILED,
    Stage.ROLLED_BACK: Outcome.ROLLED_BACK,
}

# Stages from which live traffic may already point at the target color
TRAFFIC_STAGES = frozenset({Stage.SWITCHING_TRAFFIC, Stage.VERIFYING, Stage.RETIRING_OLD, Stage.ROLLING_BACK})


def can_transition(from_stage: Stage, to_stage: Stage) -> bool:
    """Check a move against the transition table"""
    return to_stage in STAGE_TRANSITIONS[from_stage]


class Instance(BaseModel):
    """A single member of a fleet"""
    address: str = Field(..., description="host[:port] reachable by the orchestrator")
    color: Color
    last_health: HealthStatus = HealthStatus.UNKNOWN
    last_checked_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "address": "10.0.1.12:8080",
                "color": "green",
                "last_health": "healthy",
                "last_checked_at": "2026-01-01T12:00:00+00:00",
            }
        }


class Fleet(BaseModel):
    """All instances of one color"""
    color: Color
    instances: list[Instance] = Field(default_factory=list)
    desired_size: int = Field(0, ge=0)
    changed: bool = Field(True, description="False when provisioning found nothing to change")

    @property
    def addresses(self) -> list[str]:
        return [instance.address for instance in self.instances]


class StageFailure(BaseModel):
    """Structured reason recorded when a stage fails"""
    stage: Stage
    error_type: str
    reason: str
    details: dict[str, Any] = Field(default_factory=dict)
    at: datetime = Field(default_factory=utcnow)


class StageTransition(BaseModel):
    """Audit entry for one stage change"""
    from_stage: Stage
    to_stage: Stage
    at: datetime = Field(default_factory=utcnow)
    note: Optional[str] = None


class DeploymentAttempt(BaseModel):
    """
    One end-to-end run of the deployment state machine for a target.

    The unit of idempotency and auditability. Stage only moves along
    STAGE_TRANSITIONS and the record is frozen once terminal.
    """

    attempt_id: str = Field(default_factory=lambda: f"DEP-{uuid4().hex[:12]}")
    target: str
    # None when nothing was live before this attempt
    source_color: Optional[Color] = None
    target_color: Color
    desired_size: int = 0

    stage: Stage = Stage.IDLE
    outcome: Outcome = Outcome.IN_PROGRESS

    started_at: datetime = Field(default_factory=utcnow)
    ended_at: Optional[datetime] = None

    failure: Optional[StageFailure] = None
    warnings: list[str] = Field(default_factory=list)
    history: list[StageTransition] = Field(default_factory=list)

    traffic_switched: bool = False
    cancel_requested: bool = False
    requires_reconciliation: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.outcome is not Outcome.IN_PROGRESS

    def advance(self, to_stage: Stage, note: Optional[str] = None) -> None:
        """
        Move to the next stage.

        Raises:
            InvalidTransitionError: if the attempt is terminal or the move is
                not in the transition table
        """
        if self.is_terminal or not can_transition(self.stage, to_stage):
            raise InvalidTransitionError(self.stage.value, to_stage.value, self.attempt_id)

        self.history.append(StageTransition(from_stage=self.stage, to_stage=to_stage, note=note))
        self.stage = to_stage

        if to_stage in TERMINAL_OUTCOMES:
            self.outcome = TERMINAL_OUTCOMES[to_stage]
            self.ended_at = utcnow()

    def record_failure(self, stage: Stage, error: Exception) -> None:
        """Record the first stage failure; later ones are kept as warnings"""
        details = getattr(error, "details", {}) or {}
        reason = getattr(error, "message", "") or str(error) or type(error).__name__
        if self.failure is None:
            self.failure = StageFailure(
                stage=stage,
                error_type=type(error).__name__,
                reason=reason,
                details=details,
            )
        else:
            self.warnings.append(f"{stage.value}: {type(error).__name__}: {reason}")

    def abandon(self, reason: str) -> None:
        """
        Terminate an attempt that cannot continue: found in progress after a
        restart, or stopped by an unexpected error.

        The only move that does not go through the transition table.
        """
        if self.is_terminal:
            return
        if self.failure is None:
            self.failure = StageFailure(stage=self.stage, error_type="OrchestratorRestart", reason=reason)
        self.history.append(StageTransition(from_stage=self.stage, to_stage=Stage.FAILED, note=reason))
        self.stage = Stage.FAILED
        self.outcome = Outcome.FAILED
        self.ended_at = utcnow()


class TargetState(BaseModel):
    """Persisted per-target record; the only state shared across attempts"""
    target: str
    active_color: Optional[Color] = None
    active_attempt_id: Optional[str] = None
    requires_reconciliation: bool = False
    reconciliation_reason: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow)


class SmokeCheck(BaseModel):
    """One read-only endpoint check applied to every instance"""
    name: Optional[str] = None
    path: str = Field(..., description="Request path, e.g. /api/version")
    expected_statuses: list[int] = Field(default_factory=lambda: [200])
    method: str = "GET"

    @property
    def label(self) -> str:
        return self.name or f"{self.method} {self.path}"
