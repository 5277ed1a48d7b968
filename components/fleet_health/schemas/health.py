"""
Fleet Health Schemas

Per-instance probe results and the fleet-level readiness report.
"""

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from deploy_core.schemas.models import HealthStatus, utcnow


class ProbeResult(BaseModel):
    """Outcome of one prober cycle against one instance"""
    address: str
    status: HealthStatus
    attempts: int = Field(default=0, description="Requests made during the cycle")
    status_code: Optional[int] = None
    reason: Optional[str] = None
    checked_at: datetime = Field(default_factory=utcnow)

    @property
    def healthy(self) -> bool:
        return self.status is HealthStatus.HEALTHY

    class Config:
        json_schema_extra = {
            "example": {
                "address": "10.0.1.12:8080",
                "status": "unhealthy",
                "attempts": 5,
                "status_code": 503,
                "reason": "unexpected status 503",
            }
        }


class FleetHealthReport(BaseModel):
    """Fleet-level readiness: healthy only if every instance is healthy"""
    all_healthy: bool
    results: list[ProbeResult] = Field(default_factory=list)
    deadline_exceeded: bool = False

    @property
    def unhealthy(self) -> list[str]:
        return [r.address for r in self.results if not r.healthy]

    def summary(self) -> dict:
        return {
            "all_healthy": self.all_healthy,
            "total": len(self.results),
            "unhealthy": self.unhealthy,
            "deadline_exceeded": self.deadline_exceeded,
        }
