"""
Smoke Test Schemas
"""

from typing import Optional
from pydantic import BaseModel, Field


class SmokeFailure(BaseModel):
    """One failed check on one instance"""
    instance: str = Field(..., description="Instance address")
    check: str = Field(..., description="Check label, e.g. 'GET /api/version'")
    reason: str
    status_code: Optional[int] = None


class SmokeTestReport(BaseModel):
    """Aggregate smoke test result for a fleet"""
    passed: bool
    failures: list[SmokeFailure] = Field(default_factory=list)
    instances_checked: int = 0
    checks_run: int = 0

    class Config:
        json_schema_extra = {
            "example": {
                "passed": False,
                "failures": [
                    {
                        "instance": "10.0.1.13:8080",
                        "check": "GET /api/version",
                        "reason": "unexpected status 500",
                        "status_code": 500,
                    }
                ],
                "instances_checked": 3,
                "checks_run": 7,
            }
        }
