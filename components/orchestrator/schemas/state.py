"""
Deployment Workflow State

TypedDict carried through the deployment graph. The DeploymentAttempt is
the durable record; the rest is per-run scratch data.
"""

from typing import Any, Optional

from deploy_core.schemas.state import WorkflowState
from deploy_core.schemas.models import DeploymentAttempt, Fleet


class DeploymentState(WorkflowState, total=False):
    """
    Deployment workflow state.

    Fields beyond WorkflowState:
    - attempt: the persisted attempt, mutated in place by every node
    - fleet: target-color fleet returned by the Provisioner
    - *_report: stage diagnostics kept for the final result
    - traffic_uncertain: a failed switch could not prove routing unchanged
    """

    attempt: DeploymentAttempt
    fleet: Optional[Fleet]

    health_report: Optional[dict[str, Any]]
    smoke_report: Optional[dict[str, Any]]
    verify_report: Optional[dict[str, Any]]

    traffic_uncertain: bool


def create_initial_state(
    run_id: str,
    attempt: DeploymentAttempt,
    started_at: str,
    correlation_id: Optional[str] = None,
) -> DeploymentState:
    return DeploymentState(
        run_id=run_id,
        correlation_id=correlation_id,
        current_node="start",
        started_at=started_at,
        nodes_executed=[],
        status="running",
        error=None,
        attempt=attempt,
        fleet=None,
        health_report=None,
        smoke_report=None,
        verify_report=None,
        traffic_uncertain=False,
    )
