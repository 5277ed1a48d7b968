"""
Deployment Workflow

LangGraph workflow implementing the blue/green deployment state machine.
"""

from typing import Any, Optional
from datetime import datetime, timezone

import structlog
from langgraph.graph import StateGraph, START, END

from deploy_core.workflow import BaseWorkflow
from deploy_core.schemas.models import DeploymentAttempt

from .schemas.state import DeploymentState, create_initial_state
from .tools.context import DeploymentContext
from .nodes import (
    make_provision_node,
    make_health_check_node,
    make_smoke_test_node,
    make_switch_node,
    make_verify_node,
    make_retire_node,
    make_rollback_node,
    make_finalize_node,
    check_provision_result,
    check_health_result,
    check_smoke_result,
    check_switch_result,
    check_verify_result,
)

logger = structlog.get_logger(__name__)


class DeploymentWorkflow(BaseWorkflow):
    """
    Deployment Workflow

    START -> provision -> health_check -> smoke_test -> switch -> verify -> retire -> finalize -> END

    Branches:
    - provision -> finalize (provisioning failed, nothing to undo)
    - health_check / smoke_test -> rollback (failed) | finalize (cancelled)
    - switch / verify -> rollback (failed or cancel queued)
    - rollback -> finalize
    """

    def __init__(
        self,
        context: DeploymentContext,
        name: str = "deployment",
        version: str = "1.0.0",
    ):
        super().__init__(name=name, version=version)
        self.context = context

    def get_state_class(self) -> type:
        """Return DeploymentState TypedDict"""
        return DeploymentState

    def build_graph(self, graph: StateGraph) -> None:
        """Build the deployment state machine graph"""
        ctx = self.context

        graph.add_node("provision", make_provision_node(ctx))
        graph.add_node("health_check", make_health_check_node(ctx))
        graph.add_node("smoke_test", make_smoke_test_node(ctx))
        graph.add_node("switch", make_switch_node(ctx))
        graph.add_node("verify", make_verify_node(ctx))
        graph.add_node("retire", make_retire_node(ctx))
        graph.add_node("rollback", make_rollback_node(ctx))
        graph.add_node("finalize", make_finalize_node(ctx))

        # Entry point
        graph.add_edge(START, "provision")

        # provision -> health_check | finalize
        graph.add_conditional_edges(
            "provision",
            check_provision_result,
            {
                "health_check": "health_check",
                "finalize": "finalize",
            },
        )

        # health_check -> smoke_test | rollback | finalize
        graph.add_conditional_edges(
            "health_check",
            check_health_result,
            {
                "smoke_test": "smoke_test",
                "rollback": "rollback",
                "finalize": "finalize",
            },
        )

        # smoke_test -> switch | rollback | finalize
        graph.add_conditional_edges(
            "smoke_test",
            check_smoke_result,
            {
                "switch": "switch",
                "rollback": "rollback",
                "finalize": "finalize",
            },
        )

        # switch -> verify | rollback
        graph.add_conditional_edges(
            "switch",
            check_switch_result,
            {
                "verify": "verify",
                "rollback": "rollback",
            },
        )

        # verify -> retire | rollback
        graph.add_conditional_edges(
            "verify",
            check_verify_result,
            {
                "retire": "retire",
                "rollback": "rollback",
            },
        )

        graph.add_edge("retire", "finalize")
        graph.add_edge("rollback", "finalize")
        graph.add_edge("finalize", END)

    def get_initial_state(
        self,
        run_id: str,
        correlation_id: Optional[str] = None,
        attempt: Optional[DeploymentAttempt] = None,
        **kwargs: Any,
    ) -> DeploymentState:
        """
        Create initial state for a deployment run.

        Args:
            run_id: Run identifier (the attempt id)
            correlation_id: Correlation ID for tracing
            attempt: Attempt in the Idle stage, already persisted
        """
        if attempt is None:
            raise ValueError("attempt is required")

        return create_initial_state(
            run_id=run_id,
            attempt=attempt,
            started_at=datetime.now(timezone.utc).isoformat(),
            correlation_id=correlation_id,
        )
