"""
Finalize Node

Release the target, emit the terminal notification, and build the run result.
finalize -> END
"""

from typing import Any

import structlog

from deploy_core.schemas.models import Outcome
from deploy_core.workflow import track_node

from ..tools.context import DeploymentContext
from ..tools.notifier import NotificationEvent

logger = structlog.get_logger(__name__)

OUTCOME_EVENTS = {
    Outcome.SUCCEEDED: NotificationEvent.SUCCEEDED,
    Outcome.FAILED: NotificationEvent.FAILED,
    Outcome.ROLLED_BACK: NotificationEvent.ROLLED_BACK,
}


def make_finalize_node(ctx: DeploymentContext):
    """Build the finalize node bound to a deployment context"""

    async def finalize_node(state: dict[str, Any]) -> dict[str, Any]:
        attempt = state["attempt"]

        if not attempt.is_terminal:
            logger.error(
                "Finalizing attempt that is not terminal",
                attempt_id=attempt.attempt_id,
                stage=attempt.stage.value,
            )

        await ctx.release_target(attempt.target, attempt.attempt_id)

        event = OUTCOME_EVENTS.get(attempt.outcome)
        details = {
            "target": attempt.target,
            "source_color": attempt.source_color.value if attempt.source_color else None,
            "target_color": attempt.target_color.value,
            "stage": attempt.stage.value,
        }
        if attempt.failure:
            details["reason"] = attempt.failure.reason
            details["failed_stage"] = attempt.failure.stage.value
        if attempt.warnings:
            details["warnings"] = list(attempt.warnings)
        if attempt.requires_reconciliation:
            details["requires_reconciliation"] = True

        if event is not None:
            ctx.notifier.notify(event, attempt.attempt_id, details)

        logger.info(
            "Deployment attempt finished",
            attempt_id=attempt.attempt_id,
            target=attempt.target,
            outcome=attempt.outcome.value,
            warnings=len(attempt.warnings),
        )

        error = None
        if attempt.outcome is not Outcome.SUCCEEDED and attempt.failure:
            error = f"{attempt.failure.stage.value}: {attempt.failure.reason}"

        return {
            **track_node(state, "finalize"),
            "attempt": attempt,
            "status": attempt.outcome.value,
            "error": error,
            "result": {"attempt_id": attempt.attempt_id, **details, "outcome": attempt.outcome.value},
        }

    return finalize_node
