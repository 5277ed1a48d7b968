"""
Switch Node

Point live traffic at the new fleet. Once this node starts, cancellation is
only queued; the attempt runs to Verifying or through RollingBack.
switch -> verify | rollback
"""

from typing import Any

import structlog

from deploy_core.exceptions import DeploymentCancelled, TrafficSwitchError
from deploy_core.schemas.models import Stage
from deploy_core.workflow import track_node

from ..tools.context import DeploymentContext

logger = structlog.get_logger(__name__)


def make_switch_node(ctx: DeploymentContext):
    """Build the switch node bound to a deployment context"""

    async def switch_node(state: dict[str, Any]) -> dict[str, Any]:
        attempt = state["attempt"]
        fleet = state.get("fleet")
        updates = {**track_node(state, "switch"), "attempt": attempt}

        try:
            await ctx.switcher.switch(
                attempt.target,
                attempt.source_color,
                attempt.target_color,
                fleet.instances if fleet else [],
            )
        except TrafficSwitchError as e:
            updates["traffic_uncertain"] = not e.routing_unchanged
            await ctx.fail_stage(attempt, e, Stage.ROLLING_BACK)
            return updates
        except Exception as e:
            # the director may already be routing to the new color
            logger.exception("Unexpected error during traffic switch", attempt_id=attempt.attempt_id)
            updates["traffic_uncertain"] = True
            await ctx.fail_stage(
                attempt,
                TrafficSwitchError(
                    f"unexpected error during traffic switch: {e}",
                    routing_unchanged=False,
                    details={"error_type": type(e).__name__},
                ),
                Stage.ROLLING_BACK,
            )
            return updates

        attempt.traffic_switched = True
        await ctx.update_target(attempt.target, active_color=attempt.target_color)
        logger.info(
            "Active color recorded",
            attempt_id=attempt.attempt_id,
            target=attempt.target,
            active_color=attempt.target_color.value,
        )

        if attempt.cancel_requested:
            await ctx.fail_stage(
                attempt,
                DeploymentCancelled("cancelled by operator during traffic switch"),
                Stage.ROLLING_BACK,
            )
        else:
            await ctx.advance(attempt, Stage.VERIFYING)

        return updates

    return switch_node
