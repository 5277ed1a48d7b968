"""
Rollback Node

Restore the original color when traffic has (or may have) moved. When the
switch never happened this is a no-op that ends Failed, and when nothing was
live before there is no color to restore. The new fleet is always left
running for inspection.
rollback -> finalize
"""

from typing import Any

import structlog

from deploy_core.exceptions import TrafficSwitchError
from deploy_core.schemas.models import Stage
from deploy_core.workflow import track_node

from ..tools.context import DeploymentContext

logger = structlog.get_logger(__name__)


def make_rollback_node(ctx: DeploymentContext):
    """Build the rollback node bound to a deployment context"""

    async def rollback_node(state: dict[str, Any]) -> dict[str, Any]:
        attempt = state["attempt"]
        updates = {**track_node(state, "rollback"), "attempt": attempt}
        log = logger.bind(attempt_id=attempt.attempt_id, target=attempt.target)

        if not attempt.traffic_switched and not state.get("traffic_uncertain", False):
            log.info("Traffic never moved, nothing to roll back")
            await ctx.advance(attempt, Stage.FAILED, note="traffic never moved")
            return updates

        if attempt.source_color is None:
            # nothing was live before, so there is no pool to return to
            if attempt.traffic_switched:
                log.warning("No previous color, new color left live")
                await ctx.advance(attempt, Stage.FAILED, note="no previous color; new color left live")
                return updates

            reason = f"switch of {attempt.attempt_id} left routing unknown and no previous color exists"
            log.error("Nothing to roll back to, target requires reconciliation")
            attempt.requires_reconciliation = True
            await ctx.update_target(
                attempt.target,
                requires_reconciliation=True,
                reconciliation_reason=reason,
            )
            await ctx.advance(attempt, Stage.FAILED, note="manual reconciliation required")
            return updates

        log.warning(
            "Rolling traffic back",
            from_color=attempt.target_color.value,
            to_color=attempt.source_color.value,
        )

        try:
            await ctx.switcher.switch(attempt.target, attempt.target_color, attempt.source_color, [])
        except TrafficSwitchError as e:
            reason = f"rollback of {attempt.attempt_id} failed: {e.message}"
            log.error("Rollback failed, target requires reconciliation", reason=e.message)

            attempt.record_failure(Stage.ROLLING_BACK, e)
            attempt.requires_reconciliation = True
            await ctx.update_target(
                attempt.target,
                requires_reconciliation=True,
                reconciliation_reason=reason,
            )
            await ctx.advance(attempt, Stage.FAILED, note="manual reconciliation required")
            return updates

        await ctx.update_target(attempt.target, active_color=attempt.source_color)
        await ctx.advance(attempt, Stage.ROLLED_BACK)
        return updates

    return rollback_node
