"""
Retire Node

Retire the former-active fleet after the grace period. Always ends
Completed; a retirement failure is only a warning on the attempt.
retire -> finalize
"""

from typing import Any

import structlog

from deploy_core.exceptions import RetirementWarning
from deploy_core.schemas.models import Stage
from deploy_core.workflow import track_node

from ..tools.context import DeploymentContext

logger = structlog.get_logger(__name__)


def make_retire_node(ctx: DeploymentContext):
    """Build the retire node bound to a deployment context"""

    async def retire_node(state: dict[str, Any]) -> dict[str, Any]:
        attempt = state["attempt"]

        if attempt.source_color is None:
            logger.info("No previous fleet to retire", attempt_id=attempt.attempt_id, target=attempt.target)
            await ctx.advance(attempt, Stage.COMPLETED, note="no previous fleet")
            return {**track_node(state, "retire"), "attempt": attempt}

        try:
            await ctx.retirement.retire(attempt.target, attempt.source_color)
        except RetirementWarning as e:
            logger.warning(
                "Old fleet left running",
                attempt_id=attempt.attempt_id,
                target=attempt.target,
                color=attempt.source_color.value,
                reason=e.message,
            )
            attempt.warnings.append(f"{Stage.RETIRING_OLD.value}: {e.message}")

        await ctx.advance(attempt, Stage.COMPLETED)
        return {**track_node(state, "retire"), "attempt": attempt}

    return retire_node
