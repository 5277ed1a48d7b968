"""
Provision Node

Ask the Provisioner to stand up the target-color fleet at the desired size.
provision -> health_check | finalize
"""

import asyncio
from typing import Any

import structlog

from deploy_core.exceptions import DeploymentCancelled, ProvisionError
from deploy_core.schemas.models import Stage
from deploy_core.workflow import track_node

from ..tools.context import DeploymentContext
from ..tools.notifier import NotificationEvent

logger = structlog.get_logger(__name__)


def make_provision_node(ctx: DeploymentContext):
    """Build the provision node bound to a deployment context"""

    async def provision_node(state: dict[str, Any]) -> dict[str, Any]:
        """
        Provision Node.

        Failure here never touches traffic, so it goes straight to Failed.
        A cancel received while the Provisioner works is honored once it
        returns.
        """
        attempt = state["attempt"]
        timeout = ctx.config.provisioner.timeout_seconds

        await ctx.advance(attempt, Stage.PROVISIONING_TARGET)
        ctx.notifier.notify(
            NotificationEvent.STARTED,
            attempt.attempt_id,
            {
                "target": attempt.target,
                "source_color": attempt.source_color.value if attempt.source_color else None,
                "target_color": attempt.target_color.value,
            },
        )

        updates = {**track_node(state, "provision"), "attempt": attempt}

        try:
            fleet = await asyncio.wait_for(
                ctx.provisioner.ensure_fleet(attempt.target, attempt.target_color, attempt.desired_size),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            await ctx.fail_stage(
                attempt,
                ProvisionError(f"Provisioner did not finish within {timeout}s"),
                Stage.FAILED,
            )
            return updates
        except ProvisionError as e:
            await ctx.fail_stage(attempt, e, Stage.FAILED)
            return updates

        if not fleet.changed:
            logger.info(
                "Provisioner reported no changes, fleet already at desired state",
                attempt_id=attempt.attempt_id,
                target=attempt.target,
                color=attempt.target_color.value,
            )

        if attempt.cancel_requested:
            await ctx.fail_stage(
                attempt,
                DeploymentCancelled("cancelled by operator during provisioning"),
                Stage.FAILED,
            )
        else:
            await ctx.advance(attempt, Stage.HEALTH_CHECKING)

        updates["fleet"] = fleet
        return updates

    return provision_node
