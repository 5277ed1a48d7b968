"""
Verify Node

Re-check the new fleet after the switch, under the verification deadline.
When a live health URL is configured it is checked too, so the check covers
the path real traffic takes through the Traffic Director.
verify -> retire | rollback
"""

import asyncio
from typing import Any

import structlog

from deploy_core.exceptions import DeploymentCancelled, HealthCheckTimeout
from deploy_core.schemas.models import Stage
from deploy_core.workflow import track_node

from ..tools.context import DeploymentContext

logger = structlog.get_logger(__name__)


def make_verify_node(ctx: DeploymentContext):
    """Build the post-switch verification node bound to a deployment context"""

    async def verify_node(state: dict[str, Any]) -> dict[str, Any]:
        attempt = state["attempt"]
        fleet = state.get("fleet")
        settings = ctx.config.health
        updates = {**track_node(state, "verify"), "attempt": attempt}

        checks = [
            ctx.aggregator.check_fleet(
                fleet.instances if fleet else [],
                per_instance_timeout=settings.per_instance_timeout_seconds,
                overall_deadline=settings.verify_deadline_seconds,
            )
        ]
        if settings.live_health_url:
            checks.append(
                ctx.aggregator.prober.probe_url(
                    settings.live_health_url,
                    timeout=settings.verify_deadline_seconds,
                )
            )

        try:
            results = await asyncio.gather(*checks)
        except Exception as e:
            logger.exception("Post-switch verification crashed", attempt_id=attempt.attempt_id)
            await ctx.fail_stage(
                attempt,
                HealthCheckTimeout(
                    f"post-switch verification could not complete: {e}",
                    details={"error_type": type(e).__name__},
                ),
                Stage.ROLLING_BACK,
            )
            return updates

        report = results[0]
        live = results[1] if len(results) > 1 else None

        unhealthy = list(report.unhealthy)
        if live is not None and not live.healthy:
            unhealthy.append(live.address)

        updates["verify_report"] = {
            **report.summary(),
            "live_path": live.model_dump(mode="json") if live else None,
        }

        if unhealthy or not report.all_healthy:
            await ctx.fail_stage(
                attempt,
                HealthCheckTimeout(
                    f"post-switch verification failed for {len(unhealthy)} target(s)",
                    unhealthy=unhealthy,
                    details=updates["verify_report"],
                ),
                Stage.ROLLING_BACK,
            )
        elif attempt.cancel_requested:
            await ctx.fail_stage(
                attempt,
                DeploymentCancelled("cancelled by operator after traffic switch"),
                Stage.ROLLING_BACK,
            )
        else:
            await ctx.advance(attempt, Stage.RETIRING_OLD)

        return updates

    return verify_node
