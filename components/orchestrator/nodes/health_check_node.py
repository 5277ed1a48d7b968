"""
Health Check Node

Run the Fleet Health Aggregator against the new fleet under the
health-check deadline.
health_check -> smoke_test | rollback | finalize
"""

from typing import Any

from deploy_core.exceptions import DeploymentCancelled, HealthCheckTimeout
from deploy_core.schemas.models import Stage
from deploy_core.workflow import track_node

from ..tools.context import DeploymentContext
from ..tools.cancellation import run_interruptible


def make_health_check_node(ctx: DeploymentContext):
    """Build the health check node bound to a deployment context"""

    async def health_check_node(state: dict[str, Any]) -> dict[str, Any]:
        attempt = state["attempt"]
        fleet = state.get("fleet")
        settings = ctx.config.health
        updates = {**track_node(state, "health_check"), "attempt": attempt}

        try:
            report = await run_interruptible(
                ctx.aggregator.check_fleet(
                    fleet.instances if fleet else [],
                    per_instance_timeout=settings.per_instance_timeout_seconds,
                    overall_deadline=settings.deadline_seconds,
                ),
                ctx.cancel_event(attempt.attempt_id),
            )
        except DeploymentCancelled as e:
            await ctx.fail_stage(attempt, e, Stage.FAILED)
            return updates

        updates["health_report"] = report.model_dump(mode="json")

        if not report.all_healthy:
            total = len(report.results)
            await ctx.fail_stage(
                attempt,
                HealthCheckTimeout(
                    f"{len(report.unhealthy)} of {total} instances not healthy within {settings.deadline_seconds}s"
                    if total else "fleet has no instances",
                    unhealthy=report.unhealthy,
                    details=report.summary(),
                ),
                Stage.ROLLING_BACK,
            )
        elif attempt.cancel_requested:
            await ctx.fail_stage(attempt, DeploymentCancelled("cancelled by operator"), Stage.FAILED)
        else:
            await ctx.advance(attempt, Stage.SMOKE_TESTING)

        return updates

    return health_check_node
