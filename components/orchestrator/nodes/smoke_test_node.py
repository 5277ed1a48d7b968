"""
Smoke Test Node

Run the smoke battery against the new fleet before it takes traffic.
smoke_test -> switch | rollback | finalize
"""

from typing import Any

from deploy_core.exceptions import DeploymentCancelled, SmokeTestFailure
from deploy_core.schemas.models import Stage
from deploy_core.workflow import track_node

from ..tools.context import DeploymentContext
from ..tools.cancellation import run_interruptible


def make_smoke_test_node(ctx: DeploymentContext):
    """Build the smoke test node bound to a deployment context"""

    async def smoke_test_node(state: dict[str, Any]) -> dict[str, Any]:
        attempt = state["attempt"]
        fleet = state.get("fleet")
        updates = {**track_node(state, "smoke_test"), "attempt": attempt}

        try:
            report = await run_interruptible(
                ctx.smoke_runner.run_smoke_tests(
                    fleet.instances if fleet else [],
                    ctx.config.smoke_tests.checks,
                ),
                ctx.cancel_event(attempt.attempt_id),
            )
        except DeploymentCancelled as e:
            await ctx.fail_stage(attempt, e, Stage.FAILED)
            return updates

        updates["smoke_report"] = report.model_dump(mode="json")

        if not report.passed:
            failures = [f.model_dump() for f in report.failures]
            await ctx.fail_stage(
                attempt,
                SmokeTestFailure(
                    f"{len(failures)} instance(s) failed smoke tests",
                    failures=failures,
                    details={"failures": failures},
                ),
                Stage.ROLLING_BACK,
            )
        elif attempt.cancel_requested:
            await ctx.fail_stage(attempt, DeploymentCancelled("cancelled by operator"), Stage.FAILED)
        else:
            await ctx.advance(attempt, Stage.SWITCHING_TRAFFIC)

        return updates

    return smoke_test_node
