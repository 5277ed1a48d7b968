"""
Fleet Health Aggregator

Runs the Health Prober across every instance of a fleet concurrently under an
overall deadline. Anything unresolved at the deadline counts as unhealthy.
"""

import asyncio
from typing import Optional

import structlog

from deploy_core.schemas.models import Instance, HealthStatus, utcnow

from ..schemas.health import ProbeResult, FleetHealthReport
from .health_prober import HealthProber

logger = structlog.get_logger(__name__)


class FleetHealthAggregator:
    """Fleet-level readiness check built on HealthProber"""

    def __init__(self, prober: HealthProber):
        self.prober = prober

    async def check_fleet(
        self,
        instances: list[Instance],
        per_instance_timeout: float,
        overall_deadline: float,
    ) -> FleetHealthReport:
        """
        Check every instance once, concurrently.

        Args:
            instances: Fleet members to probe (last_health updated in place)
            per_instance_timeout: Bound on each instance's prober cycle
            overall_deadline: Bound on the whole check

        Returns:
            FleetHealthReport; all_healthy is False for an empty fleet
        """
        if not instances:
            logger.warning("Fleet health check on empty fleet")
            return FleetHealthReport(all_healthy=False, results=[])

        logger.info(
            "Checking fleet health",
            instances=len(instances),
            per_instance_timeout=per_instance_timeout,
            overall_deadline=overall_deadline,
        )

        tasks = {
            asyncio.create_task(self.prober.probe(instance, per_instance_timeout)): instance
            for instance in instances
        }

        try:
            done, pending = await asyncio.wait(tasks.keys(), timeout=overall_deadline)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        results = [
            self._resolve(task, instance, task in done)
            for task, instance in tasks.items()
        ]

        report = FleetHealthReport(
            all_healthy=all(r.healthy for r in results),
            results=results,
            deadline_exceeded=bool(pending),
        )

        log = logger.info if report.all_healthy else logger.warning
        log("Fleet health check finished", **report.summary())
        return report

    @staticmethod
    def _resolve(task: asyncio.Task, instance: Instance, finished: bool) -> ProbeResult:
        reason: Optional[str] = None
        if not finished:
            reason = "deadline exceeded"
        elif task.exception() is not None:
            reason = f"probe error: {task.exception()}"
        else:
            return task.result()

        instance.last_health = HealthStatus.UNHEALTHY
        instance.last_checked_at = utcnow()
        return ProbeResult(
            address=instance.address,
            status=HealthStatus.UNHEALTHY,
            reason=reason,
            checked_at=instance.last_checked_at,
        )
