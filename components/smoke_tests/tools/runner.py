"""
Smoke Test Runner

Applies a fixed, ordered battery of read-only endpoint checks to every
instance of a fleet. Per instance the battery stops at the first failure;
every instance is still checked so the report is complete.
"""

import asyncio
from typing import Optional

import httpx
import structlog

from deploy_core.config_loader import SmokeTestSettings
from deploy_core.schemas.models import Instance, SmokeCheck

from ..schemas.smoke import SmokeFailure, SmokeTestReport

logger = structlog.get_logger(__name__)


class SmokeTestRunner:
    """Runs the smoke battery concurrently across instances"""

    def __init__(
        self,
        scheme: str = "http",
        request_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.scheme = scheme
        self.request_timeout = request_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls,
        settings: SmokeTestSettings,
        scheme: str = "http",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SmokeTestRunner":
        return cls(
            scheme=scheme,
            request_timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.request_timeout,
                transport=self._transport,
            )
        return self._client

    async def run_smoke_tests(
        self,
        instances: list[Instance],
        suite: list[SmokeCheck],
    ) -> SmokeTestReport:
        """
        Run the suite against every instance.

        Args:
            instances: Fleet members to test
            suite: Ordered checks applied to each instance

        Returns:
            SmokeTestReport; passed only if no instance produced a failure
        """
        if not instances:
            logger.warning("Smoke tests requested for empty fleet")
            return SmokeTestReport(
                passed=False,
                failures=[SmokeFailure(instance="-", check="-", reason="no instances to test")],
            )

        logger.info("Running smoke tests", instances=len(instances), checks=len(suite))

        outcomes = await asyncio.gather(
            *(self._run_instance(instance, suite) for instance in instances)
        )

        failures = [failure for failure, _ in outcomes if failure is not None]
        report = SmokeTestReport(
            passed=not failures,
            failures=failures,
            instances_checked=len(instances),
            checks_run=sum(count for _, count in outcomes),
        )

        if report.passed:
            logger.info("Smoke tests passed", instances=len(instances), checks_run=report.checks_run)
        else:
            logger.warning(
                "Smoke tests failed",
                failures=[f.model_dump() for f in failures],
            )
        return report

    async def _run_instance(
        self,
        instance: Instance,
        suite: list[SmokeCheck],
    ) -> tuple[Optional[SmokeFailure], int]:
        """Run the suite on one instance, stopping at the first failure"""
        client = await self._get_client()
        checks_run = 0

        for check in suite:
            checks_run += 1
            url = f"{self.scheme}://{instance.address}{check.path}"
            try:
                response = await asyncio.wait_for(
                    client.request(check.method, url),
                    timeout=self.request_timeout,
                )
            except (asyncio.TimeoutError, httpx.TimeoutException):
                return self._failure(instance, check, f"timed out after {self.request_timeout}s"), checks_run
            except httpx.HTTPError as e:
                return self._failure(instance, check, f"{type(e).__name__}: {e}"), checks_run

            if response.status_code not in check.expected_statuses:
                return (
                    self._failure(
                        instance,
                        check,
                        f"unexpected status {response.status_code}",
                        response.status_code,
                    ),
                    checks_run,
                )

        return None, checks_run

    @staticmethod
    def _failure(
        instance: Instance,
        check: SmokeCheck,
        reason: str,
        status_code: Optional[int] = None,
    ) -> SmokeFailure:
        logger.debug("Smoke check failed", instance=instance.address, check=check.label, reason=reason)
        return SmokeFailure(
            instance=instance.address,
            check=check.label,
            reason=reason,
            status_code=status_code,
        )

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None
