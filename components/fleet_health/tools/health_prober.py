"""
Health Prober

Polls a single instance's health endpoint until it reports ready, the retry
budget is spent, or the per-instance timeout elapses. This is the only place
in the orchestrator that retries anything.
"""

import asyncio
from typing import Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from deploy_core.config_loader import HealthSettings
from deploy_core.schemas.models import Instance, HealthStatus, utcnow

from ..schemas.health import ProbeResult

logger = structlog.get_logger(__name__)


class UnexpectedStatus(Exception):
    """Health endpoint answered with a status outside the expected set"""

    def __init__(self, status_code: int):
        super().__init__(f"unexpected status {status_code}")
        self.status_code = status_code


class HealthProber:
    """
    Health Prober

    One cycle = up to ``max_attempts`` GETs against
    ``{scheme}://{address}{path}`` with exponential backoff between them,
    the whole cycle bounded by the per-instance timeout.
    """

    def __init__(
        self,
        path: str = "/health",
        scheme: str = "http",
        expected_statuses: Optional[list[int]] = None,
        request_timeout: float = 2.0,
        max_attempts: int = 5,
        backoff_initial: float = 0.5,
        backoff_max: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize health prober.

        Args:
            path: Health endpoint path
            scheme: URL scheme used to reach instances
            expected_statuses: Statuses that count as healthy
            request_timeout: Bound on a single HTTP request
            max_attempts: Requests per cycle before giving up
            backoff_initial: First backoff delay in seconds
            backoff_max: Backoff ceiling in seconds
            transport: Optional httpx transport (tests)
        """
        self.path = path if path.startswith("/") else f"/{path}"
        self.scheme = scheme
        self.expected_statuses = set(expected_statuses or [200])
        self.request_timeout = request_timeout
        self.max_attempts = max_attempts
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls,
        settings: HealthSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "HealthProber":
        return cls(
            path=settings.path,
            scheme=settings.scheme,
            expected_statuses=settings.expected_statuses,
            request_timeout=settings.request_timeout_seconds,
            max_attempts=settings.max_attempts,
            backoff_initial=settings.backoff_initial_seconds,
            backoff_max=settings.backoff_max_seconds,
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

    def url_for(self, address: str) -> str:
        return f"{self.scheme}://{address}{self.path}"

    async def _get(self, url: str) -> int:
        client = await self._get_client()
        response = await client.get(url)
        if response.status_code not in self.expected_statuses:
            raise UnexpectedStatus(response.status_code)
        return response.status_code

    async def probe_url(self, url: str, timeout: float, address: Optional[str] = None) -> ProbeResult:
        """
        Run one prober cycle against an arbitrary URL.

        Used directly for the live traffic path check; ``probe`` wraps it for
        fleet instances.
        """
        address = address or url
        attempts = 0
        last_status: Optional[int] = None

        async def cycle() -> int:
            nonlocal attempts, last_status
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.backoff_initial, max=self.backoff_max),
                retry=retry_if_exception_type((httpx.HTTPError, UnexpectedStatus)),
                reraise=True,
            ):
                with attempt:
                    attempts += 1
                    try:
                        last_status = await self._get(url)
                    except UnexpectedStatus as e:
                        last_status = e.status_code
                        raise
                    return last_status

        try:
            status_code = await asyncio.wait_for(cycle(), timeout=timeout)
        except asyncio.TimeoutError:
            reason = f"no healthy response within {timeout}s"
            if last_status is not None:
                reason += f" (last status {last_status})"
            return self._result(address, HealthStatus.UNHEALTHY, attempts, last_status, reason)
        except UnexpectedStatus as e:
            return self._result(address, HealthStatus.UNHEALTHY, attempts, e.status_code, str(e))
        except httpx.HTTPError as e:
            return self._result(
                address,
                HealthStatus.UNHEALTHY,
                attempts,
                last_status,
                f"{type(e).__name__}: {e}",
            )

        return self._result(address, HealthStatus.HEALTHY, attempts, status_code, None)

    async def probe(self, instance: Instance, timeout: float) -> ProbeResult:
        """
        Probe one fleet instance and record the result on it.

        Args:
            instance: Instance to probe; its last_health is updated in place
            timeout: Per-instance bound on the whole cycle

        Returns:
            ProbeResult for the instance
        """
        result = await self.probe_url(self.url_for(instance.address), timeout, address=instance.address)

        instance.last_health = result.status
        instance.last_checked_at = result.checked_at

        if result.healthy:
            logger.debug("Instance healthy", address=instance.address, attempts=result.attempts)
        else:
            logger.warning(
                "Instance unhealthy",
                address=instance.address,
                attempts=result.attempts,
                reason=result.reason,
            )
        return result

    @staticmethod
    def _result(
        address: str,
        status: HealthStatus,
        attempts: int,
        status_code: Optional[int],
        reason: Optional[str],
    ) -> ProbeResult:
        return ProbeResult(
            address=address,
            status=status,
            attempts=attempts,
            status_code=status_code,
            reason=reason,
            checked_at=utcnow(),
        )

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None
