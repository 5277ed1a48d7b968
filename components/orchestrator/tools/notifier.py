"""
Notification Dispatcher

Best-effort deployment event side channel. ``notify`` only enqueues; a
detached worker posts each event to the webhook. Delivery latency or failure
never reaches the deployment state machine.
"""

import asyncio
from enum import Enum
from typing import Any, Optional

import httpx
import structlog

from deploy_core.config_loader import NotificationSettings
from deploy_core.schemas.models import utcnow

logger = structlog.get_logger(__name__)


class NotificationEvent(str, Enum):
    STARTED = "started"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class NotificationDispatcher:
    """
    Queue-backed webhook notifier.

    Usage:
        dispatcher = NotificationDispatcher(webhook_url="https://hooks.example.com/deploys")
        await dispatcher.start()
        dispatcher.notify(NotificationEvent.STARTED, "DEP-1a2b3c", {"target": "prod"})
        await dispatcher.stop()
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout_seconds: float = 10.0,
        queue_size: int = 100,
        enabled: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout_seconds
        self.enabled = enabled and bool(webhook_url)
        self._transport = transport
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._worker: Optional[asyncio.Task] = None
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls,
        settings: NotificationSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "NotificationDispatcher":
        return cls(
            webhook_url=settings.webhook_url,
            timeout_seconds=settings.timeout_seconds,
            queue_size=settings.queue_size,
            enabled=settings.enabled,
            transport=transport,
        )

    def notify(
        self,
        event: NotificationEvent,
        attempt_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """Enqueue an event; never blocks, never raises"""
        try:
            self._enqueue(event, attempt_id, details)
        except Exception as e:
            logger.error("Notification dropped", attempt_id=attempt_id, error=str(e))

    def _enqueue(
        self,
        event: NotificationEvent,
        attempt_id: str,
        details: Optional[dict[str, Any]],
    ) -> None:
        if not self.enabled:
            logger.debug("Notification skipped (disabled)", notification=event.value, attempt_id=attempt_id)
            return

        message = {
            "event": event.value,
            "attempt_id": attempt_id,
            "details": details or {},
            "timestamp": utcnow().isoformat(),
        }
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Notification queue full, dropping event", notification=event.value, attempt_id=attempt_id)

    async def start(self) -> None:
        """Start the delivery worker"""
        if not self.enabled or self._worker is not None:
            return
        self._worker = asyncio.create_task(self._run())
        logger.info("Notification dispatcher started", webhook_url=self.webhook_url)

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Deliver what is queued (bounded), then stop the worker"""
        if self._worker is None:
            return

        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            logger.warning("Notification queue not drained before shutdown", pending=self._queue.qsize())

        self._worker.cancel()
        await asyncio.gather(self._worker, return_exceptions=True)
        self._worker = None

        if self._client:
            await self._client.aclose()
            self._client = None

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._deliver(message)
            finally:
                self._queue.task_done()

    async def _deliver(self, message: dict[str, Any]) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

        try:
            response = await self._client.post(self.webhook_url, json=message)
            response.raise_for_status()
            logger.debug("Notification delivered", notification=message["event"], attempt_id=message["attempt_id"])
        except httpx.HTTPError as e:
            logger.warning(
                "Notification delivery failed",
                notification=message["event"],
                attempt_id=message["attempt_id"],
                error=str(e),
            )
