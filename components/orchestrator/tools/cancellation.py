"""
Attempt Registry and Cancellation

Tracks the attempts running in this process and decides what an operator
abort means for each stage:

- before traffic is touched: cancelled (in-flight checks are interrupted)
- while traffic is being switched or verified: queued, satisfied by rollback
- retiring or terminal: rejected
"""

import asyncio
from typing import Any, Awaitable, Optional

import structlog

from deploy_core.exceptions import DeploymentCancelled
from deploy_core.schemas.models import DeploymentAttempt, Stage
from deploy_core.schemas.tasks import CancelResult

logger = structlog.get_logger(__name__)

CANCEL_NOW_STAGES = frozenset({
    Stage.IDLE,
    Stage.PROVISIONING_TARGET,
    Stage.HEALTH_CHECKING,
    Stage.SMOKE_TESTING,
})

CANCEL_QUEUED_STAGES = frozenset({
    Stage.SWITCHING_TRAFFIC,
    Stage.VERIFYING,
    Stage.ROLLING_BACK,
})


class AttemptRegistry:
    """Live attempts keyed by id, each with its cancel signal"""

    def __init__(self):
        self._attempts: dict[str, DeploymentAttempt] = {}
        self._events: dict[str, asyncio.Event] = {}

    def add(self, attempt: DeploymentAttempt) -> asyncio.Event:
        self._attempts[attempt.attempt_id] = attempt
        event = asyncio.Event()
        self._events[attempt.attempt_id] = event
        return event

    def remove(self, attempt_id: str) -> None:
        self._attempts.pop(attempt_id, None)
        self._events.pop(attempt_id, None)

    def get(self, attempt_id: str) -> Optional[DeploymentAttempt]:
        return self._attempts.get(attempt_id)

    def event(self, attempt_id: str) -> Optional[asyncio.Event]:
        return self._events.get(attempt_id)

    def running_for(self, target: str) -> Optional[DeploymentAttempt]:
        for attempt in self._attempts.values():
            if attempt.target == target and not attempt.is_terminal:
                return attempt
        return None

    def __contains__(self, attempt_id: str) -> bool:
        return attempt_id in self._attempts

    def request_cancel(self, attempt_id: str) -> Optional[CancelResult]:
        """
        Apply an operator abort to a live attempt.

        Returns None when the attempt is not running in this process.
        """
        attempt = self._attempts.get(attempt_id)
        if attempt is None:
            return None

        stage = attempt.stage
        if attempt.is_terminal or stage not in CANCEL_NOW_STAGES | CANCEL_QUEUED_STAGES:
            logger.info("Cancel rejected", attempt_id=attempt_id, stage=stage.value)
            return CancelResult(
                attempt_id=attempt_id,
                disposition="rejected",
                stage=stage,
                message="traffic already committed" if not attempt.is_terminal else "attempt already finished",
            )

        attempt.cancel_requested = True

        if stage in CANCEL_QUEUED_STAGES:
            logger.info("Cancel queued until traffic settles", attempt_id=attempt_id, stage=stage.value)
            return CancelResult(
                attempt_id=attempt_id,
                disposition="queued",
                stage=stage,
                message="switch in progress; cancellation will be satisfied by rolling back",
            )

        self._events[attempt_id].set()
        logger.info("Cancel accepted", attempt_id=attempt_id, stage=stage.value)
        return CancelResult(
            attempt_id=attempt_id,
            disposition="cancelled",
            stage=stage,
            message="attempt will stop without touching traffic",
        )


async def run_interruptible(awaitable: Awaitable[Any], cancel_event: Optional[asyncio.Event]) -> Any:
    """
    Await stage work unless the cancel event fires first.

    Raises:
        DeploymentCancelled: the event was set; the work has been cancelled
    """
    if cancel_event is None:
        return await awaitable
    if cancel_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise DeploymentCancelled("cancelled by operator")

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not work.done():
            work.cancel()

    if work in done:
        return work.result()

    await asyncio.gather(work, return_exceptions=True)
    raise DeploymentCancelled("cancelled by operator")
