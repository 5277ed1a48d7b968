"""
Deployment Context

Everything the deployment nodes need, bundled once per orchestrator and
handed to the node factories: configuration, store, collaborators, and the
per-target locks that guard TargetState writes.
"""

import asyncio
from collections import defaultdict
from typing import Any, Optional

import structlog

from deploy_core.config_loader import Config
from deploy_core.exceptions import DeploymentError
from deploy_core.schemas.models import DeploymentAttempt, Stage, TargetState, utcnow
from deploy_core.tools.provisioner_client import Provisioner

from components.fleet_health import FleetHealthAggregator
from components.smoke_tests import SmokeTestRunner
from components.traffic_switcher import TrafficSwitcher
from components.retirement import RetirementManager

from .state_store import StateStore
from .notifier import NotificationDispatcher
from .cancellation import AttemptRegistry

logger = structlog.get_logger(__name__)


class DeploymentContext:
    """Shared collaborators and persistence helpers for deployment nodes"""

    def __init__(
        self,
        config: Config,
        store: StateStore,
        provisioner: Provisioner,
        aggregator: FleetHealthAggregator,
        smoke_runner: SmokeTestRunner,
        switcher: TrafficSwitcher,
        retirement: RetirementManager,
        notifier: NotificationDispatcher,
        registry: Optional[AttemptRegistry] = None,
    ):
        self.config = config
        self.store = store
        self.provisioner = provisioner
        self.aggregator = aggregator
        self.smoke_runner = smoke_runner
        self.switcher = switcher
        self.retirement = retirement
        self.notifier = notifier
        self.registry = registry or AttemptRegistry()
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def target_lock(self, target: str) -> asyncio.Lock:
        return self._locks[target]

    def cancel_event(self, attempt_id: str) -> Optional[asyncio.Event]:
        return self.registry.event(attempt_id)

    async def advance(self, attempt: DeploymentAttempt, to_stage: Stage, note: Optional[str] = None) -> None:
        """Move the attempt along the transition table and persist it"""
        from_stage = attempt.stage
        attempt.advance(to_stage, note)
        await self.store.save_attempt(attempt)

        logger.info(
            "Stage transition",
            attempt_id=attempt.attempt_id,
            target=attempt.target,
            from_stage=from_stage.value,
            to_stage=to_stage.value,
            note=note,
        )

    async def fail_stage(self, attempt: DeploymentAttempt, error: DeploymentError, to_stage: Stage) -> None:
        """Record the current stage's failure, then move to ``to_stage``"""
        logger.warning(
            "Stage failed",
            attempt_id=attempt.attempt_id,
            target=attempt.target,
            stage=attempt.stage.value,
            error_type=type(error).__name__,
            reason=error.message,
        )
        attempt.record_failure(attempt.stage, error)
        await self.advance(attempt, to_stage, note=error.message)

    async def load_target(self, target: str) -> TargetState:
        return await self.store.get_target(target) or TargetState(target=target)

    async def update_target(self, target: str, **changes: Any) -> TargetState:
        """Read-modify-write of a target record under its lock"""
        async with self.target_lock(target):
            state = await self.load_target(target)
            for field, value in changes.items():
                setattr(state, field, value)
            state.updated_at = utcnow()
            await self.store.save_target(state)
            return state

    async def release_target(self, target: str, attempt_id: str) -> None:
        """Clear the target's active attempt if it is still this one"""
        async with self.target_lock(target):
            state = await self.load_target(target)
            if state.active_attempt_id != attempt_id:
                return
            state.active_attempt_id = None
            state.updated_at = utcnow()
            await self.store.save_target(state)
