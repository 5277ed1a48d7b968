"""
Release Orchestrator

Service facade over the deployment workflow: admits deployment requests
(one in-progress attempt per target, fail closed on unknown traffic state),
runs attempts as detached tasks, and answers status, cancel, reconcile,
and crash-recovery requests.
"""

import asyncio
from typing import Optional

import httpx
import structlog

from deploy_core.config_loader import Config
from deploy_core.exceptions import (
    AlreadyInProgressError,
    AttemptNotFoundError,
    NoOpDeploymentError,
    ReconciliationRequiredError,
    TrafficDirectorError,
    UnknownTargetError,
)
from deploy_core.schemas.models import (
    Color,
    DeploymentAttempt,
    TargetState,
    TRAFFIC_STAGES,
    utcnow,
)
from deploy_core.schemas.tasks import CancelResult
from deploy_core.tools.provisioner_client import Provisioner
from deploy_core.tools.traffic_director_client import TrafficDirector

from components.fleet_health import HealthProber, FleetHealthAggregator
from components.smoke_tests import SmokeTestRunner
from components.traffic_switcher import TrafficSwitcher
from components.retirement import RetirementManager

from .tools.state_store import StateStore
from .tools.notifier import NotificationDispatcher, NotificationEvent
from .tools.cancellation import AttemptRegistry
from .tools.context import DeploymentContext
from .workflow import DeploymentWorkflow

logger = structlog.get_logger(__name__)


class ReleaseOrchestrator:
    """
    Zero-downtime blue/green release orchestrator.

    Usage:
        orchestrator = ReleaseOrchestrator(config, store, provisioner, director)
        await orchestrator.recover()
        attempt = await orchestrator.deploy("prod", Color.GREEN, wait=False)
        attempt = await orchestrator.get_attempt(attempt.attempt_id)
    """

    def __init__(
        self,
        config: Config,
        store: StateStore,
        provisioner: Provisioner,
        director: TrafficDirector,
        notifier: Optional[NotificationDispatcher] = None,
        instance_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Orchestrator configuration
            store: Attempt and target persistence
            provisioner: Environment Provisioner client
            director: Traffic Director client
            notifier: Event dispatcher (built from config when omitted)
            instance_transport: Optional httpx transport for health and
                smoke requests to fleet instances (tests)
        """
        self.config = config
        self.store = store
        self.director = director
        self.notifier = notifier or NotificationDispatcher.from_settings(config.notifications)

        prober = HealthProber.from_settings(config.health, transport=instance_transport)
        self.context = DeploymentContext(
            config=config,
            store=store,
            provisioner=provisioner,
            aggregator=FleetHealthAggregator(prober),
            smoke_runner=SmokeTestRunner.from_settings(
                config.smoke_tests,
                scheme=config.health.scheme,
                transport=instance_transport,
            ),
            switcher=TrafficSwitcher(director, call_timeout=config.traffic.timeout_seconds),
            retirement=RetirementManager.from_settings(provisioner, config.retirement),
            notifier=self.notifier,
            registry=AttemptRegistry(),
        )
        self.workflow = DeploymentWorkflow(self.context, version=config.service.version)
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def registry(self) -> AttemptRegistry:
        return self.context.registry

    def _require_target(self, target: str) -> None:
        if self.config.get_target(target) is None:
            raise UnknownTargetError(target)

    # ============== Deploy ==============

    async def deploy(self, target: str, target_color: Color, wait: bool = True) -> DeploymentAttempt:
        """
        Start a deployment of ``target_color`` to ``target``.

        Args:
            target: Configured deployment target
            target_color: Color to make active
            wait: Block until the attempt is terminal

        Returns:
            The attempt (terminal when wait=True)

        Raises:
            UnknownTargetError: target missing from configuration
            ReconciliationRequiredError: target traffic state is unknown
            AlreadyInProgressError: another attempt is running for target
            NoOpDeploymentError: target_color is already active; nothing done
            TrafficDirectorError: active color could not be read back
        """
        self._require_target(target)
        target_config = self.config.get_target(target)

        async with self.context.target_lock(target):
            state = await self.context.load_target(target)

            if state.requires_reconciliation:
                raise ReconciliationRequiredError(target, state.reconciliation_reason)

            running = self.registry.running_for(target)
            if running is not None:
                raise AlreadyInProgressError(target, running.attempt_id)
            if state.active_attempt_id:
                previous = await self.store.get_attempt(state.active_attempt_id)
                if previous is not None and not previous.is_terminal:
                    raise AlreadyInProgressError(target, previous.attempt_id)

            if state.active_color is not None and state.active_color == target_color:
                logger.info("Deploy is a no-op", target=target, color=target_color.value)
                raise NoOpDeploymentError(target, target_color.value)

            live_color = await self._read_live_color(target)

            if state.active_color is None:
                if live_color is not None:
                    logger.info("Recording active color from director", target=target, color=live_color.value)
                state.active_color = live_color
                if live_color == target_color:
                    state.updated_at = utcnow()
                    await self.store.save_target(state)
                    raise NoOpDeploymentError(target, target_color.value)
            elif live_color != state.active_color:
                reason = (
                    f"recorded active color {state.active_color.value} but director reports "
                    f"{live_color.value if live_color else 'none'}"
                )
                logger.error("Active color disagreement", target=target, reason=reason)
                state.requires_reconciliation = True
                state.reconciliation_reason = reason
                state.updated_at = utcnow()
                await self.store.save_target(state)
                raise ReconciliationRequiredError(target, reason)

            attempt = DeploymentAttempt(
                target=target,
                source_color=state.active_color,
                target_color=target_color,
                desired_size=target_config.desired_size,
            )
            await self.store.save_attempt(attempt)

            state.active_attempt_id = attempt.attempt_id
            state.updated_at = utcnow()
            await self.store.save_target(state)

            self.registry.add(attempt)
            task = asyncio.create_task(self._run(attempt), name=f"deploy-{attempt.attempt_id}")
            self._tasks[attempt.attempt_id] = task

        logger.info(
            "Deployment attempt started",
            attempt_id=attempt.attempt_id,
            target=target,
            source_color=attempt.source_color.value if attempt.source_color else None,
            target_color=target_color.value,
        )

        if wait:
            await asyncio.shield(task)
        return attempt

    async def _read_live_color(self, target: str) -> Optional[Color]:
        try:
            return await self.context.switcher.current_active_color(target)
        except asyncio.TimeoutError as e:
            raise TrafficDirectorError(
                f"Traffic Director did not report the active color for '{target}'",
                details={"target": target},
            ) from e

    async def _run(self, attempt: DeploymentAttempt) -> None:
        """Drive one attempt through the workflow"""
        try:
            initial_state = self.workflow.get_initial_state(run_id=attempt.attempt_id, attempt=attempt)
            await self.workflow.execute(initial_state)
        except Exception as e:
            await self._fail_unexpected(attempt, e)
        finally:
            self.registry.remove(attempt.attempt_id)
            self._tasks.pop(attempt.attempt_id, None)

    async def _fail_unexpected(self, attempt: DeploymentAttempt, error: Exception) -> None:
        """Terminate an attempt the workflow could not finish"""
        if attempt.is_terminal:
            return

        stage = attempt.stage
        attempt.record_failure(stage, error)
        reason = f"unexpected error in {stage.value}: {error}"
        attempt.abandon(reason)

        if stage in TRAFFIC_STAGES:
            attempt.requires_reconciliation = True
            await self.context.update_target(
                attempt.target,
                requires_reconciliation=True,
                reconciliation_reason=reason,
            )

        await self.store.save_attempt(attempt)
        await self.context.release_target(attempt.target, attempt.attempt_id)
        self.notifier.notify(
            NotificationEvent.FAILED,
            attempt.attempt_id,
            {"target": attempt.target, "reason": reason},
        )

    async def wait(self, attempt_id: str) -> DeploymentAttempt:
        """Wait for a running attempt to finish and return it"""
        task = self._tasks.get(attempt_id)
        if task is not None:
            await asyncio.shield(task)
        return await self.get_attempt(attempt_id)

    # ============== Queries ==============

    async def get_attempt(self, attempt_id: str) -> DeploymentAttempt:
        """Current stage and, once terminal, the structured reason"""
        attempt = self.registry.get(attempt_id) or await self.store.get_attempt(attempt_id)
        if attempt is None:
            raise AttemptNotFoundError(attempt_id)
        return attempt

    async def get_target_state(self, target: str) -> TargetState:
        self._require_target(target)
        return await self.context.load_target(target)

    # ============== Operator Controls ==============

    async def cancel(self, attempt_id: str) -> CancelResult:
        """
        Operator abort.

        Raises:
            AttemptNotFoundError: no attempt with this id
        """
        result = self.registry.request_cancel(attempt_id)
        if result is not None:
            if result.disposition != "rejected":
                await self.store.save_attempt(self.registry.get(attempt_id))
            return result

        attempt = await self.get_attempt(attempt_id)
        return CancelResult(
            attempt_id=attempt_id,
            disposition="rejected",
            stage=attempt.stage,
            message="attempt already finished" if attempt.is_terminal else "attempt is not running in this process",
        )

    async def reconcile(self, target: str) -> TargetState:
        """
        Read the active color back from the Traffic Director and clear the block.

        Raises:
            UnknownTargetError: target missing from configuration
            AlreadyInProgressError: an attempt is still running for target
            TrafficDirectorError: director could not be read
        """
        self._require_target(target)

        async with self.context.target_lock(target):
            running = self.registry.running_for(target)
            if running is not None:
                raise AlreadyInProgressError(target, running.attempt_id)

            live_color = await self._read_live_color(target)
            state = await self.context.load_target(target)
            previous = state.active_color

            state.active_color = live_color
            state.requires_reconciliation = False
            state.reconciliation_reason = None
            state.active_attempt_id = None
            state.updated_at = utcnow()
            await self.store.save_target(state)

        logger.info(
            "Target reconciled",
            target=target,
            previous_color=previous.value if previous else None,
            active_color=live_color.value if live_color else None,
        )
        return state

    # ============== Lifecycle ==============

    async def recover(self) -> list[DeploymentAttempt]:
        """
        Close out attempts left in progress by a previous process.

        Each is marked Failed; if it had reached the traffic switch its
        target is flagged for reconciliation.
        """
        recovered = []
        for attempt in await self.store.list_in_progress():
            if attempt.attempt_id in self.registry:
                continue

            stage = attempt.stage
            attempt.abandon("orchestrator restarted")

            if stage in TRAFFIC_STAGES:
                attempt.requires_reconciliation = True
                await self.context.update_target(
                    attempt.target,
                    requires_reconciliation=True,
                    reconciliation_reason=f"attempt {attempt.attempt_id} interrupted in {stage.value}",
                )

            await self.store.save_attempt(attempt)
            await self.context.release_target(attempt.target, attempt.attempt_id)
            recovered.append(attempt)

            logger.warning(
                "Recovered interrupted attempt",
                attempt_id=attempt.attempt_id,
                target=attempt.target,
                stage=stage.value,
                requires_reconciliation=attempt.requires_reconciliation,
            )

        return recovered

    async def start(self) -> None:
        """Recover stale attempts and start the notifier"""
        await self.recover()
        await self.notifier.start()

    async def shutdown(self) -> None:
        """Stop the notifier and release clients and the store"""
        if self._tasks:
            logger.warning("Shutting down with attempts in progress", attempts=list(self._tasks))
        await self.notifier.stop()

        for client in (
            self.context.aggregator.prober,
            self.context.smoke_runner,
            self.context.provisioner,
            self.director,
        ):
            close = getattr(client, "close", None)
            if close is not None:
                await close()

        await self.store.close()
