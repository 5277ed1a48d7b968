"""
Test harness for the deployment orchestrator.

Wires ReleaseOrchestrator to the in-memory fakes and a scripted fleet that
answers health and smoke requests through httpx.MockTransport.
"""

import asyncio
from typing import Any, Optional

import httpx

from deploy_core.config_loader import (
    Config,
    HealthSettings,
    NotificationSettings,
    ProvisionerSettings,
    RetirementSettings,
    SmokeTestSettings,
    StoreSettings,
    TargetConfig,
    TrafficSettings,
)
from deploy_core.schemas.models import Color, DeploymentAttempt, SmokeCheck, Stage, TargetState
from deploy_core.tests.fakes import FakeProvisioner, FakeTrafficDirector

from ..service import ReleaseOrchestrator
from ..tools.notifier import NotificationDispatcher, NotificationEvent
from ..tools.state_store import InMemoryStateStore

TARGET = "prod"
OTHER_TARGET = "staging"


def make_config(
    grace_period: float = 0.0,
    live_health_url: Optional[str] = None,
    retirement_mode: str = "deprovision",
) -> Config:
    """Fast timings: zero backoff, sub-second deadlines"""
    return Config(
        targets={
            TARGET: TargetConfig(desired_size=3),
            OTHER_TARGET: TargetConfig(desired_size=2),
        },
        health=HealthSettings(
            request_timeout_seconds=0.5,
            max_attempts=2,
            backoff_initial_seconds=0,
            backoff_max_seconds=0,
            per_instance_timeout_seconds=1.0,
            deadline_seconds=2.0,
            verify_deadline_seconds=2.0,
            live_health_url=live_health_url,
        ),
        smoke_tests=SmokeTestSettings(
            request_timeout_seconds=0.5,
            checks=[SmokeCheck(path="/health"), SmokeCheck(name="version", path="/api/version")],
        ),
        provisioner=ProvisionerSettings(timeout_seconds=2.0),
        traffic=TrafficSettings(timeout_seconds=1.0),
        retirement=RetirementSettings(
            grace_period_seconds=grace_period,
            mode=retirement_mode,
            timeout_seconds=1.0,
        ),
        notifications=NotificationSettings(enabled=False),
        store=StoreSettings(backend="memory"),
    )


class RecordingNotifier(NotificationDispatcher):
    """Keeps events in a list instead of posting them"""

    def __init__(self):
        super().__init__(enabled=False)
        self.events: list[tuple[NotificationEvent, str, dict[str, Any]]] = []

    def notify(self, event, attempt_id, details=None) -> None:
        self.events.append((event, attempt_id, details or {}))

    @property
    def names(self) -> list[str]:
        return [event.value for event, _, _ in self.events]


class ScriptedFleet:
    """
    Instance behavior keyed by host.

    - unhealthy: health endpoint answers 503
    - unhealthy_when_live: 503 only once the host's color is live
    - hanging: health endpoint never answers
    - smoke_failures: (host, path) pairs answering 500
    """

    def __init__(self, director: FakeTrafficDirector, health_path: str = "/health"):
        self.director = director
        self.health_path = health_path
        self.unhealthy: set[str] = set()
        self.unhealthy_when_live: set[str] = set()
        self.hanging: set[str] = set()
        self.smoke_failures: set[tuple[str, str]] = set()
        self.requests: list[tuple[str, str]] = []

    def _is_live(self, host: str) -> bool:
        active = self.director.active.get(TARGET)
        return active is not None and host.startswith(f"{active.value}-")

    async def handler(self, request: httpx.Request) -> httpx.Response:
        host, path = request.url.host, request.url.path
        self.requests.append((host, path))

        if (host, path) in self.smoke_failures:
            return httpx.Response(500)
        if path == self.health_path:
            if host in self.hanging:
                await asyncio.sleep(30)
            if host in self.unhealthy:
                return httpx.Response(503)
            if host in self.unhealthy_when_live and self._is_live(host):
                return httpx.Response(503)
        return httpx.Response(200)


class Harness:
    """Orchestrator plus its fakes"""

    def __init__(
        self,
        active: Optional[Color] = Color.BLUE,
        provisioner: Optional[FakeProvisioner] = None,
        config: Optional[Config] = None,
        notifier: Optional[NotificationDispatcher] = None,
    ):
        self.config = config or make_config()
        self.store = InMemoryStateStore()
        self.provisioner = provisioner or FakeProvisioner()
        self.director = FakeTrafficDirector(active={TARGET: active} if active else {})
        self.fleet = ScriptedFleet(self.director)
        self.notifier = notifier or RecordingNotifier()
        self.orchestrator = ReleaseOrchestrator(
            config=self.config,
            store=self.store,
            provisioner=self.provisioner,
            director=self.director,
            notifier=self.notifier,
            instance_transport=httpx.MockTransport(self.fleet.handler),
        )

    async def seed_target(self, color: Optional[Color], target: str = TARGET, **fields: Any) -> None:
        await self.store.save_target(TargetState(target=target, active_color=color, **fields))

    async def target_state(self, target: str = TARGET) -> TargetState:
        return await self.orchestrator.get_target_state(target)

    async def stored_attempt(self, attempt_id: str) -> DeploymentAttempt:
        return await self.store.get_attempt(attempt_id)


async def wait_for_stage(attempt: DeploymentAttempt, stage: Stage, timeout: float = 2.0) -> None:
    """Poll a live attempt until it reaches ``stage``"""
    async def poll():
        while attempt.stage is not stage:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout=timeout)


def stages(attempt: DeploymentAttempt) -> list[str]:
    """Stage path taken by an attempt, starting from idle"""
    if not attempt.history:
        return [attempt.stage.value]
    return [attempt.history[0].from_stage.value] + [t.to_stage.value for t in attempt.history]
