"""
Tests for the operator API server

The orchestrator is a stub here; components.orchestrator has the end-to-end
API tests.
"""

import pytest
from fastapi.testclient import TestClient

from deploy_core.api.server import create_app, status_for
from deploy_core.exceptions import (
    AlreadyInProgressError,
    AttemptNotFoundError,
    DeploymentError,
    NoOpDeploymentError,
    ReconciliationRequiredError,
    TrafficDirectorError,
    UnknownTargetError,
)
from deploy_core.schemas.models import Color, DeploymentAttempt, Stage, TargetState
from deploy_core.schemas.tasks import CancelResult


class StubOrchestrator:
    """Answers from canned values; ``deploy_error`` is raised by deploy"""

    def __init__(self):
        self.deploy_error = None
        self.started = False
        self.stopped = False
        self.attempts: dict[str, DeploymentAttempt] = {}

    async def start(self):
        self.started = True

    async def shutdown(self):
        self.stopped = True

    async def deploy(self, target, color, wait=True):
        if self.deploy_error:
            raise self.deploy_error
        attempt = DeploymentAttempt(target=target, source_color=color.other(), target_color=color)
        if wait:
            attempt.advance(Stage.PROVISIONING_TARGET)
            attempt.advance(Stage.FAILED)
        self.attempts[attempt.attempt_id] = attempt
        return attempt

    async def get_attempt(self, attempt_id):
        if attempt_id not in self.attempts:
            raise AttemptNotFoundError(attempt_id)
        return self.attempts[attempt_id]

    async def cancel(self, attempt_id):
        attempt = await self.get_attempt(attempt_id)
        return CancelResult(attempt_id=attempt_id, disposition="cancelled", stage=attempt.stage)

    async def get_target_state(self, target):
        if target != "prod":
            raise UnknownTargetError(target)
        return TargetState(target=target, active_color=Color.BLUE)

    async def reconcile(self, target):
        return TargetState(target=target, active_color=Color.GREEN)


@pytest.fixture
def orchestrator():
    return StubOrchestrator()


@pytest.fixture
def client(orchestrator):
    app = create_app("bluegreen-orchestrator", "1.0.0", "test", orchestrator)
    with TestClient(app) as client:
        yield client


def test_lifespan_starts_and_stops_orchestrator(orchestrator):
    app = create_app("bluegreen-orchestrator", "1.0.0", "test", orchestrator)

    with TestClient(app) as client:
        assert orchestrator.started is True
        assert client.get("/ready").json() == {"status": "ready"}

    assert orchestrator.stopped is True


def test_health(client):
    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["service"] == "bluegreen-orchestrator"


def test_deploy_accepted(client):
    response = client.post("/api/v1/targets/prod/deployments", json={"color": "green"})

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "accepted"
    assert body["stage"] == "idle"
    assert body["attempt_id"].startswith("DEP-")


def test_deploy_wait_returns_terminal_attempt(client):
    response = client.post("/api/v1/targets/prod/deployments", json={"color": "green", "wait": True})

    assert response.status_code == 200
    assert response.json()["status"] == "finished"
    assert response.json()["outcome"] == "failed"


def test_deploy_noop_is_success(client, orchestrator):
    orchestrator.deploy_error = NoOpDeploymentError("prod", "green")

    response = client.post("/api/v1/targets/prod/deployments", json={"color": "green"})

    assert response.status_code == 200
    assert response.json()["status"] == "noop"
    assert response.json()["attempt_id"] is None


@pytest.mark.parametrize("error,status_code", [
    (UnknownTargetError("qa"), 404),
    (AlreadyInProgressError("prod", "DEP-1"), 409),
    (ReconciliationRequiredError("prod", "rollback failed"), 409),
    (TrafficDirectorError("director down"), 502),
])
def test_deploy_errors(client, orchestrator, error, status_code):
    orchestrator.deploy_error = error

    response = client.post("/api/v1/targets/prod/deployments", json={"color": "green"})

    assert response.status_code == status_code
    assert response.json()["error"] == type(error).__name__
    assert response.json()["message"] == error.message


def test_invalid_color_rejected(client):
    response = client.post("/api/v1/targets/prod/deployments", json={"color": "purple"})

    assert response.status_code == 422


def test_get_and_cancel_deployment(client):
    attempt_id = client.post("/api/v1/targets/prod/deployments", json={"color": "green"}).json()["attempt_id"]

    view = client.get(f"/api/v1/deployments/{attempt_id}").json()
    cancel = client.post(f"/api/v1/deployments/{attempt_id}/cancel").json()

    assert view["attempt_id"] == attempt_id
    assert view["target_color"] == "green"
    assert view["failure"] is None
    assert cancel["disposition"] == "cancelled"


def test_unknown_deployment(client):
    response = client.get("/api/v1/deployments/DEP-missing")

    assert response.status_code == 404
    assert response.json()["details"] == {"attempt_id": "DEP-missing"}


def test_target_endpoints(client):
    assert client.get("/api/v1/targets/prod").json()["active_color"] == "blue"
    assert client.get("/api/v1/targets/qa").status_code == 404
    assert client.post("/api/v1/targets/prod/reconcile").json()["active_color"] == "green"


def test_status_for_unmapped_error():
    assert status_for(DeploymentError("boom")) == 500
