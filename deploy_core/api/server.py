"""
Operator API Server

HTTP surface for operators: request a deployment, query an attempt, abort
it, inspect or force-reconcile a target's traffic state.
"""

from typing import Any
from datetime import datetime, timezone
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..exceptions import (
    DeploymentError,
    AlreadyInProgressError,
    AttemptNotFoundError,
    InvalidTransitionError,
    NoOpDeploymentError,
    ReconciliationRequiredError,
    TrafficDirectorError,
    UnknownTargetError,
)
from ..schemas.models import DeploymentAttempt, TargetState
from ..schemas.tasks import (
    AttemptView,
    CancelResult,
    DeployRequest,
    DeployResponse,
    ErrorResponse,
)

logger = structlog.get_logger(__name__)

ERROR_STATUS: dict[type, int] = {
    UnknownTargetError: 404,
    AttemptNotFoundError: 404,
    AlreadyInProgressError: 409,
    ReconciliationRequiredError: 409,
    InvalidTransitionError: 409,
    TrafficDirectorError: 502,
}


def status_for(error: DeploymentError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status_code
    return 500


def attempt_view(attempt: DeploymentAttempt) -> AttemptView:
    return AttemptView.model_validate(attempt.model_dump())


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    service: str
    version: str
    timestamp: str


class ReleaseAPIServer:
    """
    Operator API server.

    - POST /api/v1/targets/{target}/deployments   request a deployment
    - GET  /api/v1/deployments/{attempt_id}       stage, outcome, reason
    - POST /api/v1/deployments/{attempt_id}/cancel
    - POST /api/v1/targets/{target}/reconcile     force read-back from director
    - GET  /api/v1/targets/{target}               persisted target state
    - GET  /health, GET /ready
    """

    def __init__(
        self,
        service_name: str,
        service_version: str,
        service_description: str,
        orchestrator: Any,
    ):
        """
        Initialize API server.

        Args:
            service_name: Name used in logs and health responses
            service_version: Version string
            service_description: Human-readable description
            orchestrator: ReleaseOrchestrator serving the requests
        """
        self.service_name = service_name
        self.service_version = service_version
        self.service_description = service_description
        self.orchestrator = orchestrator

        self._ready = False
        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with routes"""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            """Lifecycle management"""
            logger.info(
                "Release API server starting",
                service=self.service_name,
                version=self.service_version,
            )
            await self.orchestrator.start()
            self._ready = True
            yield
            logger.info("Release API server shutting down")
            self._ready = False
            await self.orchestrator.shutdown()

        app = FastAPI(
            title=self.service_name,
            version=self.service_version,
            description=self.service_description,
            lifespan=lifespan,
        )

        @app.exception_handler(DeploymentError)
        async def deployment_error_handler(request: Request, exc: DeploymentError):
            status_code = status_for(exc)
            if status_code >= 500:
                logger.error("Request failed", path=request.url.path, error=exc.message)
            body = ErrorResponse(error=type(exc).__name__, message=exc.message, details=exc.details)
            return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))

        self._register_routes(app)
        return app

    def _register_routes(self, app: FastAPI) -> None:
        """Register all API routes"""

        # ============== Health Endpoints ==============

        @app.get("/health", response_model=HealthResponse)
        async def health_check():
            """Basic health check"""
            return HealthResponse(
                status="healthy",
                service=self.service_name,
                version=self.service_version,
                timestamp=datetime.now(timezone.utc).isoformat(),
            )

        @app.get("/ready")
        async def readiness_check():
            """Readiness check for orchestration"""
            if not self._ready:
                raise HTTPException(status_code=503, detail="Not ready")
            return {"status": "ready"}

        # ============== Deployments ==============

        @app.post("/api/v1/targets/{target}/deployments", response_model=DeployResponse)
        async def request_deployment(target: str, body: DeployRequest, response: Response):
            """
            Request deployment of a color to a target.

            202 with the attempt id when accepted, 200 when the color is
            already active (no-op) or when ``wait`` was set and the attempt
            has finished.
            """
            logger.info(
                "Received deployment request",
                target=target,
                color=body.color.value,
                wait=body.wait,
            )

            try:
                attempt = await self.orchestrator.deploy(target, body.color, wait=body.wait)
            except NoOpDeploymentError as e:
                return DeployResponse(target=target, status="noop", message=e.message)

            if body.wait:
                return DeployResponse(
                    target=target,
                    status="finished",
                    attempt_id=attempt.attempt_id,
                    stage=attempt.stage,
                    outcome=attempt.outcome,
                    message=attempt.failure.reason if attempt.failure else None,
                )

            response.status_code = 202
            return DeployResponse(
                target=target,
                status="accepted",
                attempt_id=attempt.attempt_id,
                stage=attempt.stage,
                outcome=attempt.outcome,
            )

        @app.get("/api/v1/deployments/{attempt_id}", response_model=AttemptView)
        async def get_deployment(attempt_id: str):
            """Current stage and, on terminal states, the structured reason"""
            attempt = await self.orchestrator.get_attempt(attempt_id)
            return attempt_view(attempt)

        @app.post("/api/v1/deployments/{attempt_id}/cancel", response_model=CancelResult)
        async def cancel_deployment(attempt_id: str):
            """Operator abort"""
            result = await self.orchestrator.cancel(attempt_id)
            logger.info("Cancel requested", attempt_id=attempt_id, disposition=result.disposition)
            return result

        # ============== Targets ==============

        @app.get("/api/v1/targets/{target}", response_model=TargetState)
        async def get_target(target: str):
            """Persisted active color and reconciliation flag"""
            return await self.orchestrator.get_target_state(target)

        @app.post("/api/v1/targets/{target}/reconcile", response_model=TargetState)
        async def reconcile_target(target: str):
            """Force a read-back of the active color and clear the block"""
            return await self.orchestrator.reconcile(target)


def create_app(
    service_name: str,
    service_version: str,
    service_description: str,
    orchestrator: Any,
) -> FastAPI:
    """
    Create FastAPI app for the operator API.

    Convenience function for creating the server.
    """
    server = ReleaseAPIServer(
        service_name=service_name,
        service_version=service_version,
        service_description=service_description,
        orchestrator=orchestrator,
    )
    return server.app
