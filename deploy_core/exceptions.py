"""
Deployment Exceptions

Error taxonomy for the release orchestrator. Every error carries a message
and an optional ``details`` dict so stage failures can be recorded on the
attempt with a structured reason.
"""

from typing import Any, Optional


class DeploymentError(Exception):
    """Base exception for all release orchestrator errors"""

    def __init__(self, message: str = "", details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}


# ============== Stage Errors ==============


class ProvisionError(DeploymentError):
    """Provisioner could not stand up the target fleet. No traffic impact."""
    pass


class HealthCheckTimeout(DeploymentError):
    """Fleet did not report healthy within the stage deadline"""

    def __init__(
        self,
        message: str = "Fleet health check failed",
        unhealthy: Optional[list[str]] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.unhealthy: list[str] = unhealthy or []


class SmokeTestFailure(DeploymentError):
    """One or more smoke checks failed against the target fleet"""

    def __init__(
        self,
        message: str = "Smoke tests failed",
        failures: Optional[list[dict[str, Any]]] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.failures: list[dict[str, Any]] = failures or []


class TrafficSwitchError(DeploymentError):
    """
    Traffic Director did not confirm the switch.

    ``routing_unchanged`` is True when the switcher cleaned up after itself and
    the previous routing is known to be intact. False means traffic state is
    uncertain and must be reconciled.
    """

    def __init__(
        self,
        message: str = "Traffic switch failed",
        routing_unchanged: bool = True,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.routing_unchanged = routing_unchanged


class RetirementWarning(DeploymentError):
    """Old fleet could not be retired. Non-fatal, surfaced for follow-up."""
    pass


class DeploymentCancelled(DeploymentError):
    """Operator aborted the attempt before traffic was touched"""
    pass


# ============== Collaborator Errors ==============


class TrafficDirectorError(DeploymentError):
    """Transport or API error talking to the Traffic Director"""
    pass


# ============== Control Errors ==============


class AlreadyInProgressError(DeploymentError):
    """Another attempt is already in progress for the target"""

    def __init__(self, target: str, attempt_id: Optional[str] = None):
        super().__init__(
            f"Deployment already in progress for target '{target}'",
            details={"target": target, "attempt_id": attempt_id},
        )
        self.target = target
        self.attempt_id = attempt_id


class NoOpDeploymentError(DeploymentError):
    """
    Requested color is already active.

    Raised before any side effect; callers treat it as a successful no-op.
    """

    def __init__(self, target: str, color: str):
        super().__init__(
            f"Color '{color}' is already active for target '{target}'",
            details={"target": target, "color": color},
        )
        self.target = target
        self.color = color


class ReconciliationRequiredError(DeploymentError):
    """Target traffic state is unknown; an operator must reconcile first"""

    def __init__(self, target: str, reason: Optional[str] = None):
        super().__init__(
            f"Target '{target}' requires reconciliation before new deployments",
            details={"target": target, "reason": reason},
        )
        self.target = target
        self.reason = reason


class UnknownTargetError(DeploymentError):
    """Target is not present in configuration"""

    def __init__(self, target: str):
        super().__init__(f"Unknown deployment target '{target}'", details={"target": target})
        self.target = target


class AttemptNotFoundError(DeploymentError):
    """No attempt recorded under the given id"""

    def __init__(self, attempt_id: str):
        super().__init__(f"Deployment attempt '{attempt_id}' not found", details={"attempt_id": attempt_id})
        self.attempt_id = attempt_id


class InvalidTransitionError(DeploymentError):
    """Stage change not allowed by the transition table"""

    def __init__(self, from_stage: str, to_stage: str, attempt_id: Optional[str] = None):
        super().__init__(
            f"Illegal stage transition {from_stage} -> {to_stage}",
            details={"from_stage": from_stage, "to_stage": to_stage, "attempt_id": attempt_id},
        )
        self.from_stage = from_stage
        self.to_stage = to_stage
