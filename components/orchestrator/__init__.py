"""
Deployment Orchestrator

Drives one blue/green deployment attempt per target through a LangGraph
state machine:

    START -> provision -> health_check -> smoke_test -> switch -> verify -> retire -> finalize -> END

    Branches:
    - provision -> finalize (provisioning failed; traffic untouched)
    - health_check / smoke_test -> rollback (failed) or finalize (cancelled)
    - switch / verify -> rollback (restore the original color)
"""

from .workflow import DeploymentWorkflow
from .service import ReleaseOrchestrator
from .schemas.state import DeploymentState, create_initial_state

__version__ = "1.0.0"

__all__ = [
    "DeploymentWorkflow",
    "ReleaseOrchestrator",
    "DeploymentState",
    "create_initial_state",
]
