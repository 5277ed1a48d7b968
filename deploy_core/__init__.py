"""
Deploy Core

Shared framework for the release orchestrator: domain models and error
taxonomy, configuration, the LangGraph workflow base, collaborator clients,
and the operator API server.
"""

from .workflow import BaseWorkflow, track_node
from .config_loader import Config, load_config
from .exceptions import DeploymentError

__version__ = "1.0.0"

__all__ = [
    "BaseWorkflow",
    "track_node",
    "Config",
    "load_config",
    "DeploymentError",
]
