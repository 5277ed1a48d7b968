from .state import DeploymentState, create_initial_state

__all__ = ["DeploymentState", "create_initial_state"]
