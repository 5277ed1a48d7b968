"""
Deployment Nodes

LangGraph nodes implementing the deployment state machine. Each factory
binds a node to a DeploymentContext.
"""

from .provision_node import make_provision_node
from .health_check_node import make_health_check_node
from .smoke_test_node import make_smoke_test_node
from .switch_node import make_switch_node
from .verify_node import make_verify_node
from .retire_node import make_retire_node
from .rollback_node import make_rollback_node
from .finalize_node import make_finalize_node

from .conditions import (
    check_provision_result,
    check_health_result,
    check_smoke_result,
    check_switch_result,
    check_verify_result,
)

__all__ = [
    # Node factories
    "make_provision_node",
    "make_health_check_node",
    "make_smoke_test_node",
    "make_switch_node",
    "make_verify_node",
    "make_retire_node",
    "make_rollback_node",
    "make_finalize_node",
    # Conditions
    "check_provision_result",
    "check_health_result",
    "check_smoke_result",
    "check_switch_result",
    "check_verify_result",
]
