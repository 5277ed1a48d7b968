"""
Conditional Edge Functions

Route the deployment graph on the stage each node left the attempt in.
"""

from typing import Literal

from deploy_core.schemas.models import Stage


def _stage(state: dict) -> Stage:
    return state["attempt"].stage


def check_provision_result(state: dict) -> Literal["health_check", "finalize"]:
    """
    provision -> health_check (fleet ready)
    provision -> finalize (provisioning failed or cancelled)
    """
    if _stage(state) is Stage.HEALTH_CHECKING:
        return "health_check"
    return "finalize"


def check_health_result(state: dict) -> Literal["smoke_test", "rollback", "finalize"]:
    """
    health_check -> smoke_test (all healthy)
    health_check -> rollback (unhealthy)
    health_check -> finalize (cancelled)
    """
    stage = _stage(state)
    if stage is Stage.SMOKE_TESTING:
        return "smoke_test"
    if stage is Stage.ROLLING_BACK:
        return "rollback"
    return "finalize"


def check_smoke_result(state: dict) -> Literal["switch", "rollback", "finalize"]:
    """
    smoke_test -> switch (passed)
    smoke_test -> rollback (failed)
    smoke_test -> finalize (cancelled)
    """
    stage = _stage(state)
    if stage is Stage.SWITCHING_TRAFFIC:
        return "switch"
    if stage is Stage.ROLLING_BACK:
        return "rollback"
    return "finalize"


def check_switch_result(state: dict) -> Literal["verify", "rollback"]:
    """
    switch -> verify (director confirmed)
    switch -> rollback (switch failed or cancel queued)
    """
    if _stage(state) is Stage.VERIFYING:
        return "verify"
    return "rollback"


def check_verify_result(state: dict) -> Literal["retire", "rollback"]:
    """
    verify -> retire (new fleet healthy on the live path)
    verify -> rollback (verification failed or cancel queued)
    """
    if _stage(state) is Stage.RETIRING_OLD:
        return "retire"
    return "rollback"
