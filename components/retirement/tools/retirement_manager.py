"""
Retirement Manager

Removes the fleet that no longer receives traffic, after a grace period that
lets in-flight requests drain. Retirement is best effort: every failure is
reported as a RetirementWarning and never fails the deployment.
"""

import asyncio
from typing import Literal, Optional

import structlog

from deploy_core.config_loader import RetirementSettings
from deploy_core.exceptions import DeploymentError, RetirementWarning
from deploy_core.schemas.models import Color
from deploy_core.tools.provisioner_client import Provisioner

logger = structlog.get_logger(__name__)


class RetirementManager:
    """Grace period, then deprovision or scale to zero"""

    def __init__(
        self,
        provisioner: Provisioner,
        grace_period: float = 300.0,
        mode: Literal["deprovision", "scale_to_zero"] = "deprovision",
        timeout: float = 600.0,
    ):
        self.provisioner = provisioner
        self.grace_period = grace_period
        self.mode = mode
        self.timeout = timeout

    @classmethod
    def from_settings(cls, provisioner: Provisioner, settings: RetirementSettings) -> "RetirementManager":
        return cls(
            provisioner=provisioner,
            grace_period=settings.grace_period_seconds,
            mode=settings.mode,
            timeout=settings.timeout_seconds,
        )

    async def retire(self, target: str, color: Color, grace_period: Optional[float] = None) -> None:
        """
        Retire the fleet of ``color`` for ``target``.

        Args:
            target: Deployment target
            color: Color of the former-active fleet
            grace_period: Override for the configured drain period

        Raises:
            RetirementWarning: the fleet could not be removed; it is left running
        """
        grace = self.grace_period if grace_period is None else grace_period

        logger.info(
            "Retiring fleet after grace period",
            target=target,
            color=color.value,
            grace_period=grace,
            mode=self.mode,
        )
        if grace > 0:
            await asyncio.sleep(grace)

        try:
            if self.mode == "scale_to_zero":
                await asyncio.wait_for(self.provisioner.scale_fleet(target, color, 0), timeout=self.timeout)
            else:
                await asyncio.wait_for(self.provisioner.deprovision(target, color), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise RetirementWarning(
                f"Retiring {color.value} fleet timed out after {self.timeout}s; fleet left running",
                details={"target": target, "color": color.value, "mode": self.mode},
            ) from e
        except DeploymentError as e:
            raise RetirementWarning(
                f"Retiring {color.value} fleet failed: {e.message}; fleet left running",
                details={"target": target, "color": color.value, "mode": self.mode, **e.details},
            ) from e
        except Exception as e:
            logger.error("Unexpected retirement error", target=target, color=color.value, error=str(e))
            raise RetirementWarning(
                f"Retiring {color.value} fleet failed unexpectedly: {e}; fleet left running",
                details={"target": target, "color": color.value, "mode": self.mode},
            ) from e

        logger.info("Fleet retired", target=target, color=color.value, mode=self.mode)
