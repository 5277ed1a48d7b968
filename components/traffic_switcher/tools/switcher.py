"""
Traffic Switcher

Repoints live traffic for a target from one color's fleet to the other's
through the Traffic Director. From the caller's view the switch is atomic:
either the director confirms the new color is live, or the call raises and
whatever this call registered has been removed again.
"""

import asyncio
from typing import Any, Awaitable, Optional

import structlog

from deploy_core.exceptions import TrafficDirectorError, TrafficSwitchError
from deploy_core.schemas.models import Color, Instance
from deploy_core.tools.traffic_director_client import TrafficDirector

logger = structlog.get_logger(__name__)

# Errors that leave a single director call's effect in doubt
DIRECTOR_ERRORS = (TrafficDirectorError, asyncio.TimeoutError)


class TrafficSwitcher:
    """Register, activate, confirm; undo registrations on failure"""

    def __init__(self, director: TrafficDirector, call_timeout: float = 30.0):
        """
        Initialize traffic switcher.

        Args:
            director: Traffic Director client
            call_timeout: Bound on each individual director call
        """
        self.director = director
        self.call_timeout = call_timeout

    async def _call(self, awaitable: Awaitable[Any]) -> Any:
        return await asyncio.wait_for(awaitable, timeout=self.call_timeout)

    async def current_active_color(self, target: str) -> Optional[Color]:
        """Read back the color the director is routing to"""
        return await self._call(self.director.current_active_color(target))

    async def switch(
        self,
        target: str,
        from_color: Optional[Color],
        to_color: Color,
        instances: list[Instance],
    ) -> None:
        """
        Make ``to_color`` live for ``target``.

        Args:
            target: Deployment target
            from_color: Color expected to be live before the switch
            to_color: Color to make live
            instances: to_color members to register before activation

        Raises:
            TrafficSwitchError: the director did not confirm the switch;
                ``routing_unchanged`` tells whether from_color is known to
                still be live
        """
        if from_color == to_color:
            logger.info("Switch is a no-op", target=target, color=to_color.value)
            return

        log = logger.bind(
            target=target,
            from_color=from_color.value if from_color else None,
            to_color=to_color.value,
        )
        log.info("Switching traffic", instances=len(instances))

        registered: list[str] = []
        for instance in instances:
            try:
                await self._call(self.director.register_targets(target, to_color, [instance.address]))
            except DIRECTOR_ERRORS as e:
                await self._abort(
                    target, from_color, to_color, registered,
                    reason=f"registering {instance.address} failed: {_describe(e)}",
                    cause=e,
                    activation_attempted=False,
                )
            registered.append(instance.address)

        try:
            await self._call(self.director.activate_color(target, to_color))
            active = await self.current_active_color(target)
        except DIRECTOR_ERRORS as e:
            await self._abort(
                target, from_color, to_color, registered,
                reason=f"activation failed: {_describe(e)}",
                cause=e,
                activation_attempted=True,
            )

        if active != to_color:
            await self._abort(
                target, from_color, to_color, registered,
                reason=f"director reports active color {active.value if active else None} after activation",
                cause=None,
                activation_attempted=True,
            )

        log.info("Traffic switched", registered=len(registered))

    async def _abort(
        self,
        target: str,
        from_color: Optional[Color],
        to_color: Color,
        registered: list[str],
        reason: str,
        cause: Optional[BaseException],
        activation_attempted: bool,
    ) -> None:
        """Undo this call's registrations where safe, then raise"""
        routing_unchanged = True
        details: dict[str, Any] = {
            "target": target,
            "to_color": to_color.value,
            "registered": list(registered),
        }

        if activation_attempted:
            # the activation may have landed; only a read-back can tell
            try:
                active = await self.current_active_color(target)
            except DIRECTOR_ERRORS as e:
                active = None
                routing_unchanged = False
                details["read_back_error"] = _describe(e)
            else:
                routing_unchanged = active == from_color
                details["active_color"] = active.value if active else None

        if routing_unchanged and registered:
            try:
                await self._call(self.director.deregister_targets(target, to_color, registered))
                details["deregistered"] = list(registered)
            except DIRECTOR_ERRORS as e:
                logger.warning(
                    "Cleanup after failed switch left registrations behind",
                    target=target,
                    color=to_color.value,
                    addresses=registered,
                    error=_describe(e),
                )
                details["cleanup_error"] = _describe(e)

        logger.error(
            "Traffic switch failed",
            target=target,
            to_color=to_color.value,
            reason=reason,
            routing_unchanged=routing_unchanged,
        )
        raise TrafficSwitchError(reason, routing_unchanged=routing_unchanged, details=details) from cause


def _describe(error: BaseException) -> str:
    if isinstance(error, asyncio.TimeoutError):
        return "timed out"
    return str(error) or type(error).__name__
