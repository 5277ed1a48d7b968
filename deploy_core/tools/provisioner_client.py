"""
Provisioner Client

Interface to the external Environment Provisioner: stands up, resizes, and
tears down the fleet for one color of a target. The orchestrator only reads
fleet membership from it; it never provisions anything itself.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
import structlog

from ..exceptions import ProvisionError
from ..schemas.models import Color, Fleet, Instance

logger = structlog.get_logger(__name__)


class Provisioner(ABC):
    """Environment Provisioner contract"""

    @abstractmethod
    async def ensure_fleet(self, target: str, color: Color, desired_size: int) -> Fleet:
        """Create or resize the fleet for ``color`` and return its membership"""

    @abstractmethod
    async def scale_fleet(self, target: str, color: Color, size: int) -> Fleet:
        """Resize an existing fleet without replacing it"""

    @abstractmethod
    async def deprovision(self, target: str, color: Color) -> None:
        """Tear down the fleet for ``color``"""


def parse_fleet(color: Color, data: dict[str, Any], desired_size: int) -> Fleet:
    """Build a Fleet from a provisioner response body, ValueError if malformed"""
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")

    instances = []
    for item in data.get("instances") or []:
        if isinstance(item, str):
            address = item
        elif isinstance(item, dict):
            address = item.get("address")
        else:
            address = None
        if not address:
            continue
        instances.append(Instance(address=address, color=color))

    return Fleet(
        color=color,
        instances=instances,
        desired_size=data.get("desired_size", desired_size),
        changed=data.get("changed", True),
    )


class ProvisionerClient(Provisioner):
    """
    HTTP client for the Provisioner API.

    PUT    /api/v1/targets/{target}/fleets/{color}        {"desired_size": n}
    PATCH  /api/v1/targets/{target}/fleets/{color}/scale  {"size": n}
    DELETE /api/v1/targets/{target}/fleets/{color}
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 900.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize provisioner client.

        Args:
            base_url: Provisioner API base URL
            timeout_seconds: Bound on a single provisioning call
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _fleet_request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any],
        target: str,
        color: Color,
        size: int,
    ) -> Fleet:
        try:
            client = await self._get_client()
            response = await client.request(method, path, json=payload)
            response.raise_for_status()
            return parse_fleet(color, response.json(), size)

        except httpx.HTTPStatusError as e:
            raise ProvisionError(
                f"Provisioner rejected fleet request: HTTP {e.response.status_code}",
                details={"target": target, "color": color.value, "body": e.response.text[:500]},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ProvisionError(
                f"Provisioner call failed: {e}",
                details={"target": target, "color": color.value},
            ) from e

    async def ensure_fleet(self, target: str, color: Color, desired_size: int) -> Fleet:
        logger.info(
            "Ensuring fleet",
            target=target,
            color=color.value,
            desired_size=desired_size,
        )

        fleet = await self._fleet_request(
            "PUT",
            f"/api/v1/targets/{target}/fleets/{color.value}",
            {"desired_size": desired_size},
            target,
            color,
            desired_size,
        )

        if len(fleet.instances) < desired_size:
            raise ProvisionError(
                f"Provisioner returned {len(fleet.instances)} instances, wanted {desired_size}",
                details={"target": target, "color": color.value, "instances": fleet.addresses},
            )

        logger.info(
            "Fleet ready",
            target=target,
            color=color.value,
            instances=len(fleet.instances),
            changed=fleet.changed,
        )
        return fleet

    async def scale_fleet(self, target: str, color: Color, size: int) -> Fleet:
        logger.info("Scaling fleet", target=target, color=color.value, size=size)
        return await self._fleet_request(
            "PATCH",
            f"/api/v1/targets/{target}/fleets/{color.value}/scale",
            {"size": size},
            target,
            color,
            size,
        )

    async def deprovision(self, target: str, color: Color) -> None:
        logger.info("Deprovisioning fleet", target=target, color=color.value)

        try:
            client = await self._get_client()
            response = await client.delete(f"/api/v1/targets/{target}/fleets/{color.value}")
            if response.status_code == 404:
                logger.info("Fleet already absent", target=target, color=color.value)
                return
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ProvisionError(
                f"Deprovision failed: {e}",
                details={"target": target, "color": color.value},
            ) from e

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None
