"""
Traffic Director Client

Registration and activation API of the external load balancer. The
orchestrator never routes traffic itself; it only asks the director to
register a color's instances and make that color live.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
import structlog

from ..exceptions import TrafficDirectorError
from ..schemas.models import Color

logger = structlog.get_logger(__name__)


class TrafficDirector(ABC):
    """Traffic Director contract"""

    @abstractmethod
    async def register_targets(self, target: str, color: Color, addresses: list[str]) -> None:
        """Add instances to the color's pool"""

    @abstractmethod
    async def deregister_targets(self, target: str, color: Color, addresses: list[str]) -> None:
        """Remove instances from the color's pool"""

    @abstractmethod
    async def activate_color(self, target: str, color: Color) -> None:
        """Point live traffic at the color's pool"""

    @abstractmethod
    async def current_active_color(self, target: str) -> Optional[Color]:
        """Color currently receiving live traffic, None if nothing is live"""


class TrafficDirectorClient(TrafficDirector):
    """
    HTTP client for the Traffic Director API.

    POST   /api/v1/targets/{target}/pools/{color}/members  {"addresses": [...]}
    DELETE /api/v1/targets/{target}/pools/{color}/members  {"addresses": [...]}
    PUT    /api/v1/targets/{target}/active                 {"color": "green"}
    GET    /api/v1/targets/{target}/active
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
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

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> httpx.Response:
        try:
            client = await self._get_client()
            response = await client.request(method, path, json=json)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            raise TrafficDirectorError(
                f"Traffic Director returned HTTP {e.response.status_code} for {method} {path}",
                details={"status_code": e.response.status_code, "body": e.response.text[:500]},
            ) from e
        except httpx.HTTPError as e:
            raise TrafficDirectorError(
                f"Traffic Director unreachable for {method} {path}: {e}",
            ) from e

    async def register_targets(self, target: str, color: Color, addresses: list[str]) -> None:
        logger.info("Registering targets", target=target, color=color.value, addresses=addresses)
        await self._request(
            "POST",
            f"/api/v1/targets/{target}/pools/{color.value}/members",
            json={"addresses": addresses},
        )

    async def deregister_targets(self, target: str, color: Color, addresses: list[str]) -> None:
        logger.info("Deregistering targets", target=target, color=color.value, addresses=addresses)
        await self._request(
            "DELETE",
            f"/api/v1/targets/{target}/pools/{color.value}/members",
            json={"addresses": addresses},
        )

    async def activate_color(self, target: str, color: Color) -> None:
        logger.info("Activating color", target=target, color=color.value)
        await self._request("PUT", f"/api/v1/targets/{target}/active", json={"color": color.value})

    async def current_active_color(self, target: str) -> Optional[Color]:
        response = await self._request("GET", f"/api/v1/targets/{target}/active")
        try:
            body = response.json()
        except ValueError as e:
            raise TrafficDirectorError(f"Malformed active color response: {e}") from e
        if not isinstance(body, dict):
            raise TrafficDirectorError(
                f"Malformed active color response: expected a JSON object, got {type(body).__name__}"
            )

        value = body.get("color")

        if value is None:
            return None
        try:
            return Color(value)
        except ValueError as e:
            raise TrafficDirectorError(f"Unknown active color '{value}'") from e

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None
