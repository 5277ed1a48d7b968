"""
State Store

Persistence for deployment attempts and per-target state. Redis holds the
JSON documents in production; the in-memory store backs tests and
single-process dry runs.
"""

from abc import ABC, abstractmethod
from typing import Optional

import structlog
import redis.asyncio as redis

from deploy_core.config_loader import StoreSettings
from deploy_core.schemas.models import DeploymentAttempt, TargetState

logger = structlog.get_logger(__name__)


class StateStore(ABC):
    """Attempt and target state persistence"""

    @abstractmethod
    async def save_attempt(self, attempt: DeploymentAttempt) -> None:
        """Create or overwrite an attempt record"""

    @abstractmethod
    async def get_attempt(self, attempt_id: str) -> Optional[DeploymentAttempt]:
        """Load an attempt, None if unknown"""

    @abstractmethod
    async def list_in_progress(self) -> list[DeploymentAttempt]:
        """Attempts persisted as in_progress"""

    @abstractmethod
    async def save_target(self, state: TargetState) -> None:
        """Create or overwrite a target record"""

    @abstractmethod
    async def get_target(self, target: str) -> Optional[TargetState]:
        """Load a target record, None if never written"""

    async def close(self) -> None:
        """Release connections"""


class RedisStateStore(StateStore):
    """
    Redis-backed store.

    Keys:
    - {prefix}attempt:{attempt_id}   attempt JSON, expires after attempt_ttl
    - {prefix}attempts:in_progress   set of attempt ids not yet terminal
    - {prefix}target:{target}        target JSON, no expiry
    """

    def __init__(
        self,
        redis_url: str = "redis://redis:6379",
        key_prefix: str = "bluegreen:",
        attempt_ttl_seconds: int = 30 * 86400,
    ):
        """
        Initialize Redis store.

        Args:
            redis_url: Redis connection URL
            key_prefix: Prefix for Redis keys
            attempt_ttl_seconds: Time-to-live for attempt records
        """
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.attempt_ttl_seconds = attempt_ttl_seconds
        self._client: Optional[redis.Redis] = None

    async def _get_client(self) -> redis.Redis:
        """Get or create Redis client"""
        if self._client is None:
            self._client = redis.from_url(self.redis_url, decode_responses=True)
        return self._client

    def _attempt_key(self, attempt_id: str) -> str:
        return f"{self.key_prefix}attempt:{attempt_id}"

    def _target_key(self, target: str) -> str:
        return f"{self.key_prefix}target:{target}"

    @property
    def _in_progress_key(self) -> str:
        return f"{self.key_prefix}attempts:in_progress"

    async def save_attempt(self, attempt: DeploymentAttempt) -> None:
        client = await self._get_client()

        try:
            await client.setex(
                self._attempt_key(attempt.attempt_id),
                self.attempt_ttl_seconds,
                attempt.model_dump_json(),
            )
            if attempt.is_terminal:
                await client.srem(self._in_progress_key, attempt.attempt_id)
            else:
                await client.sadd(self._in_progress_key, attempt.attempt_id)
        except Exception as e:
            logger.error("Failed to save attempt", attempt_id=attempt.attempt_id, error=str(e))
            raise

    async def get_attempt(self, attempt_id: str) -> Optional[DeploymentAttempt]:
        client = await self._get_client()

        try:
            data = await client.get(self._attempt_key(attempt_id))
        except Exception as e:
            logger.error("Failed to get attempt", attempt_id=attempt_id, error=str(e))
            raise

        if not data:
            return None
        return DeploymentAttempt.model_validate_json(data)

    async def list_in_progress(self) -> list[DeploymentAttempt]:
        client = await self._get_client()
        attempt_ids = await client.smembers(self._in_progress_key)

        attempts = []
        for attempt_id in sorted(attempt_ids):
            attempt = await self.get_attempt(attempt_id)
            if attempt is None:
                # record expired; drop the dangling index entry
                await client.srem(self._in_progress_key, attempt_id)
                continue
            if not attempt.is_terminal:
                attempts.append(attempt)
        return attempts

    async def save_target(self, state: TargetState) -> None:
        client = await self._get_client()

        try:
            await client.set(self._target_key(state.target), state.model_dump_json())
        except Exception as e:
            logger.error("Failed to save target state", target=state.target, error=str(e))
            raise

    async def get_target(self, target: str) -> Optional[TargetState]:
        client = await self._get_client()
        data = await client.get(self._target_key(target))
        if not data:
            return None
        return TargetState.model_validate_json(data)

    async def close(self) -> None:
        """Close Redis connection"""
        if self._client:
            await self._client.aclose()
            self._client = None


class InMemoryStateStore(StateStore):
    """Process-local store; records are kept as JSON so callers never share objects"""

    def __init__(self):
        self._attempts: dict[str, str] = {}
        self._targets: dict[str, str] = {}

    async def save_attempt(self, attempt: DeploymentAttempt) -> None:
        self._attempts[attempt.attempt_id] = attempt.model_dump_json()

    async def get_attempt(self, attempt_id: str) -> Optional[DeploymentAttempt]:
        data = self._attempts.get(attempt_id)
        return DeploymentAttempt.model_validate_json(data) if data else None

    async def list_in_progress(self) -> list[DeploymentAttempt]:
        attempts = [DeploymentAttempt.model_validate_json(d) for d in self._attempts.values()]
        return [a for a in attempts if not a.is_terminal]

    async def save_target(self, state: TargetState) -> None:
        self._targets[state.target] = state.model_dump_json()

    async def get_target(self, target: str) -> Optional[TargetState]:
        data = self._targets.get(target)
        return TargetState.model_validate_json(data) if data else None


def create_state_store(settings: StoreSettings) -> StateStore:
    """Build the configured store backend"""
    if settings.backend == "memory":
        logger.warning("Using in-memory state store; attempts will not survive a restart")
        return InMemoryStateStore()

    logger.info("Using Redis state store", redis_url=settings.redis_url, key_prefix=settings.key_prefix)
    return RedisStateStore(
        redis_url=settings.redis_url,
        key_prefix=settings.key_prefix,
        attempt_ttl_seconds=settings.attempt_ttl_seconds,
    )
