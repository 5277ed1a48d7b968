from .state_store import StateStore, RedisStateStore, InMemoryStateStore, create_state_store
from .notifier import NotificationDispatcher, NotificationEvent
from .cancellation import AttemptRegistry, run_interruptible
from .context import DeploymentContext

__all__ = [
    "StateStore",
    "RedisStateStore",
    "InMemoryStateStore",
    "create_state_store",
    "NotificationDispatcher",
    "NotificationEvent",
    "AttemptRegistry",
    "run_interruptible",
    "DeploymentContext",
]
