"""
Configuration Loader

Loads orchestrator configuration from YAML file with environment variable
substitution. The parsed Config is the explicit value object passed into the
orchestrator at construction; nothing downstream reads process environment.
"""

import os
import re
from typing import Any, Optional, Literal
from pathlib import Path

import yaml
import structlog
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .schemas.models import SmokeCheck

logger = structlog.get_logger(__name__)


def _substitute_env_vars(value: Any) -> Any:
    """
    Recursively substitute environment variables in configuration.

    Supports format: ${VAR_NAME:-default_value}
    """
    if isinstance(value, str):
        # Pattern: ${VAR:-default} or ${VAR}
        pattern = r"\$\{([^}:]+)(?::-([^}]*))?\}"

        def replace(match):
            var_name = match.group(1)
            default = match.group(2) if match.group(2) is not None else ""
            return os.getenv(var_name, default)

        return re.sub(pattern, replace, value)

    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]

    return value


class RuntimeSettings(BaseSettings):
    """Process-level settings read from the environment / .env"""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    config_path: str = "config.yaml"
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"


class ServiceConfig(BaseModel):
    """Service identification"""
    name: str = "bluegreen-orchestrator"
    version: str = "1.0.0"
    description: str = "Zero-downtime blue/green release orchestrator"


class APIConfig(BaseModel):
    """Operator API server configuration"""
    host: str = "0.0.0.0"
    port: int = 8080


class TargetConfig(BaseModel):
    """A deployment target (environment)"""
    desired_size: int = Field(default=3, ge=1)
    description: str = ""


class HealthSettings(BaseModel):
    """Health probing and stage deadlines"""
    path: str = "/health"
    scheme: str = "http"
    expected_statuses: list[int] = Field(default_factory=lambda: [200])
    request_timeout_seconds: float = 2.0
    max_attempts: int = Field(default=5, ge=1)
    backoff_initial_seconds: float = 0.5
    backoff_max_seconds: float = 5.0
    per_instance_timeout_seconds: float = 30.0
    # health-check deadline for the HealthChecking stage
    deadline_seconds: float = 120.0
    # verification deadline for the Verifying stage
    verify_deadline_seconds: float = 60.0
    # Optional URL probed through the live traffic path during Verifying
    live_health_url: Optional[str] = None


class SmokeTestSettings(BaseModel):
    """Smoke test battery"""
    request_timeout_seconds: float = 5.0
    checks: list[SmokeCheck] = Field(default_factory=lambda: [SmokeCheck(path="/health")])


class ProvisionerSettings(BaseModel):
    """Environment Provisioner API"""
    url: str = "http://provisioner:8000"
    timeout_seconds: float = 900.0


class TrafficSettings(BaseModel):
    """Traffic Director API"""
    director_url: str = "http://traffic-director:8000"
    timeout_seconds: float = 30.0


class RetirementSettings(BaseModel):
    """Old fleet retirement"""
    grace_period_seconds: float = 300.0
    mode: Literal["deprovision", "scale_to_zero"] = "deprovision"
    timeout_seconds: float = 600.0


class NotificationSettings(BaseModel):
    """Best-effort deployment event webhook"""
    enabled: bool = True
    webhook_url: Optional[str] = None
    timeout_seconds: float = 10.0
    queue_size: int = 100


class StoreSettings(BaseModel):
    """Attempt and target state persistence"""
    backend: Literal["redis", "memory"] = "redis"
    redis_url: str = "redis://redis:6379"
    key_prefix: str = "bluegreen:"
    attempt_ttl_seconds: int = 30 * 86400


class ObservabilityConfig(BaseModel):
    """Logging configuration applied once config.yaml is loaded"""
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"


class Config(BaseModel):
    """Complete orchestrator configuration"""
    service: ServiceConfig = Field(default_factory=lambda: ServiceConfig())
    api: APIConfig = Field(default_factory=lambda: APIConfig())
    targets: dict[str, TargetConfig] = Field(default_factory=dict)
    health: HealthSettings = Field(default_factory=lambda: HealthSettings())
    smoke_tests: SmokeTestSettings = Field(default_factory=lambda: SmokeTestSettings())
    provisioner: ProvisionerSettings = Field(default_factory=lambda: ProvisionerSettings())
    traffic: TrafficSettings = Field(default_factory=lambda: TrafficSettings())
    retirement: RetirementSettings = Field(default_factory=lambda: RetirementSettings())
    notifications: NotificationSettings = Field(default_factory=lambda: NotificationSettings())
    store: StoreSettings = Field(default_factory=lambda: StoreSettings())
    observability: ObservabilityConfig = Field(default_factory=lambda: ObservabilityConfig())

    def get_target(self, target: str) -> Optional[TargetConfig]:
        return self.targets.get(target)


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses RuntimeSettings.config_path.

    Returns:
        Parsed Config object
    """
    if config_path is None:
        config_path = RuntimeSettings().config_path

    path = Path(config_path)
    if not path.exists():
        logger.warning(
            "Config file not found, using defaults",
            path=str(path),
        )
        return Config()

    logger.info("Loading configuration", path=str(path))

    with open(path, "r") as f:
        raw_config = yaml.safe_load(f) or {}

    # Substitute environment variables
    config_data = _substitute_env_vars(raw_config)

    config = Config(**config_data)

    logger.info(
        "Configuration loaded",
        service=config.service.name,
        version=config.service.version,
        targets=list(config.targets.keys()),
    )

    return config
