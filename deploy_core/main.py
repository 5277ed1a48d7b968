"""
Service Runner

Configures logging, loads configuration, builds the FastAPI app through a
factory, and serves it with uvicorn.
"""

import logging
import sys
from typing import Callable, Optional

import structlog
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from .config_loader import Config, RuntimeSettings, load_config

logger = structlog.get_logger(__name__)


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Configure structlog on top of stdlib logging"""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
            if log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class ServiceRunner:
    """
    Service Runner

    Initializes and runs the operator API server.
    """

    def __init__(
        self,
        app_factory: Callable[[Config], FastAPI],
        config_path: Optional[str] = None,
    ):
        """
        Initialize service runner.

        Args:
            app_factory: Builds the FastAPI app from the loaded Config
            config_path: Path to config.yaml (defaults to CONFIG_PATH)
        """
        load_dotenv()
        self.settings = RuntimeSettings()
        configure_logging(self.settings.log_level, self.settings.log_format)

        self.config = load_config(config_path or self.settings.config_path)
        observability = self.config.observability
        configure_logging(observability.log_level, observability.log_format)
        self.app_factory = app_factory

    def run(self) -> None:
        """Run the API server"""
        app = self.app_factory(self.config)

        logger.info(
            "Starting API server",
            service=self.config.service.name,
            host=self.config.api.host,
            port=self.config.api.port,
        )

        uvicorn.run(
            app,
            host=self.config.api.host,
            port=self.config.api.port,
            log_level=self.config.observability.log_level.lower(),
        )


def run_service(app_factory: Callable[[Config], FastAPI], config_path: Optional[str] = None) -> None:
    """
    Convenience function to run a service.

    Args:
        app_factory: Builds the FastAPI app from the loaded Config
        config_path: Path to configuration file
    """
    runner = ServiceRunner(app_factory, config_path)
    runner.run()
