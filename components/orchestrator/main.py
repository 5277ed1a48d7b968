"""
Release Orchestrator Main Entry Point

Wires the collaborator clients, state store, and notifier from Config into
a ReleaseOrchestrator and exposes it through the operator API.

Usage:
    bluegreen-orchestrator
    CONFIG_PATH=/etc/bluegreen/config.yaml python -m components.orchestrator.main
"""

from fastapi import FastAPI

from deploy_core.api.server import ReleaseAPIServer
from deploy_core.config_loader import Config
from deploy_core.main import run_service
from deploy_core.tools.provisioner_client import ProvisionerClient
from deploy_core.tools.traffic_director_client import TrafficDirectorClient

from .service import ReleaseOrchestrator
from .tools.state_store import create_state_store
from .tools.notifier import NotificationDispatcher


def build_orchestrator(config: Config) -> ReleaseOrchestrator:
    """Build the orchestrator and its collaborators from configuration"""
    provisioner = ProvisionerClient(
        base_url=config.provisioner.url,
        timeout_seconds=config.provisioner.timeout_seconds,
    )
    director = TrafficDirectorClient(
        base_url=config.traffic.director_url,
        timeout_seconds=config.traffic.timeout_seconds,
    )

    return ReleaseOrchestrator(
        config=config,
        store=create_state_store(config.store),
        provisioner=provisioner,
        director=director,
        notifier=NotificationDispatcher.from_settings(config.notifications),
    )


def create_orchestrator_app(config: Config) -> FastAPI:
    """FastAPI app factory for the release orchestrator"""
    server = ReleaseAPIServer(
        service_name=config.service.name,
        service_version=config.service.version,
        service_description=config.service.description,
        orchestrator=build_orchestrator(config),
    )
    return server.app


def main() -> None:
    """Console entry point"""
    run_service(create_orchestrator_app)


if __name__ == "__main__":
    main()
