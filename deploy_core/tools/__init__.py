"""
Clients for the external collaborators: Provisioner and Traffic Director.
"""

from .provisioner_client import Provisioner, ProvisionerClient, parse_fleet
from .traffic_director_client import TrafficDirector, TrafficDirectorClient

__all__ = [
    "Provisioner",
    "ProvisionerClient",
    "parse_fleet",
    "TrafficDirector",
    "TrafficDirectorClient",
]
