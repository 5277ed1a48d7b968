"""
Fleet Health

Health Prober (single instance, bounded retries) and the Fleet Health
Aggregator that fans it out across a fleet under an overall deadline.
"""

from .tools import HealthProber, FleetHealthAggregator
from .schemas import ProbeResult, FleetHealthReport

__all__ = [
    "HealthProber",
    "FleetHealthAggregator",
    "ProbeResult",
    "FleetHealthReport",
]
