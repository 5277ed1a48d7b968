from .health_prober import HealthProber, UnexpectedStatus
from .aggregator import FleetHealthAggregator

__all__ = ["HealthProber", "UnexpectedStatus", "FleetHealthAggregator"]
