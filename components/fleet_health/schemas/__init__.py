from .health import ProbeResult, FleetHealthReport

__all__ = ["ProbeResult", "FleetHealthReport"]
