"""
Traffic Switcher

Atomic, reversible repointing of live traffic between color fleets through
the external Traffic Director.
"""

from .tools import TrafficSwitcher

__all__ = ["TrafficSwitcher"]
