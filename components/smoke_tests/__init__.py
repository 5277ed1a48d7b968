"""
Smoke Tests

Fixed battery of read-only endpoint checks run against a freshly
provisioned fleet before it receives traffic.
"""

from .tools import SmokeTestRunner
from .schemas import SmokeFailure, SmokeTestReport

__all__ = ["SmokeTestRunner", "SmokeFailure", "SmokeTestReport"]
