from .smoke import SmokeFailure, SmokeTestReport

__all__ = ["SmokeFailure", "SmokeTestReport"]
