from .runner import SmokeTestRunner

__all__ = ["SmokeTestRunner"]
