"""
Retirement

Scales down or removes the former-active fleet once traffic has moved.
"""

from .tools import RetirementManager

__all__ = ["RetirementManager"]
