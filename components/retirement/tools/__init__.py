from .retirement_manager import RetirementManager

__all__ = ["RetirementManager"]
