from .switcher import TrafficSwitcher

__all__ = ["TrafficSwitcher"]
