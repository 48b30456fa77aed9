"""Route group exports."""

from . import deals, health, journey, routes

__all__ = ["deals", "health", "journey", "routes"]
