"""Route planner exports."""

from .models import Directions, RouteLeg
from .planner import RoutePlanner, nearest_neighbor_order, route_legs

__all__ = ["Directions", "RouteLeg", "RoutePlanner", "nearest_neighbor_order", "route_legs"]
