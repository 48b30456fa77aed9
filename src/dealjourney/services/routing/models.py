"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from ...models.domain import Coordinates


@dataclass(slots=True)
class Directions:
    distance: float
    bearing: float
    estimated_time: int
    coordinates: List[Coordinates]


@dataclass(slots=True)
class RouteLeg:
    vendor_id: str
    sequence: int
    distance_from_prev: float
    cumulative_distance: float
