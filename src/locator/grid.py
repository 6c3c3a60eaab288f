"""Geographic grid search infrastructure.

Generates lat/lng search origins for radius-limited locator APIs. The
longitude step widens with latitude so that adjacent points stay roughly
``step_miles`` apart on the ground.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

__all__ = [
    'GridConfig',
    'GridPoint',
    'MILES_PER_LAT_DEGREE',
    'STRATEGIC_US_POINTS',
    'corner_gap_miles',
    'generate_grid',
    'strategic_points',
]

MILES_PER_LAT_DEGREE = 69.0


@dataclass(frozen=True)
class GridPoint:
    lat: float
    lng: float
    label: Optional[str] = None


@dataclass(frozen=True)
class GridConfig:
    """Rectangular sweep bounds and spacing.

    Attributes:
        step_miles: Physical distance between adjacent grid points
    """

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float
    step_miles: float

    def __post_init__(self):
        if self.step_miles <= 0:
            raise ValueError(f"step_miles must be positive, got {self.step_miles}")
        if self.min_lat > self.max_lat or self.min_lng > self.max_lng:
            raise ValueError("Grid bounds are inverted")

    @classmethod
    def sc_region(cls) -> 'GridConfig':
        """South Carolina and immediate neighbours at a 30 mile step."""
        return cls(min_lat=32.0, max_lat=35.2, min_lng=-83.4, max_lng=-78.5, step_miles=30.0)

    @classmethod
    def conus_coarse(cls) -> 'GridConfig':
        """Contiguous US at a 200 mile step, meant for a 100 mile search radius."""
        return cls(min_lat=24.4, max_lat=49.4, min_lng=-125.0, max_lng=-66.9, step_miles=200.0)


# Search origins in coverage-priority order. Sweeps that stop early on a
# provider result cap rely on the leading points covering the most ground.
STRATEGIC_US_POINTS: Tuple[GridPoint, ...] = (
    GridPoint(44.9778, -93.2650, 'Minneapolis'),
    GridPoint(39.8283, -98.5795, 'Kansas'),
    GridPoint(34.0522, -118.2437, 'Los Angeles'),
    GridPoint(40.7128, -74.0060, 'New York'),
    GridPoint(41.8781, -87.6298, 'Chicago'),
    GridPoint(29.7604, -95.3698, 'Houston'),
    GridPoint(39.7392, -104.9903, 'Denver'),
    GridPoint(33.4484, -112.0740, 'Phoenix'),
    GridPoint(35.2271, -80.8431, 'Charlotte'),
)


def strategic_points() -> Tuple[GridPoint, ...]:
    return STRATEGIC_US_POINTS


def generate_grid(config: GridConfig) -> List[GridPoint]:
    """Generate grid points across ``config`` bounds, row by row.

    Each loop runs while the value is within half a step of the upper
    bound, so the far edge is covered even when the span is not a whole
    number of steps. Output is deterministic for a given config.

    Example:
        >>> points = generate_grid(GridConfig.sc_region())
        >>> points[0]
        GridPoint(lat=32.0, lng=-83.4, label=None)
    """
    lat_step = config.step_miles / MILES_PER_LAT_DEGREE
    points = []
    lat = config.min_lat
    while lat <= config.max_lat + lat_step * 0.5:
        lng_step = config.step_miles / (MILES_PER_LAT_DEGREE * math.cos(math.radians(lat)))
        lng = config.min_lng
        while lng <= config.max_lng + lng_step * 0.5:
            points.append(GridPoint(lat, lng))
            lng += lng_step
        lat += lat_step
    return points


def corner_gap_miles(step_miles: float, radius_miles: float) -> float:
    """Uncovered distance at the centre of a grid cell.

    The point farthest from any grid node lies on the cell diagonal, half a
    diagonal (``step / sqrt(2)``) from each corner. Any of that distance
    beyond the search radius is a dead zone that a square grid leaves
    unsearched.

    Example:
        >>> round(corner_gap_miles(200, 100), 1)
        41.4
    """
    return max(0.0, step_miles / math.sqrt(2) - radius_miles)
