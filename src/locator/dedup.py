"""Coordinate-based deduplication for multi-point sweep results."""

from typing import Iterable, List, Set, Tuple

from src.shared.constants import DEDUP
from src.locator.types import RawLocation

__all__ = [
    'coordinate_fingerprint',
    'dedupe_by_coordinates',
]


def coordinate_fingerprint(lat: float, lng: float, precision: int = DEDUP.COORDINATE_PRECISION) -> Tuple[float, float]:
    # -0.0 and 0.0 must fingerprint identically
    return (round(lat, precision) + 0.0, round(lng, precision) + 0.0)


def dedupe_by_coordinates(
    locations: Iterable[RawLocation],
    precision: int = DEDUP.COORDINATE_PRECISION,
) -> List[RawLocation]:
    """Drop repeat observations of the same physical point.

    Overlapping sweep circles return the same store from several origins.
    The first observation of each rounded coordinate pair wins; records
    without coordinates cannot be compared and are always kept. Input order
    is preserved.

    Args:
        locations: Observations in sweep order
        precision: Decimal places kept when rounding (4 is roughly 11 m)

    Returns:
        Deduplicated list
    """
    seen: Set[Tuple[float, float]] = set()
    unique = []
    for location in locations:
        if not location.has_coordinates:
            unique.append(location)
            continue
        key = coordinate_fingerprint(location.latitude, location.longitude, precision)
        if key in seen:
            continue
        seen.add(key)
        unique.append(location)
    return unique
