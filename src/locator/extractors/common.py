"""Payload-to-RawLocation mapping shared by the provider extractors.

Provider payloads differ mostly in key names. Each extractor declares a
field map (canonical field -> candidate keys, in lookup order) and maps
its store objects through ``map_records``.
"""

from typing import Any, Dict, List, Optional, Tuple

from src.shared.store_schema import pick_float, pick_id, pick_str
from src.locator.types import RawLocation, StrategyKind

__all__ = [
    'DEFAULT_FIELDS',
    'FieldMap',
    'dict_items',
    'dig',
    'field_map',
    'map_record',
    'map_records',
]

FieldMap = Dict[str, Tuple[str, ...]]

DEFAULT_FIELDS: FieldMap = {
    'name': ('name',),
    'address_line1': ('address',),
    'city': ('city',),
    'state': ('state',),
    'zip': ('zip',),
    'country': ('country',),
    'latitude': ('lat', 'latitude'),
    'longitude': ('lng', 'longitude'),
    'phone': ('phone',),
    'external_id': ('id',),
}


def field_map(**overrides: Tuple[str, ...]) -> FieldMap:
    """DEFAULT_FIELDS with the given canonical fields replaced."""
    merged = dict(DEFAULT_FIELDS)
    merged.update(overrides)
    return merged


def dig(payload: Any, *path: str) -> Any:
    """Follow dict keys, returning None as soon as a level is missing.

    Example:
        >>> dig({'results': {'locations': [1]}}, 'results', 'locations')
        [1]
    """
    for key in path:
        if not isinstance(payload, dict):
            return None
        payload = payload.get(key)
    return payload


def dict_items(value: Any) -> List[Dict[str, Any]]:
    """The dict elements of ``value`` when it is a list, otherwise []."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def map_record(obj: Dict[str, Any], kind: StrategyKind, fields: FieldMap) -> Optional[RawLocation]:
    """Map one store object; records without a name are dropped."""
    name = pick_str(obj, *fields['name'])
    if name is None:
        return None
    return RawLocation(
        name=name,
        locator_source=kind,
        address_line1=pick_str(obj, *fields['address_line1']),
        city=pick_str(obj, *fields['city']),
        state=pick_str(obj, *fields['state']),
        zip=pick_str(obj, *fields['zip']),
        country=pick_str(obj, *fields['country']),
        latitude=pick_float(obj, *fields['latitude']),
        longitude=pick_float(obj, *fields['longitude']),
        phone=pick_str(obj, *fields['phone']),
        external_id=pick_id(obj, *fields['external_id']),
        raw_data=obj,
    )


def map_records(items: Any, kind: StrategyKind, fields: FieldMap) -> List[RawLocation]:
    locations = []
    for item in dict_items(items):
        location = map_record(item, kind, fields)
        if location is not None:
            locations.append(location)
    return locations
