"""
Store Schema - Field aliases and value coercion for provider payloads.

Every locator provider names the same concepts differently (``zip`` vs
``postal_code`` vs ``zipcode``, ``lat`` vs ``latitude`` vs ``loc_lat``).
Extractors map payload objects onto the canonical RawLocation fields with
the pickers below, each taking an ordered list of candidate keys.
"""

import math
from typing import Any, Dict, Mapping, Optional, Tuple


__all__ = [
    'CANONICAL_FIELDS',
    'EMBED_FIELD_ALIASES',
    'clean_text',
    'pick_float',
    'pick_id',
    'pick_str',
    'to_float',
]


# Canonical field names of a location record with their expected types
CANONICAL_FIELDS: Dict[str, type] = {
    'name': str,
    'address_line1': str,
    'city': str,
    'state': str,
    'zip': str,
    'country': str,
    'latitude': float,
    'longitude': float,
    'phone': str,
    'external_id': str,
}


# Candidate keys for records found in inline JSON arrays, in lookup order.
# Inline embeds have no fixed schema so the alias lists are intentionally
# broader than those of any single provider.
EMBED_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    'name': ('name', 'store_name', 'Name'),
    'address_line1': ('address', 'address1', 'street'),
    'city': ('city', 'City'),
    'state': ('state', 'State', 'province'),
    'zip': ('zip', 'postal_code', 'postcode'),
    'country': ('country', 'Country'),
    'latitude': ('lat', 'latitude', 'Lat'),
    'longitude': ('lng', 'longitude', 'Lng', 'lon'),
    'phone': ('phone', 'Phone'),
    'external_id': ('id',),
}


def clean_text(value: Any) -> Optional[str]:
    """Coerce a payload value to trimmed text.

    Numbers are stringified (providers often send ZIP codes as integers);
    booleans, containers and blank strings become None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def to_float(value: Any) -> Optional[float]:
    """Parse a coordinate-like value, returning None when not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def pick_str(obj: Mapping[str, Any], *keys: str) -> Optional[str]:
    """Return the first non-blank text value among ``keys``."""
    for key in keys:
        value = clean_text(obj.get(key))
        if value is not None:
            return value
    return None


def pick_float(obj: Mapping[str, Any], *keys: str) -> Optional[float]:
    """Return the first value among ``keys`` that parses as a finite float."""
    for key in keys:
        value = to_float(obj.get(key))
        if value is not None:
            return value
    return None


def pick_id(obj: Mapping[str, Any], *keys: str) -> Optional[str]:
    """Return the first present identifier among ``keys`` as a string.

    Example:
        >>> pick_id({'obf_id': None, 'id': 42}, 'obf_id', 'id')
        '42'
    """
    return pick_str(obj, *keys)
