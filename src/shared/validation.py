"""Location record validation utilities.

This module provides the record-shape checks shared by the trust gate and
by the per-run validation summary that is logged before persistence.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from src.shared.constants import VALIDATION

__all__ = [
    'ValidationResult',
    'has_minimum_shape',
    'has_valid_state',
    'validate_location',
    'validate_locations_batch',
]

# Two-letter codes ("SC") and spelled-out regions ("Ontario", "New South Wales")
_STATE_RE = re.compile(r"^[A-Za-z][A-Za-z .'-]*[A-Za-z.]$")


class ValidationResult:
    """Result of location record validation.

    Attributes:
        is_valid: True if validation passed (no errors)
        errors: List of error messages
        warnings: List of warning messages
    """

    def __init__(self, is_valid: bool, errors: List[str], warnings: List[str]):
        self.is_valid = is_valid
        self.errors = errors
        self.warnings = warnings

    def __repr__(self) -> str:
        return f"ValidationResult(is_valid={self.is_valid}, errors={len(self.errors)}, warnings={len(self.warnings)})"


def _present(value: Optional[str]) -> bool:
    return value is not None and bool(value.strip())


def has_valid_state(state: Optional[str]) -> bool:
    """True when ``state`` looks like a state/region code or name.

    Examples:
        >>> has_valid_state('SC')
        True
        >>> has_valid_state('29401')
        False
    """
    if not _present(state):
        return False
    return bool(_STATE_RE.match(state.strip()))


def has_minimum_shape(location: Any) -> bool:
    """A record is usable when it has a name plus an address, a city and
    state, or a coordinate pair."""
    if not _present(location.name):
        return False
    has_address = _present(location.address_line1)
    has_city_state = _present(location.city) and _present(location.state)
    has_coordinates = location.latitude is not None and location.longitude is not None
    return has_address or has_city_state or has_coordinates


def validate_location(location: Any) -> ValidationResult:
    """Validate one location record.

    Missing shape is an error; out-of-range coordinates are an error;
    an unusual postal code or missing state is a warning.
    """
    errors = []
    warnings = []

    if not _present(location.name):
        errors.append("Missing required field: name")
    elif not has_minimum_shape(location):
        errors.append("Record has neither address, city/state nor coordinates")

    lat, lng = location.latitude, location.longitude
    if (lat is None) != (lng is None):
        warnings.append(f"Incomplete coordinates: lat={lat}, lng={lng}")
    elif lat is not None:
        if not (VALIDATION.LAT_MIN <= lat <= VALIDATION.LAT_MAX):
            errors.append(f"Invalid latitude: {lat} (must be between {VALIDATION.LAT_MIN} and {VALIDATION.LAT_MAX})")
        if not (VALIDATION.LON_MIN <= lng <= VALIDATION.LON_MAX):
            errors.append(f"Invalid longitude: {lng} (must be between {VALIDATION.LON_MIN} and {VALIDATION.LON_MAX})")

    if not has_valid_state(location.state):
        warnings.append(f"Missing or invalid state: {location.state!r}")

    postal_code = location.zip
    if postal_code and (location.country or 'US').upper() in ('US', 'USA'):
        if len(postal_code) not in (VALIDATION.ZIP_LENGTH_SHORT, VALIDATION.ZIP_LENGTH_LONG):
            warnings.append(f"Unusual postal code format: {postal_code}")

    return ValidationResult(len(errors) == 0, errors, warnings)


def validate_locations_batch(
    locations: Sequence[Any],
    label: str = '',
    log_issues: bool = True
) -> Dict[str, Any]:
    """Validate a batch of location records and return a summary.

    Returns:
        Dictionary with total, valid, invalid, error_count and warning_count
    """
    total = len(locations)
    valid_count = 0
    all_errors = []
    warning_count = 0

    for i, location in enumerate(locations):
        result = validate_location(location)
        if result.is_valid:
            valid_count += 1
        all_errors.extend(f"#{i} {location.name!r}: {error}" for error in result.errors)
        warning_count += len(result.warnings)

    summary = {
        'total': total,
        'valid': valid_count,
        'invalid': total - valid_count,
        'error_count': len(all_errors),
        'warning_count': warning_count,
    }

    if log_issues and all_errors:
        prefix = f"[{label}] " if label else ""
        logging.warning(f"{prefix}Validation: {summary['invalid']}/{total} records invalid")
        for error in all_errors[:VALIDATION.ERROR_LOG_LIMIT]:
            logging.debug(f"{prefix}  {error}")
        if len(all_errors) > VALIDATION.ERROR_LOG_LIMIT:
            logging.debug(f"{prefix}  ... and {len(all_errors) - VALIDATION.ERROR_LOG_LIMIT} more")

    return summary
