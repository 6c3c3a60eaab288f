"""
Location Store - Durable territory state per brand.

Holds PersistedLocation rows keyed by LocationKey. Rows are never deleted,
only deactivated, so the store doubles as a distribution audit trail. The
TerritoryTracker is the only writer; everything else reads through the
aggregate queries.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

from src.shared.errors import PersistenceError
from src.shared.io import atomic_write_json, load_json
from src.locator.types import RawLocation

__all__ = [
    'InMemoryLocationStore',
    'JsonLocationStore',
    'LocationStore',
    'PersistedLocation',
]

_BRAND_ID_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]*$')
UNKNOWN_REGION = 'UNKNOWN'


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))


@dataclass
class PersistedLocation:
    """A location row as stored for one brand.

    ``first_seen_at`` is set once when the row is created and never
    rewritten; ``last_seen_at`` advances on every run that re-observes the
    location.
    """

    brand_id: str
    location_key: str
    name: str
    locator_source: str
    first_seen_at: datetime
    last_seen_at: datetime
    is_active: bool = True
    address_line1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = None
    external_id: Optional[str] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, brand_id: str, location_key: str, raw: RawLocation, now: datetime) -> 'PersistedLocation':
        record = cls(
            brand_id=brand_id,
            location_key=location_key,
            name=raw.name,
            locator_source=raw.locator_source,
            first_seen_at=now,
            last_seen_at=now,
        )
        record.refresh(raw, now)
        return record

    def refresh(self, raw: RawLocation, now: datetime) -> None:
        """Overwrite observed fields from a new observation and mark active."""
        self.name = raw.name
        self.locator_source = raw.locator_source
        self.address_line1 = raw.address_line1
        self.city = raw.city
        self.state = raw.state
        self.zip = raw.zip
        self.country = raw.country
        self.latitude = raw.latitude
        self.longitude = raw.longitude
        self.phone = raw.phone
        self.external_id = raw.external_id
        self.raw_data = raw.raw_data
        self.last_seen_at = now
        self.is_active = True

    @property
    def region(self) -> str:
        return self.state.strip().upper() if self.state else UNKNOWN_REGION

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['first_seen_at'] = self.first_seen_at.isoformat()
        data['last_seen_at'] = self.last_seen_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PersistedLocation':
        names = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in names}
        values['first_seen_at'] = _parse_timestamp(values['first_seen_at'])
        values['last_seen_at'] = _parse_timestamp(values['last_seen_at'])
        return cls(**values)


class LocationStore(ABC):
    """Storage contract for territory state.

    ``commit`` must be atomic per brand: either every upsert and every
    deactivation is applied, or none is and PersistenceError is raised.
    """

    @abstractmethod
    def brand_ids(self) -> List[str]:
        """Brands with at least one stored row."""

    @abstractmethod
    def locations(self, brand_id: str) -> Dict[str, PersistedLocation]:
        """Copies of every row of a brand, keyed by LocationKey."""

    @abstractmethod
    def commit(
        self,
        brand_id: str,
        upserts: Iterable[PersistedLocation],
        deactivate_keys: Iterable[str],
    ) -> None:
        """Apply one run's territory changes for a brand."""

    def active_keys(self, brand_id: str) -> Set[str]:
        return {key for key, row in self.locations(brand_id).items() if row.is_active}

    def active_count_by_brand(self) -> Dict[str, int]:
        return {brand_id: len(self.active_keys(brand_id)) for brand_id in self.brand_ids()}

    def active_count_by_region(self, brand_id: Optional[str] = None) -> Dict[str, int]:
        """Active rows per state/region code, optionally for one brand."""
        counts: Counter = Counter()
        for current in ([brand_id] if brand_id else self.brand_ids()):
            for row in self.locations(current).values():
                if row.is_active:
                    counts[row.region] += 1
        return dict(sorted(counts.items()))

    def first_seen_since(self, since: datetime, brand_id: Optional[str] = None) -> List[PersistedLocation]:
        """Rows first seen at or after ``since``, oldest first."""
        rows = []
        for current in ([brand_id] if brand_id else self.brand_ids()):
            rows.extend(row for row in self.locations(current).values() if row.first_seen_at >= since)
        return sorted(rows, key=lambda row: (row.first_seen_at, row.brand_id, row.location_key))


def _apply_commit(
    current: Dict[str, PersistedLocation],
    upserts: Iterable[PersistedLocation],
    deactivate_keys: Iterable[str],
) -> Dict[str, PersistedLocation]:
    updated = dict(current)
    for row in upserts:
        previous = updated.get(row.location_key)
        if previous is not None and previous.first_seen_at != row.first_seen_at:
            row = replace(row, first_seen_at=previous.first_seen_at)
        updated[row.location_key] = replace(row)
    for key in deactivate_keys:
        if key in updated:
            updated[key] = replace(updated[key], is_active=False)
    return updated


class InMemoryLocationStore(LocationStore):
    """Dictionary-backed store, used by tests and dry runs."""

    def __init__(self):
        self._rows: Dict[str, Dict[str, PersistedLocation]] = {}

    def brand_ids(self) -> List[str]:
        return sorted(self._rows)

    def locations(self, brand_id: str) -> Dict[str, PersistedLocation]:
        return {key: replace(row) for key, row in self._rows.get(brand_id, {}).items()}

    def commit(self, brand_id, upserts, deactivate_keys) -> None:
        self._rows[brand_id] = _apply_commit(self._rows.get(brand_id, {}), upserts, deactivate_keys)


class JsonLocationStore(LocationStore):
    """One ``<data_dir>/<brand_id>/locations.json`` file per brand.

    Each commit rewrites the brand's file through a temp file and
    ``os.replace``, so a failed write leaves the previous state intact.
    """

    FILENAME = 'locations.json'

    def __init__(self, data_dir: str = 'data'):
        self.data_dir = Path(data_dir)

    def _path(self, brand_id: str) -> Path:
        if not _BRAND_ID_RE.match(brand_id or ''):
            raise PersistenceError(f"Invalid brand id for storage: {brand_id!r}")
        return self.data_dir / brand_id / self.FILENAME

    def brand_ids(self) -> List[str]:
        if not self.data_dir.exists():
            return []
        return sorted(
            path.parent.name for path in self.data_dir.glob(f"*/{self.FILENAME}")
            if _BRAND_ID_RE.match(path.parent.name)
        )

    def locations(self, brand_id: str) -> Dict[str, PersistedLocation]:
        path = self._path(brand_id)
        try:
            payload = load_json(path, strict=True)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to read {path}: {e}") from e
        if payload is None:
            return {}
        try:
            rows = [PersistedLocation.from_dict(item) for item in payload.get('locations', [])]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Corrupt location file {path}: {e}") from e
        return {row.location_key: row for row in rows}

    def commit(self, brand_id, upserts, deactivate_keys) -> None:
        path = self._path(brand_id)
        updated = _apply_commit(self.locations(brand_id), upserts, deactivate_keys)
        payload = {
            'brand_id': brand_id,
            'updated_at': datetime.now(timezone.utc).isoformat(),
            'locations': [updated[key].to_dict() for key in sorted(updated)],
        }
        try:
            atomic_write_json(payload, path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to write {path}: {e}") from e
        logging.debug(f"[{brand_id}] Saved {len(updated)} locations to {path}")
