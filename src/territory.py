"""
Territory Change Tracking

Applies one brand's trusted scrape to stored territory state: new stores
are created, re-observed stores are refreshed (and reactivated if they had
dropped out), and previously-active stores missing from the scrape are
deactivated.
"""

import hashlib
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from src.location_store import LocationStore, PersistedLocation
from src.locator.types import RawLocation

__all__ = [
    'TerritoryReport',
    'TerritoryTracker',
    'location_key',
]


def location_key(
    brand_id: str,
    name: str,
    city: Optional[str] = None,
    state: Optional[str] = None,
    zip_code: Optional[str] = None,
) -> str:
    """Stable identity of a store within a brand.

    Case and surrounding whitespace never change the key; street address,
    coordinates and phone are deliberately not part of it so provider-side
    formatting drift does not split one store into two.

    Example:
        >>> key = location_key('b1', ' Main St Market ', 'Columbia', 'sc', '29201')
        >>> key == location_key('b1', 'main st market', ' COLUMBIA', 'SC ', ' 29201')
        True
    """
    parts = (
        brand_id,
        (name or '').lower().strip(),
        (city or '').strip().lower(),
        (state or '').strip().upper(),
        (zip_code or '').strip(),
    )
    return hashlib.sha256('\x00'.join(parts).encode('utf-8')).hexdigest()


def key_for(brand_id: str, location: RawLocation) -> str:
    return location_key(brand_id, location.name, location.city, location.state, location.zip)


@dataclass
class TerritoryReport:
    """Changes applied to one brand's territory in one run.

    ``added`` counts every store that became active this run, whether first
    seen now (``new``) or reappearing after a gap (``reactivated``).
    """

    brand_id: str
    added: int
    removed: int
    reactivated: int
    active: int
    new: int
    new_keys: List[str] = field(default_factory=list)
    removed_keys: List[str] = field(default_factory=list)
    reactivated_keys: List[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return self.added > 0 or self.removed > 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def summary(self) -> str:
        return (
            f"Territory for {self.brand_id}: "
            f"+{self.new} new, "
            f"+{self.reactivated} reactivated, "
            f"-{self.removed} removed, "
            f"={self.active} active"
        )


class TerritoryTracker:
    """The only writer of territory state.

    Example:
        tracker = TerritoryTracker(JsonLocationStore('data'))
        report = tracker.apply('brand-1', trusted_locations)
    """

    def __init__(self, store: LocationStore):
        self.store = store

    def apply(
        self,
        brand_id: str,
        locations: Iterable[RawLocation],
        now: Optional[datetime] = None,
    ) -> TerritoryReport:
        """Upsert a trusted scrape and deactivate everything it no longer contains.

        An empty ``locations`` deactivates the brand's whole active set.
        Nothing is written unless the store commit succeeds.

        Raises:
            PersistenceError: if the store cannot be read or written
        """
        now = now or datetime.now(timezone.utc)
        existing = self.store.locations(brand_id)
        previously_active = {key for key, row in existing.items() if row.is_active}

        # Two observations with one key are the same store; keep the first
        observed: Dict[str, RawLocation] = {}
        for location in locations:
            observed.setdefault(key_for(brand_id, location), location)

        upserts: List[PersistedLocation] = []
        new_keys: List[str] = []
        reactivated_keys: List[str] = []
        for key, location in observed.items():
            row = existing.get(key)
            if row is None:
                row = PersistedLocation.from_raw(brand_id, key, location, now)
                new_keys.append(key)
            else:
                if not row.is_active:
                    reactivated_keys.append(key)
                row.refresh(location, now)
            upserts.append(row)

        removed_keys = sorted(previously_active - observed.keys())
        self.store.commit(brand_id, upserts, removed_keys)

        report = TerritoryReport(
            brand_id=brand_id,
            added=len(new_keys) + len(reactivated_keys),
            removed=len(removed_keys),
            reactivated=len(reactivated_keys),
            active=len(observed),
            new=len(new_keys),
            new_keys=new_keys,
            removed_keys=removed_keys,
            reactivated_keys=reactivated_keys,
        )
        logging.info(
            f"[{brand_id}] Territory updated: {report.new} new, {report.reactivated} reactivated, "
            f"{report.removed} removed, {report.active} active"
        )
        return report
