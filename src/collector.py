"""
Brand collection orchestration.

Runs the locator pipeline for each brand (resolve URL -> cascade -> dedup
-> trust gate -> territory update) and converts every result, including
failures, into a BrandOutcome. Brands run concurrently up to a fixed
fan-out; a failing brand never affects its siblings.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from src.shared.errors import FetchError, PersistenceError
from src.shared.http import Fetcher
from src.shared.run_tracker import RunRecorder
from src.shared.validation import validate_locations_batch
from src.locator import SWEEP_STRATEGIES, run_cascade
from src.locator.dedup import dedupe_by_coordinates
from src.locator import trust
from src.territory import TerritoryTracker

__all__ = [
    'BrandConfig',
    'BrandOutcome',
    'LOCATOR_PATHS',
    'OutcomeStatus',
    'candidate_locator_urls',
    'collect_all',
    'collect_brand',
    'discover_locator_url',
]

# Common locator page paths probed when a brand has no configured URL,
# most specific first
LOCATOR_PATHS = (
    '/pages/where-to-buy',
    '/pages/store-locator',
    '/pages/storelocator',
    '/pages/find-us',
    '/pages/locations',
    '/pages/retailers',
    '/pages/find',
    '/pages/beverage-finder',
    '/locator',
    '/storelocator',
    '/find-products',
    '/find',
    '/beverage-finder',
    '/stores',
)


class OutcomeStatus:
    SUCCEEDED = 'succeeded'
    NO_LOCATOR = 'no_locator'
    FAILED = 'failed'


@dataclass
class BrandConfig:
    """One entry of the ``brands`` section of config/brands.yaml."""

    slug: str
    brand_id: str
    name: str
    locator_url: Optional[str] = None
    domain: Optional[str] = None
    enabled: bool = True

    @classmethod
    def from_config(cls, slug: str, data: Optional[Dict[str, Any]]) -> 'BrandConfig':
        data = data or {}
        return cls(
            slug=slug,
            brand_id=str(data.get('brand_id') or slug),
            name=data.get('name') or slug,
            locator_url=data.get('locator_url') or None,
            domain=data.get('domain') or None,
            enabled=bool(data.get('enabled', True)),
        )


@dataclass
class BrandOutcome:
    """Terminal result of one brand's run, whatever happened."""

    slug: str
    brand_id: str
    status: str
    reason: str = ''
    source: Optional[str] = None
    locator_url: Optional[str] = None
    location_count: int = 0
    active: int = 0
    added: int = 0
    removed: int = 0
    reactivated: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def summary_line(self) -> str:
        if self.succeeded:
            return (
                f"{self.slug}: {self.status} via {self.source} "
                f"({self.active} active, +{self.added} / -{self.removed}, {self.reactivated} reactivated)"
            )
        return f"{self.slug}: {self.status} ({self.reason})"


def candidate_locator_urls(domain: str) -> List[str]:
    """Locator URLs to probe for a bare domain or site root URL.

    Example:
        >>> candidate_locator_urls('brand.example')[0]
        'https://brand.example/pages/where-to-buy'
    """
    base = domain.strip().rstrip('/')
    if not base.startswith(('http://', 'https://')):
        base = f"https://{base}"
    return [f"{base}{path}" for path in LOCATOR_PATHS]


async def discover_locator_url(fetcher: Fetcher, domain: str) -> Optional[str]:
    """First common locator path on ``domain`` that answers HEAD with 2xx."""
    for url in candidate_locator_urls(domain):
        if await fetcher.head_ok(url):
            return url
    return None


async def _resolve_locator_url(fetcher: Fetcher, brand: BrandConfig) -> Optional[str]:
    if brand.locator_url:
        return brand.locator_url
    if not brand.domain:
        return None
    url = await discover_locator_url(fetcher, brand.domain)
    if url:
        logging.info(f"[{brand.slug}] Auto-discovered locator page {url}")
    return url


async def collect_brand(
    fetcher: Fetcher,
    tracker: TerritoryTracker,
    brand: BrandConfig,
    now: Optional[datetime] = None,
) -> BrandOutcome:
    """Run the full pipeline for one brand. Never raises."""
    outcome = BrandOutcome(slug=brand.slug, brand_id=brand.brand_id, status=OutcomeStatus.FAILED)
    try:
        locator_url = await _resolve_locator_url(fetcher, brand)
        if not locator_url:
            outcome.status = OutcomeStatus.NO_LOCATOR
            outcome.reason = 'no locator URL configured or discovered'
            logging.info(f"[{brand.slug}] {outcome.reason}")
            return outcome
        outcome.locator_url = locator_url

        try:
            result = await run_cascade(fetcher, locator_url, brand=brand.slug)
        except FetchError as e:
            outcome.reason = f"scrape failed: {e}"
            logging.warning(f"[{brand.slug}] {outcome.reason}")
            return outcome

        if not result.matched:
            if result.errors:
                outcome.reason = f"scrape failed: {'; '.join(result.errors)}"
            else:
                outcome.status = OutcomeStatus.NO_LOCATOR
                outcome.reason = 'no parseable locator found'
            return outcome

        locations = result.locations
        outcome.source = result.kind.value
        if result.kind in SWEEP_STRATEGIES:
            before = len(locations)
            locations = dedupe_by_coordinates(locations)
            if before != len(locations):
                logging.info(f"[{brand.slug}] Collapsed {before - len(locations)} duplicate sweep observations")
        outcome.location_count = len(locations)

        decision = trust.evaluate(result.kind, locations)
        if not decision.passed:
            outcome.reason = f"untrusted scrape result: {decision.detail}"
            logging.warning(f"[{brand.slug}] {outcome.reason}")
            return outcome

        validate_locations_batch(locations, label=brand.slug)

        try:
            report = tracker.apply(brand.brand_id, locations, now=now)
        except PersistenceError as e:
            outcome.reason = f"persistence failed: {e}"
            logging.error(f"[{brand.slug}] {outcome.reason}")
            return outcome

        outcome.status = OutcomeStatus.SUCCEEDED
        outcome.reason = decision.reason
        outcome.active = report.active
        outcome.added = report.added
        outcome.removed = report.removed
        outcome.reactivated = report.reactivated
        return outcome

    except Exception as e:
        logging.error(f"[{brand.slug}] Unexpected error during collection: {e}", exc_info=True)
        outcome.status = OutcomeStatus.FAILED
        outcome.reason = f"unexpected error: {type(e).__name__}: {e}"
        return outcome


def _record_outcome(recorder: Optional[RunRecorder], outcome: BrandOutcome) -> None:
    """Append an outcome to the run file; a write failure is logged, never raised."""
    if recorder is None:
        return
    try:
        recorder.record(outcome.slug, outcome.to_dict())
    except OSError as e:
        logging.error(f"[{outcome.slug}] Failed to record run outcome: {e}")


async def collect_all(
    fetcher: Fetcher,
    tracker: TerritoryTracker,
    brands: Sequence[BrandConfig],
    concurrency: int,
    recorder: Optional[RunRecorder] = None,
) -> Dict[str, BrandOutcome]:
    """Collect many brands concurrently, at most ``concurrency`` at a time.

    Args:
        fetcher: Shared Fetcher (one connection pool for the whole run)
        tracker: Territory tracker over the run's store
        brands: Brands to collect
        concurrency: Maximum number of brands in flight
        recorder: Optional run recorder receiving every outcome

    Returns:
        Outcome per brand slug, in input order
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))
    logging.info(f"Starting collection for {len(brands)} brands (concurrency={max(1, concurrency)})")

    async def run_one(brand: BrandConfig) -> BrandOutcome:
        async with semaphore:
            outcome = await collect_brand(fetcher, tracker, brand)
        _record_outcome(recorder, outcome)
        return outcome

    results = await asyncio.gather(*(run_one(brand) for brand in brands), return_exceptions=True)

    outcomes: Dict[str, BrandOutcome] = {}
    for brand, result in zip(brands, results):
        if isinstance(result, BaseException):
            logging.error(f"[{brand.slug}] Collection task failed with exception:", exc_info=result)
            result = BrandOutcome(
                slug=brand.slug,
                brand_id=brand.brand_id,
                status=OutcomeStatus.FAILED,
                reason=f"unexpected error: {type(result).__name__}: {result}",
            )
            _record_outcome(recorder, result)
        outcomes[brand.slug] = result
    return outcomes
