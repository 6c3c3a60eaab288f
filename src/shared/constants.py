"""Centralized constants for the store locator tracker.

This module provides frozen dataclass-based configuration groups for the
magic numbers used throughout the codebase. Using dataclasses provides:
- Type safety and IDE autocompletion
- Immutability (frozen=True prevents accidental modification)
- Clear documentation via docstrings
- Grouped related constants logically

Usage:
    from src.shared.constants import HTTP, SWEEP, TRUST

    timeout = HTTP.TIMEOUT
    pacing = SWEEP.PACING_BASE_MS
    minimum = TRUST.EMBED_MIN_COUNT
"""

from dataclasses import dataclass

__all__ = [
    'DEDUP',
    'DedupDefaults',
    'DISCOVERY',
    'DiscoveryDefaults',
    'HTTP',
    'HttpDefaults',
    'LOGGING',
    'LoggingDefaults',
    'RUNS',
    'RunDefaults',
    'SWEEP',
    'SweepDefaults',
    'TRUST',
    'TrustDefaults',
    'VALIDATION',
    'ValidationDefaults',
]


@dataclass(frozen=True)
class HttpDefaults:
    """HTTP request configuration defaults.

    These values control retry behavior and timeouts for the shared Fetcher.
    Timeout and retry count can be overridden in config/brands.yaml.
    """

    TIMEOUT: float = 30.0
    """Per-request timeout in seconds."""

    MAX_RETRIES: int = 3
    """Maximum number of attempts for one request (never unbounded)."""

    RETRY_BACKOFF_BASE_MS: int = 500
    """Base backoff in milliseconds; doubles on each failed attempt."""

    RETRY_BACKOFF_MAX_MS: int = 6_000
    """Upper bound for a single backoff wait in milliseconds."""

    RETRY_AFTER_MAX_SECONDS: int = 10
    """Cap applied to server-provided Retry-After values."""

    MAX_CONNECTIONS: int = 20
    """Connection pool size of the shared HTTP client."""

    PROBE_TIMEOUT: float = 5.0
    """Timeout in seconds for HEAD probes during locator auto-discovery."""


@dataclass(frozen=True)
class SweepDefaults:
    """Pacing for multi-point sweeps against radius-limited provider APIs.

    Points in one sweep are always queried sequentially; these delays exist
    so upstream rate limiters never see a burst from a single brand.
    """

    PACING_BASE_MS: int = 350
    """Minimum delay before each sweep request in milliseconds."""

    PACING_SPREAD_MS: int = 400
    """Deterministic per-brand jitter added on top of the base delay."""

    VTINFO_MIN_REQUEST_GAP_MS: int = 900
    """Minimum gap between any two VTInfo requests across all brands."""

    VTINFO_RESULT_CAP: int = 100
    """VTInfo stops returning new stores once this many are accumulated."""

    VTINFO_MAX_ATTEMPTS: int = 5
    """Attempts per VTInfo request before a sweep point is skipped."""

    SCRIPT_PROBES_DESTINI: int = 24
    """Maximum linked scripts fetched while looking for Destini config."""

    SCRIPT_PROBES_STOREROCKET: int = 4
    """Maximum linked scripts fetched while looking for a StoreRocket account."""

    ASKHOODIE_MAX_PAGE: int = 25
    """Highest page index requested from an AskHoodie search center."""

    ASKHOODIE_EMPTY_PAGE_LIMIT: int = 2
    """Consecutive empty pages after which an AskHoodie center is abandoned."""

    ASKHOODIE_EMPTY_PAGE_CEILING: int = 4
    """Page index at which paging over empty pages stops."""


@dataclass(frozen=True)
class DedupDefaults:
    """Coordinate deduplication settings."""

    COORDINATE_PRECISION: int = 4
    """Decimal places kept in the coordinate fingerprint (~11 m at the equator)."""


@dataclass(frozen=True)
class TrustDefaults:
    """Trust gate thresholds for low-confidence strategies."""

    EMBED_MIN_COUNT: int = 5
    """Minimum number of locations a json_embed scrape must yield."""

    EMBED_MIN_QUALITY_RATIO: float = 0.80
    """Minimum fraction of json_embed records with a usable shape and state."""


@dataclass(frozen=True)
class LoggingDefaults:
    """Logging configuration.

    Controls log file rotation settings.
    """

    MAX_BYTES: int = 10 * 1024 * 1024
    """Maximum log file size before rotation (10MB)."""

    BACKUP_COUNT: int = 5
    """Number of backup log files to keep."""


@dataclass(frozen=True)
class RunDefaults:
    """Batch run settings."""

    CONCURRENCY: int = 4
    """Number of brands collected concurrently."""

    HISTORY_LIMIT: int = 10
    """Default number of run records returned by run history queries."""


@dataclass(frozen=True)
class DiscoveryDefaults:
    """Offline locator discovery settings."""

    SAMPLE_MAX_ITEMS: int = 5
    """Number of array items kept in each captured sample response."""

    LOCATION_KEY_HINTS: tuple = ('lat', 'latitude', 'lng', 'longitude', 'lon', 'geo')
    """Key fragments that mark a JSON object as location-like."""


@dataclass(frozen=True)
class ValidationDefaults:
    """Data validation bounds.

    Controls location record validation rules.
    """

    LAT_MIN: float = -90.0
    """Minimum valid latitude."""

    LAT_MAX: float = 90.0
    """Maximum valid latitude."""

    LON_MIN: float = -180.0
    """Minimum valid longitude."""

    LON_MAX: float = 180.0
    """Maximum valid longitude."""

    ZIP_LENGTH_SHORT: int = 5
    """Length of short US ZIP code (e.g., 12345)."""

    ZIP_LENGTH_LONG: int = 10
    """Length of long US ZIP+4 code (e.g., 12345-6789)."""

    ERROR_LOG_LIMIT: int = 10
    """Maximum validation errors to log before truncating."""


# Singleton instances for easy import
HTTP = HttpDefaults()
SWEEP = SweepDefaults()
DEDUP = DedupDefaults()
TRUST = TrustDefaults()
LOGGING = LoggingDefaults()
RUNS = RunDefaults()
DISCOVERY = DiscoveryDefaults()
VALIDATION = ValidationDefaults()
