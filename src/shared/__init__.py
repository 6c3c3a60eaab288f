"""Shared utilities for the locator pipeline"""

from .errors import (
    ExtractError,
    FetchError,
    LocatorError,
    PersistenceError,
)

from .http import (
    DEFAULT_USER_AGENTS,
    Fetcher,
    get_headers,
)

from .logging_config import (
    DEFAULT_LOG_FILE,
    setup_logging,
)

from .utils import (
    DEFAULT_CONFIG_PATH,
    get_enabled_brands,
    get_settings,
    load_config,
)

from .run_tracker import (
    RunRecorder,
    get_latest_run,
    get_run_history,
)

from .validation import (
    ValidationResult,
    validate_location,
    validate_locations_batch,
)

__all__ = [
    # Errors
    'ExtractError',
    'FetchError',
    'LocatorError',
    'PersistenceError',
    # HTTP
    'DEFAULT_USER_AGENTS',
    'Fetcher',
    'get_headers',
    # Logging
    'DEFAULT_LOG_FILE',
    'setup_logging',
    # Configuration
    'DEFAULT_CONFIG_PATH',
    'get_enabled_brands',
    'get_settings',
    'load_config',
    # Run tracking
    'RunRecorder',
    'get_latest_run',
    'get_run_history',
    # Validation
    'ValidationResult',
    'validate_location',
    'validate_locations_batch',
]
