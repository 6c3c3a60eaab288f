"""Exception taxonomy for the store locator pipeline.

Only real failures are exceptions. A page without a recognisable locator
widget is an expected outcome and is represented by an empty cascade
result, never by an exception.
"""

from typing import Optional

__all__ = [
    'ExtractError',
    'FetchError',
    'LocatorError',
    'PersistenceError',
]


class LocatorError(Exception):
    """Base class for every error raised by the locator pipeline."""


class FetchError(LocatorError):
    """An HTTP request failed.

    Attributes:
        url: Sanitized URL of the failed request
        kind: One of 'network', 'status' or 'empty_body'
        status_code: HTTP status for 'status' failures, otherwise None
    """

    NETWORK = 'network'
    STATUS = 'status'
    EMPTY_BODY = 'empty_body'

    def __init__(self, url: str, kind: str, message: str = '', status_code: Optional[int] = None):
        self.url = url
        self.kind = kind
        self.status_code = status_code
        detail = message or kind
        if status_code is not None:
            detail = f"HTTP {status_code}"
        super().__init__(f"{detail} for {url}")


class ExtractError(LocatorError):
    """A locator signal was detected but retrieval or parsing failed."""

    def __init__(self, strategy: str, message: str):
        self.strategy = strategy
        super().__init__(f"{strategy}: {message}")


class PersistenceError(LocatorError):
    """Writing a brand's location set to storage failed."""
