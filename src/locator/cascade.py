"""Strategy cascade: find the first extractor that yields locations.

Extractors are tried strictly in CASCADE_ORDER against one fetched page.
An extractor that detects its signal but fails while retrieving is logged
and recorded, and the cascade falls through to the next one; only the
initial page fetch is fatal.
"""

import logging

from src.shared.errors import LocatorError
from src.shared.http import Fetcher
from src.locator.extractors import EXTRACTORS
from src.locator.types import CASCADE_ORDER, CascadeResult, ExtractContext

__all__ = ['run_cascade']

# Provider payloads are untyped; shape surprises surface as these
_RETRIEVE_ERRORS = (LocatorError, ValueError, KeyError, TypeError, AttributeError)


async def run_cascade(fetcher: Fetcher, locator_url: str, brand: str = '') -> CascadeResult:
    """Fetch ``locator_url`` and run the extractors over it in priority order.

    Args:
        fetcher: Shared Fetcher
        locator_url: The brand's locator page
        brand: Brand slug for log prefixes

    Returns:
        The first non-empty result, or an empty CascadeResult carrying the
        errors of every extractor that matched but failed

    Raises:
        FetchError: if the locator page itself cannot be fetched
    """
    html = await fetcher.fetch(locator_url)
    ctx = ExtractContext(locator_url=locator_url, brand=brand)
    errors = []

    for kind in CASCADE_ORDER:
        extractor = EXTRACTORS[kind]
        ident = extractor.detect(html)
        if ident is None and extractor.discover is not None:
            ident = await extractor.discover(fetcher, html, ctx)
        if ident is None:
            continue

        logging.info(f"[{brand}] Detected {kind} locator")
        try:
            locations = await extractor.retrieve(fetcher, ident, ctx)
        except _RETRIEVE_ERRORS as e:
            logging.warning(f"[{brand}] {kind} extraction failed: {e}")
            errors.append(f"{kind}: {e}")
            continue

        if locations:
            logging.info(f"[{brand}] {kind} returned {len(locations)} locations")
            return CascadeResult(kind=kind, locations=locations, errors=errors)
        logging.info(f"[{brand}] {kind} detected but returned no locations")

    logging.info(f"[{brand}] No parseable locator found at {locator_url}")
    return CascadeResult(errors=errors)
