"""StoreRocket widget extraction."""

import logging
from typing import Any, List, Optional

from config import locator_config as cfg
from src.shared.constants import SWEEP
from src.shared.errors import FetchError
from src.shared.http import Fetcher
from src.shared.scraper_utils import first_match, script_urls_in_text
from src.locator.extractors.common import dig, field_map, map_records
from src.locator.types import ExtractContext, RawLocation, StrategyKind

KIND = StrategyKind.STOREROCKET

_ACCOUNT_PATTERNS = (
    r"""account\s*:\s*["']([A-Za-z0-9_-]{4,64})["']""",
    r"""data-storerocket-account\s*=\s*["']([A-Za-z0-9_-]{4,64})["']""",
    r"storerocket(?:\.io|\.test)/api/user/([A-Za-z0-9_-]{4,64})",
)

FIELDS = field_map(
    address_line1=('address', 'display_address'),
    zip=('zip', 'postal'),
    external_id=('obf_id', 'id'),
)


def detect(html: str) -> Optional[str]:
    """Return the StoreRocket account ID."""
    if 'storerocket' not in html.lower():
        return None
    return first_match(html, _ACCOUNT_PATTERNS)


async def discover(fetcher: Fetcher, html: str, ctx: ExtractContext) -> Optional[str]:
    """Look for the account inside absolute script URLs referenced by the page."""
    for script_url in script_urls_in_text(html, cfg.STOREROCKET_SCRIPT_MARKERS)[:SWEEP.SCRIPT_PROBES_STOREROCKET]:
        try:
            body = await fetcher.fetch(script_url, referer=ctx.locator_url)
        except FetchError as e:
            logging.debug(f"[{ctx.brand}] Failed fetching candidate StoreRocket script: {e}")
            continue
        account = detect(body)
        if account is not None:
            return account
    return None


def locations_array(payload: Any) -> Any:
    locations = dig(payload, 'results', 'locations')
    if isinstance(locations, list):
        return locations
    return dig(payload, 'locations')


async def retrieve(fetcher: Fetcher, account: str, ctx: ExtractContext) -> List[RawLocation]:
    payload = await fetcher.fetch_json(
        cfg.STOREROCKET_LOCATIONS_URL.format(account=account),
        referer=ctx.locator_url,
    )
    return map_records(locations_array(payload), KIND, FIELDS)
