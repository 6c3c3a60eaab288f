"""Roseperl (Secomapp) Shopify store locator extraction.

The storefront links a "where to buy" JS bundle that assigns the full
location list to a global variable.
"""

import json
import re
from typing import List, Optional

from config import locator_config as cfg
from src.shared.errors import ExtractError
from src.shared.http import Fetcher
from src.shared.scraper_utils import extract_assignment_object
from src.locator.extractors.common import dig, field_map, map_records
from src.locator.types import ExtractContext, RawLocation, StrategyKind

KIND = StrategyKind.ROSEPERL

_WTB_URL_RE = re.compile(r"""https://cdn\.roseperl\.com/storelocator-prod/wtb/[^"'\s]+""")

FIELDS = field_map(
    name=('title', 'name'),
    zip=('zipcode', 'zip'),
    latitude=('latitude', 'lat'),
    longitude=('longitude', 'lng'),
)


def detect(html: str) -> Optional[str]:
    """Return the WTB bundle URL, unescaping JSON-embedded slashes first."""
    match = _WTB_URL_RE.search(html.replace('\\/', '/'))
    if not match:
        return None
    return match.group(0).rstrip('\\').rstrip('"').rstrip("'")


async def retrieve(fetcher: Fetcher, wtb_url: str, ctx: ExtractContext) -> List[RawLocation]:
    body = await fetcher.fetch(wtb_url, referer=ctx.locator_url)
    literal = extract_assignment_object(body, cfg.ROSEPERL_WTB_VARIABLE)
    if literal is None:
        return []
    try:
        payload = json.loads(literal)
    except ValueError as e:
        raise ExtractError(KIND.value, f"invalid {cfg.ROSEPERL_WTB_VARIABLE} payload: {e}") from e
    return map_records(dig(payload, 'locations'), KIND, FIELDS)
