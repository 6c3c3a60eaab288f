"""Stockist widget extraction.

The widget tag resolves to a JSONP config script carrying the brand's
default search centre and radius; one search call with those values
returns every location.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from config import locator_config as cfg
from src.shared.errors import ExtractError
from src.shared.http import Fetcher
from src.shared.scraper_utils import first_match
from src.shared.store_schema import to_float
from src.locator.extractors.common import dig, field_map, map_records
from src.locator.types import ExtractContext, RawLocation, StrategyKind

KIND = StrategyKind.STOCKIST

_TAG_PATTERNS = (
    r"""data-stockist-widget-tag\s*=\s*["']([^"']+)["']""",
    r"stockist\.co/api/v1/([A-Za-z0-9_-]+)/",
    r"_stockistConfigCallback_([A-Za-z0-9_-]+)",
)

FIELDS = field_map(
    address_line1=('address_line_1', 'full_address'),
    zip=('postal_code', 'zip'),
    latitude=('latitude', 'lat'),
    longitude=('longitude', 'lng'),
)


def detect(html: str) -> Optional[str]:
    """Return the Stockist widget tag (e.g. ``u23010``)."""
    if 'stockist' not in html:
        return None
    return first_match(html, _TAG_PATTERNS)


def parse_jsonp(body: str) -> Dict[str, Any]:
    """Unwrap ``callback({...})``; a body without a call yields {}.

    Raises:
        ExtractError: If the wrapped payload is not JSON
    """
    open_idx = body.find('(')
    close_idx = body.rfind(')')
    if open_idx < 0 or close_idx < 0 or open_idx >= close_idx:
        return {}
    try:
        payload = json.loads(body[open_idx + 1:close_idx].strip())
    except ValueError as e:
        raise ExtractError(KIND.value, f"invalid widget config: {e}") from e
    return payload if isinstance(payload, dict) else {}


async def retrieve(fetcher: Fetcher, tag: str, ctx: ExtractContext) -> List[RawLocation]:
    body = await fetcher.fetch(
        f"{cfg.STOCKIST_API_BASE}/{tag}/widget.js",
        params={'callback': f"_stockistConfigCallback_{tag}"},
        referer=ctx.locator_url,
    )
    config = parse_jsonp(body)

    latitude = to_float(config.get('latitude'))
    longitude = to_float(config.get('longitude'))
    distance = config.get('max_distance')
    if not isinstance(distance, int) or isinstance(distance, bool):
        distance = config.get('distance')
    if not isinstance(distance, int) or isinstance(distance, bool):
        distance = cfg.STOCKIST_DEFAULT_DISTANCE

    params = {
        'latitude': cfg.STOCKIST_DEFAULT_LATITUDE if latitude is None else latitude,
        'longitude': cfg.STOCKIST_DEFAULT_LONGITUDE if longitude is None else longitude,
        'distance': distance,
        'units': 'mi',
        'page': 1,
        'per_page': cfg.STOCKIST_PER_PAGE,
    }
    logging.debug(f"[{ctx.brand}] Stockist search around {params['latitude']},{params['longitude']} ({distance} mi)")
    payload = await fetcher.fetch_json(
        f"{cfg.STOCKIST_API_BASE}/{tag}/locations/search",
        params=params,
        referer=ctx.locator_url,
    )
    return map_records(dig(payload, 'locations'), KIND, FIELDS)
