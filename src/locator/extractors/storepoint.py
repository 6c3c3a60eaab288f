"""Storepoint widget extraction.

Storepoint returns a single free-text address per location, so city,
state and ZIP are recovered from its comma-separated tail.
"""

from typing import List, Optional, Tuple

from config import locator_config as cfg
from src.shared.http import Fetcher
from src.shared.scraper_utils import first_match
from src.shared.store_schema import pick_float, pick_id, pick_str
from src.locator.extractors.common import dict_items, dig
from src.locator.types import ExtractContext, RawLocation, StrategyKind

KIND = StrategyKind.STOREPOINT

_WIDGET_ID_PATTERNS = (
    r"""StorepointWidget\(\s*['"]([A-Za-z0-9]+)['"]""",
    # Constructor call inside a JS string literal: "new StorepointWidget(\n'id', ...)"
    r"""StorepointWidget\((?:\\[nrt]|\\u[0-9a-fA-F]{4}|\s)*['"]([A-Za-z0-9]+)['"]""",
    r"api\.storepoint\.co/v2/([A-Za-z0-9]+)/locations",
    r"widget\.storepoint\.co/([A-Za-z0-9]+)",
)

AddressTail = Tuple[Optional[str], Optional[str], Optional[str], Optional[str]]


def detect(html: str) -> Optional[str]:
    """Return the Storepoint widget ID."""
    if 'storepoint' not in html.lower():
        return None
    return first_match(html, _WIDGET_ID_PATTERNS)


def _split_city_state_zip(segment: str) -> Optional[Tuple[Optional[str], str, str]]:
    tokens = segment.split()
    if len(tokens) < 3:
        return None
    state, zip_code = tokens[-2], tokens[-1]
    zip_ok = all(c.isdigit() or c == '-' for c in zip_code) and any(c.isdigit() for c in zip_code)
    state_ok = len(state) == 2 and state.isascii() and state.isalpha()
    if not (zip_ok and state_ok):
        return None
    city = ' '.join(tokens[:-2]) or None
    return city, state, zip_code


def parse_address_tail(address: str, country_known: bool = False) -> AddressTail:
    """Recover (city, state, zip, country) from a one-line address.

    Without a known country the last comma part is the country and the
    part before it holds "City ST ZIP". With a known country the last part
    is tried first, then the one before it.

    Example:
        >>> parse_address_tail("1324 5th Street, Jellico TN 37762, USA")
        ('Jellico', 'TN', '37762', 'USA')
    """
    parts = [part.strip() for part in address.split(',') if part.strip()]

    if country_known:
        candidates = parts[-1:]
        if parts and len(parts[-1].split()) < 3 and len(parts) >= 2:
            candidates = [parts[-2]]
        parsed = _split_city_state_zip(candidates[0]) if candidates else None
        if parsed is None:
            return None, None, None, None
        return parsed[0], parsed[1], parsed[2], None

    country = parts[-1] if parts else None
    segment = parts[-2] if len(parts) >= 2 else ''
    parsed = _split_city_state_zip(segment)
    if parsed is None:
        return None, None, None, country
    return parsed[0], parsed[1], parsed[2], country


def _map_store(store: dict) -> Optional[RawLocation]:
    name = pick_str(store, 'name')
    if name is None:
        return None
    address = pick_str(store, 'streetaddress', 'address')
    explicit_country = pick_str(store, 'country')

    city = state = zip_code = country = None
    if address:
        city, state, zip_code, country = parse_address_tail(address, country_known=explicit_country is not None)

    return RawLocation(
        name=name,
        locator_source=KIND,
        address_line1=address,
        city=city,
        state=state,
        zip=zip_code,
        country=explicit_country or country,
        latitude=pick_float(store, 'loc_lat'),
        longitude=pick_float(store, 'loc_long'),
        phone=pick_str(store, 'phone'),
        external_id=pick_id(store, 'id'),
        raw_data=store,
    )


async def retrieve(fetcher: Fetcher, widget_id: str, ctx: ExtractContext) -> List[RawLocation]:
    payload = await fetcher.fetch_json(
        cfg.STOREPOINT_LOCATIONS_URL.format(widget_id=widget_id),
        referer=ctx.locator_url,
    )
    locations = []
    for store in dict_items(dig(payload, 'results', 'locations')):
        location = _map_store(store)
        if location is not None:
            locations.append(location)
    return locations
