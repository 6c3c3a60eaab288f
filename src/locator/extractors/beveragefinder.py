"""BeverageFinder embed extraction.

The embed's map page carries a JSON config with the default ZIP; the
search endpoint answers with an HTML fragment whose ``data-locations``
attribute holds the store array as entity-encoded JSON.
"""

import logging
import re
from typing import Any, List, Optional

from config import locator_config as cfg
from src.shared.http import Fetcher
from src.shared.scraper_utils import decode_html_entities, first_match, loads_lenient
from src.shared.store_schema import clean_text
from src.locator.extractors.common import field_map, map_records
from src.locator.types import ExtractContext, RawLocation, StrategyKind

KIND = StrategyKind.BEVERAGEFINDER

_EMBED_KEY_PATTERNS = (r"""beveragefinder\.net/users/embed\.js[^>]*data-key\s*=\s*["']([^"']+)["']""",)
_MAP_KEY_PATTERNS = (r"""beveragefinder-map\.php\?[^"'\s>]*key=([^&"'\s>]+)""",)
_LOCATIONS_ATTR_RE = re.compile(r"data-locations='([^']*)'")

FIELDS = field_map(
    name=('name', 'store'),
    address_line1=('address', 'address1'),
    zip=('zip', 'postal'),
)


def detect(html: str) -> Optional[str]:
    """Return the embed key from the script tag or the map iframe URL."""
    if 'beveragefinder' not in html:
        return None
    key = first_match(html, _EMBED_KEY_PATTERNS)
    if key is None:
        key = first_match(html.replace('&amp;', '&'), _MAP_KEY_PATTERNS)
    return key


def default_zip(map_config: Any) -> str:
    if isinstance(map_config, dict):
        value = clean_text(map_config.get('defaultZip'))
        if value:
            return value
    return cfg.BEVERAGEFINDER_DEFAULT_ZIP


def parse_locations_fragment(body: str) -> List[Any]:
    """Pull the store array out of a search reply.

    The reply is either JSON wrapping the fragment as ``{"html": ...}`` or
    the raw fragment itself.
    """
    fragment = body
    wrapped = loads_lenient(body)
    if isinstance(wrapped, dict) and isinstance(wrapped.get('html'), str):
        fragment = wrapped['html']

    match = _LOCATIONS_ATTR_RE.search(fragment)
    if not match:
        return []
    records = loads_lenient(decode_html_entities(match.group(1)))
    return records if isinstance(records, list) else []


async def retrieve(fetcher: Fetcher, key: str, ctx: ExtractContext) -> List[RawLocation]:
    map_body = await fetcher.fetch(
        cfg.BEVERAGEFINDER_MAP_URL,
        params={'key': key, 'embed': '1'},
        referer=ctx.locator_url,
    )
    zip_code = default_zip(loads_lenient(map_body))
    logging.debug(f"[{ctx.brand}] BeverageFinder searching from ZIP {zip_code}")

    body = await fetcher.post_form(
        cfg.BEVERAGEFINDER_SEARCH_URL,
        [('zip', zip_code), ('miles', cfg.BEVERAGEFINDER_SEARCH_MILES), ('brand', ''), ('key', key)],
        referer=ctx.locator_url,
    )
    return map_records(parse_locations_fragment(body), KIND, FIELDS)
