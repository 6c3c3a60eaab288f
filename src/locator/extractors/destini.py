"""Destini (lets.shop) locator extraction.

Config comes from widget attributes on the page or, for SPA locators that
render it inside route chunks, from linked JS bundles. Stores come from
the Knox API, which caps each answer at ``maxStores`` around one origin,
so the query is swept across the strategic US points.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from config import locator_config as cfg
from src.shared import delays
from src.shared.constants import SWEEP
from src.shared.errors import FetchError
from src.shared.http import Fetcher
from src.shared.scraper_utils import first_match, linked_script_urls
from src.shared.store_schema import clean_text, pick_id
from src.locator.dedup import coordinate_fingerprint
from src.locator.extractors.common import dict_items, dig, field_map, map_records
from src.locator.grid import strategic_points
from src.locator.types import ExtractContext, RawLocation, StrategyKind


KIND = StrategyKind.DESTINI

_ALPHA_CODE_PATTERNS = (r"""alpha-code\s*=\s*["']([A-Za-z0-9_-]{1,64})["']""",)
_LOCATOR_ID_PATTERNS = (r"""locator-id\s*=\s*["']([A-Za-z0-9_-]{1,64})["']""",)
_CLIENT_ID_PATTERNS = (r"""client-id\s*=\s*["']([A-Za-z0-9_-]{1,128})["']""",)
_BOOTSTRAP_PATH_RE = re.compile(
    r"lets\.shop/locators/([A-Za-z0-9_-]{1,64})/([A-Za-z0-9_-]{1,64})/([A-Za-z0-9_-]{1,64})\.json"
)

FIELDS = field_map(zip=('postalCode', 'zip'), latitude=('latitude',), longitude=('longitude',))


@dataclass(frozen=True)
class DestiniConfig:
    alpha_code: str
    locator_id: str
    client_id: Optional[str] = None

    @property
    def bootstrap_url(self) -> str:
        return cfg.DESTINI_BOOTSTRAP_URL.format(alpha_code=self.alpha_code, locator_id=self.locator_id)


def _bootstrap_path_parts(html: str):
    match = _BOOTSTRAP_PATH_RE.search(html)
    if not match or match.group(2) != match.group(3):
        return None, None
    return match.group(1), match.group(2)


def detect(html: str) -> Optional[DestiniConfig]:
    """Read the locator config from widget attributes or a bootstrap JSON URL.

    Example:
        >>> detect('<div id="destini-locator" locator-id="3731" alpha-code="E93">')
        DestiniConfig(alpha_code='E93', locator_id='3731', client_id=None)
    """
    if 'destini-locator' not in html and 'lets.shop' not in html:
        return None

    alpha_code = first_match(html, _ALPHA_CODE_PATTERNS)
    locator_id = first_match(html, _LOCATOR_ID_PATTERNS)
    if alpha_code is None or locator_id is None:
        url_alpha, url_locator = _bootstrap_path_parts(html)
        alpha_code = alpha_code or url_alpha
        locator_id = locator_id or url_locator
    if alpha_code is None or locator_id is None:
        return None
    return DestiniConfig(alpha_code, locator_id, first_match(html, _CLIENT_ID_PATTERNS))


async def discover(fetcher: Fetcher, html: str, ctx: ExtractContext) -> Optional[DestiniConfig]:
    """Probe linked JS bundles for a config the page markup does not carry."""
    script_urls = linked_script_urls(html, ctx.locator_url, cfg.DESTINI_SCRIPT_MARKERS)
    for script_url in script_urls[:SWEEP.SCRIPT_PROBES_DESTINI]:
        try:
            body = await fetcher.fetch(script_url, referer=ctx.locator_url)
        except FetchError as e:
            logging.debug(f"[{ctx.brand}] Failed fetching candidate Destini script: {e}")
            continue
        config = detect(body)
        if config is not None:
            return config
    return None


def parse_product_ids(response: Any) -> List[str]:
    """Sorted, de-duplicated product IDs from a productCategories reply."""
    ids = set()
    for category in dict_items(dig(response, 'categories')):
        for sub_category in dict_items(category.get('subCategories')):
            for product in dict_items(sub_category.get('products')):
                product_id = pick_id(product, 'pID', 'productId')
                if product_id:
                    ids.add(product_id)
    return sorted(ids)


def parse_knox_locations(response: Any) -> List[RawLocation]:
    return map_records(dig(response, 'data'), KIND, FIELDS)


def join_url(base: str, path: str) -> str:
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def _setting(settings: Dict[str, Any], key: str, default: Any) -> Any:
    value = settings.get(key)
    if isinstance(default, int):
        return value if isinstance(value, int) and not isinstance(value, bool) and value >= 0 else default
    return value if isinstance(value, str) else default


def _store_key(location: RawLocation) -> Optional[str]:
    if location.external_id:
        return location.external_id
    if location.has_coordinates:
        return str(coordinate_fingerprint(location.latitude, location.longitude))
    return None


async def retrieve(fetcher: Fetcher, config: DestiniConfig, ctx: ExtractContext) -> List[RawLocation]:
    bootstrap = await fetcher.fetch_json(config.bootstrap_url, referer=ctx.locator_url)
    context = dig(bootstrap, 'context')
    context = context if isinstance(context, dict) else {}

    client_id = config.client_id or clean_text(context.get('clientId'))
    if not client_id:
        logging.debug(f"[{ctx.brand}] Destini bootstrap has no client id")
        return []

    knox_base = clean_text(context.get('knoxUrl')) or cfg.DESTINI_DEFAULT_KNOX_URL
    settings = context.get('settings') if isinstance(context.get('settings'), dict) else {}

    categories = await fetcher.post_json(
        join_url(knox_base, 'productCategories'),
        {'params': {'categoryIds': '', 'subCategoryIds': '', 'clientId': client_id, 'level': 2}},
        referer=ctx.locator_url,
    )
    product_ids = parse_product_ids(categories)
    if not product_ids:
        logging.debug(f"[{ctx.brand}] Destini client {client_id} lists no products")
        return []

    params = {
        'distance': _setting(settings, 'radius', cfg.DESTINI_DEFAULT_DISTANCE_MILES),
        'products': product_ids,
        'client': client_id,
        'maxStores': _setting(settings, 'maxStores', cfg.DESTINI_DEFAULT_MAX_STORES),
        'textStyleBm': _setting(settings, 'textStyleBm', cfg.DESTINI_DEFAULT_TEXT_STYLE_BM),
    }

    found: Dict[str, RawLocation] = {}
    unkeyed: List[RawLocation] = []
    for idx, point in enumerate(strategic_points()):
        await delays.paced_sleep(client_id, idx)
        payload = {'params': dict(params, latitude=point.lat, longitude=point.lng)}
        response = await fetcher.post_json(join_url(knox_base, 'knox'), payload, referer=ctx.locator_url)
        for location in parse_knox_locations(response):
            key = _store_key(location)
            if key is None:
                unkeyed.append(location)
            else:
                found.setdefault(key, location)
        logging.debug(f"[{ctx.brand}] Destini cumulative count {len(found)} after {point.label}")
    return list(found.values()) + unkeyed
