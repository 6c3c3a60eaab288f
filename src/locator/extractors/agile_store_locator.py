"""Agile Store Locator (WordPress plugin) extraction.

The plugin prints two JS globals: ``ASL_REMOTE`` with the admin-ajax URL
and nonce, and ``asl_configuration`` with the query options. Stores come
from one admin-ajax call that WordPress hosts answer flakily, so it is
attempted a fixed number of times with a short backoff.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from config import locator_config as cfg
from src.shared import delays
from src.shared.errors import ExtractError, FetchError, LocatorError
from src.shared.http import Fetcher
from src.shared.scraper_utils import loads_lenient
from src.shared.store_schema import clean_text
from src.locator.extractors.common import field_map, map_records
from src.locator.types import ExtractContext, RawLocation, StrategyKind

KIND = StrategyKind.AGILE_STORE_LOCATOR

FIELDS = field_map(
    name=('title', 'name'),
    address_line1=('street', 'address'),
    zip=('postal_code', 'zip'),
    latitude=('lat',),
    longitude=('lng',),
)


@dataclass(frozen=True)
class AgileConfig:
    ajax_url: str
    nonce: str
    lang: str = ''
    load_all: str = '1'
    layout: str = '0'
    stores: Optional[str] = None

    def query_params(self) -> Dict[str, str]:
        params = {
            'action': cfg.AGILE_ACTION,
            'nonce': self.nonce,
            'asl_lang': self.lang,
            'load_all': self.load_all,
            'layout': self.layout,
        }
        if self.stores:
            params['stores'] = self.stores
        return params


def _json_var(html: str, name: str) -> Optional[Dict[str, Any]]:
    match = re.search(rf'(?s)var\s+{re.escape(name)}\s*=\s*(\{{.*?\}});', html)
    if not match:
        return None
    value = loads_lenient(match.group(1))
    return value if isinstance(value, dict) else None


def _str_option(options: Dict[str, Any], key: str) -> Optional[str]:
    value = options.get(key)
    return clean_text(value) if isinstance(value, str) else None


def detect(html: str) -> Optional[AgileConfig]:
    """Return the plugin's ajax config when both JS globals parse."""
    if 'agile-store-locator' not in html and 'asl_load_stores' not in html:
        return None
    remote = _json_var(html, 'ASL_REMOTE')
    options = _json_var(html, 'asl_configuration')
    if remote is None or options is None:
        return None

    ajax_url = _str_option(remote, 'ajax_url')
    nonce = _str_option(remote, 'nonce')
    if not ajax_url or not nonce:
        return None
    return AgileConfig(
        ajax_url=ajax_url,
        nonce=nonce,
        lang=_str_option(options, 'lang') or '',
        load_all=_str_option(options, 'load_all') or '1',
        layout=_str_option(options, 'layout') or '0',
        stores=_str_option(options, 'stores'),
    )


def stores_array(payload: Any) -> Any:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        return payload.get('stores')
    return None


async def retrieve(fetcher: Fetcher, config: AgileConfig, ctx: ExtractContext) -> List[RawLocation]:
    last_error: Optional[LocatorError] = None
    for attempt, delay_ms in enumerate(cfg.AGILE_RETRY_DELAYS_MS):
        if delay_ms:
            await delays.pause(delay_ms / 1000.0)
        try:
            payload = await fetcher.fetch_json(
                config.ajax_url,
                params=config.query_params(),
                referer=ctx.locator_url,
                max_retries=1,
            )
        except (FetchError, ExtractError) as e:
            last_error = e
            logging.debug(f"[{ctx.brand}] Agile Store Locator attempt {attempt + 1} failed: {e}")
            continue
        return map_records(stores_array(payload), KIND, FIELDS)
    raise last_error
