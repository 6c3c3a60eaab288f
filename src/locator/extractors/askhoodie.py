"""AskHoodie where-to-buy embed extraction.

AskHoodie proxies an Algolia geo index. Each search centre is paged until
the index runs out of hits; dispensaries are deduplicated by their
AskHoodie ID across centres.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from config import locator_config as cfg
from src.shared import delays
from src.shared.constants import SWEEP
from src.shared.http import Fetcher
from src.shared.scraper_utils import first_match
from src.shared.store_schema import pick_float, pick_id, pick_str
from src.locator.extractors.common import dict_items, dig
from src.locator.types import ExtractContext, RawLocation, StrategyKind

KIND = StrategyKind.ASKHOODIE

_EMBED_ID_PATTERNS = (r'hoodieEmbedWtbV2\(\s*"([0-9a-fA-F-]{36})"',)


def detect(html: str) -> Optional[str]:
    """Return the embed UUID passed to ``hoodieEmbedWtbV2``."""
    if 'askhoodie' not in html:
        return None
    return first_match(html, _EMBED_ID_PATTERNS)


def build_search_payload(embed_id: str, lat: float, lng: float, page: int) -> Dict[str, Any]:
    return {
        'embedToken': f"{embed_id}__dummy",
        'method': 'search',
        'args': [[{
            'indexName': cfg.ASKHOODIE_INDEX_NAME,
            'query': '',
            'params': {
                'aroundLatLng': f"{lat},{lng}",
                'aroundRadius': cfg.ASKHOODIE_AROUND_RADIUS_METERS,
                'hitsPerPage': cfg.ASKHOODIE_HITS_PER_PAGE,
                'page': page,
                'attributesToRetrieve': list(cfg.ASKHOODIE_ATTRIBUTES),
            },
        }]],
    }


def _first_result(response: Any) -> Any:
    results = dig(response, 'results')
    if isinstance(results, list) and results:
        return results[0]
    return None


def extract_hits(response: Any) -> Optional[List[Dict[str, Any]]]:
    """Hits of the first result set, or of the top level; None if neither exists."""
    hits = dig(_first_result(response), 'hits')
    if not isinstance(hits, list):
        hits = dig(response, 'hits')
    if not isinstance(hits, list):
        return None
    return dict_items(hits)


def next_page_state(response: Any) -> Tuple[int, bool]:
    """Return (next page index, whether another page should be fetched)."""
    first = _first_result(response)
    if not isinstance(first, dict):
        first = response if isinstance(response, dict) else {}
    page = first.get('page')
    nb_pages = first.get('nbPages')
    page = page if isinstance(page, int) and page >= 0 else 0
    nb_pages = nb_pages if isinstance(nb_pages, int) and nb_pages >= 0 else 0
    next_page = page + 1
    return next_page, nb_pages > 0 and next_page < nb_pages and next_page <= SWEEP.ASKHOODIE_MAX_PAGE


def hit_to_location(hit: Dict[str, Any], external_id: str) -> Optional[RawLocation]:
    name = pick_str(hit, 'MASTER_D_NAME', 'DISPENSARY_NAME')
    if name is None:
        return None
    geoloc = hit.get('_geoloc') if isinstance(hit.get('_geoloc'), dict) else {}
    return RawLocation(
        name=name,
        locator_source=KIND,
        address_line1=pick_str(hit, 'MASTER_D_ADDRESS', 'FULL_ADDRESS', 'address'),
        city=pick_str(hit, 'MASTER_D_CITY', 'D_CITY', 'city'),
        state=pick_str(hit, 'MASTER_D_STATE', 'D_STATE', 'state'),
        zip=pick_str(hit, 'MASTER_D_ZIP', 'D_ZIP', 'zip'),
        country=pick_str(hit, 'MASTER_D_COUNTRY', 'D_COUNTRY', 'country'),
        latitude=pick_float(geoloc, 'lat'),
        longitude=pick_float(geoloc, 'lng'),
        phone=pick_str(hit, 'MASTER_D_PHONE', 'PHONE', 'phone'),
        external_id=external_id,
        raw_data=hit,
    )


async def _search_center(
    fetcher: Fetcher,
    embed_id: str,
    lat: float,
    lng: float,
    found: Dict[str, RawLocation],
    request_index: int,
    ctx: ExtractContext,
) -> int:
    """Page through one centre; returns the updated request index."""
    page = 0
    empty_pages = 0
    while True:
        await delays.paced_sleep(embed_id, request_index)
        request_index += 1
        response = await fetcher.post_json(
            cfg.ASKHOODIE_SEARCH_URL,
            build_search_payload(embed_id, lat, lng, page),
            referer=ctx.locator_url,
        )
        hits = extract_hits(response)
        if hits is None:
            return request_index

        if not hits:
            empty_pages += 1
            if empty_pages >= SWEEP.ASKHOODIE_EMPTY_PAGE_LIMIT:
                return request_index
            page += 1
            if page >= SWEEP.ASKHOODIE_EMPTY_PAGE_CEILING:
                return request_index
            continue

        empty_pages = 0
        for hit in hits:
            external_id = pick_id(hit, 'MASTER_D_ID', 'DISPENSARY_ID', 'objectID')
            if external_id is None or external_id in found:
                continue
            location = hit_to_location(hit, external_id)
            if location is not None:
                found[external_id] = location

        page, has_next = next_page_state(response)
        if not has_next:
            return request_index


async def retrieve(fetcher: Fetcher, embed_id: str, ctx: ExtractContext) -> List[RawLocation]:
    found: Dict[str, RawLocation] = {}
    request_index = 0
    for lat, lng in cfg.ASKHOODIE_CENTERS:
        request_index = await _search_center(fetcher, embed_id, lat, lng, found, request_index, ctx)
        logging.debug(f"[{ctx.brand}] AskHoodie cumulative count {len(found)} after {lat},{lng}")
    return list(found.values())
