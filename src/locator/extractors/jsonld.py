"""Schema.org JSON-LD extraction for pages that list stores statically."""

import json
import logging
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from config import locator_config as cfg
from src.shared.http import Fetcher
from src.shared.store_schema import clean_text, pick_float, pick_str
from src.locator.extractors.common import dict_items
from src.locator.types import ExtractContext, RawLocation, StrategyKind

KIND = StrategyKind.JSONLD


def _candidates(value: Any) -> List[Dict[str, Any]]:
    """Top-level nodes plus the members of any ``@graph``."""
    nodes = dict_items(value) if isinstance(value, list) else dict_items([value])
    expanded = []
    for node in nodes:
        expanded.extend(dict_items(node.get('@graph')))
    return nodes + expanded


def is_location_type(node: Dict[str, Any]) -> bool:
    types = node.get('@type')
    if isinstance(types, str):
        types = [types]
    if not isinstance(types, list):
        return False
    return any(isinstance(t, str) and t.lower() in cfg.JSONLD_LOCATION_TYPES for t in types)


def location_nodes(html: str) -> List[Dict[str, Any]]:
    soup = BeautifulSoup(html, 'html.parser')
    nodes = []
    for script in soup.find_all('script', type='application/ld+json'):
        try:
            value = json.loads(script.string or '')
        except ValueError:
            continue
        nodes.extend(node for node in _candidates(value) if is_location_type(node))
    return nodes


def node_to_location(node: Dict[str, Any]) -> Optional[RawLocation]:
    name = clean_text(node.get('name')) if isinstance(node.get('name'), str) else None
    if not name:
        return None
    address = node.get('address') if isinstance(node.get('address'), dict) else {}
    geo = node.get('geo') if isinstance(node.get('geo'), dict) else {}

    country = address.get('addressCountry')
    if isinstance(country, dict):
        country = country.get('name')

    return RawLocation(
        name=name,
        locator_source=KIND,
        address_line1=pick_str(address, 'streetAddress'),
        city=pick_str(address, 'addressLocality'),
        state=pick_str(address, 'addressRegion'),
        zip=pick_str(address, 'postalCode'),
        country=country if isinstance(country, str) else None,
        latitude=pick_float(geo, 'latitude'),
        longitude=pick_float(geo, 'longitude'),
        phone=pick_str(node, 'telephone'),
        raw_data=node,
    )


def detect(html: str) -> Optional[List[Dict[str, Any]]]:
    """Return the store-typed JSON-LD nodes on the page, if any."""
    if 'application/ld+json' not in html:
        return None
    return location_nodes(html) or None


async def retrieve(fetcher: Fetcher, nodes: List[Dict[str, Any]], ctx: ExtractContext) -> List[RawLocation]:
    locations = [loc for loc in (node_to_location(node) for node in nodes) if loc is not None]
    logging.debug(f"[{ctx.brand}] JSON-LD yielded {len(locations)} of {len(nodes)} typed nodes")
    return locations
