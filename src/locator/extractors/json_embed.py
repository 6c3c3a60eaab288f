"""Inline JSON array extraction.

Last-resort strategy: look inside every ``<script>`` for an array of
objects that looks like a store list and decode the first one that yields
locations. Results are low-confidence and always go through the trust gate.
"""

import json
import re
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from src.shared.http import Fetcher
from src.shared.scraper_utils import extract_balanced_array
from src.shared.store_schema import EMBED_FIELD_ALIASES
from src.locator.extractors.common import map_record
from src.locator.types import ExtractContext, RawLocation, StrategyKind

KIND = StrategyKind.JSON_EMBED

_CANDIDATE_RE = re.compile(
    r'(?is)\[\s*\{[^}]*"(?:name|store_name|Name)"[^}]*"(?:city|lat|address|latitude)"[^}]*\}'
)


def embed_record_to_location(obj: Dict[str, Any]) -> Optional[RawLocation]:
    location = map_record(obj, KIND, EMBED_FIELD_ALIASES)
    if location is None:
        return None
    # A bare name is not a store
    if location.city is None and location.latitude is None and location.address_line1 is None:
        return None
    return location


def _records_in_script(content: str) -> Optional[List[Dict[str, Any]]]:
    for match in _CANDIDATE_RE.finditer(content):
        array_text = extract_balanced_array(content[match.start():])
        if array_text is None:
            continue
        try:
            value = json.loads(array_text)
        except ValueError:
            continue
        if not isinstance(value, list):
            continue
        records = [item for item in value if isinstance(item, dict) and embed_record_to_location(item)]
        if records:
            return records
    return None


def detect(html: str) -> Optional[List[Dict[str, Any]]]:
    """Return the records of the first inline array that maps to stores."""
    soup = BeautifulSoup(html, 'html.parser')
    for script in soup.find_all('script'):
        content = script.string
        if not content:
            continue
        records = _records_in_script(str(content))
        if records:
            return records
    return None


async def retrieve(fetcher: Fetcher, records: List[Dict[str, Any]], ctx: ExtractContext) -> List[RawLocation]:
    locations = (embed_record_to_location(record) for record in records)
    return [loc for loc in locations if loc is not None]
