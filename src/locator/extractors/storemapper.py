"""Storemapper widget extraction."""

from typing import List, Optional

from config import locator_config as cfg
from src.shared.http import Fetcher
from src.shared.scraper_utils import first_match
from src.locator.extractors.common import dig, field_map, map_records
from src.locator.types import ExtractContext, RawLocation, StrategyKind

KIND = StrategyKind.STOREMAPPER

_TOKEN_PATTERNS = (
    r"""storemapper\.co/api/stores\?token=([^"'&\s]+)""",
    r"""data-storemapper-token\s*=\s*["']([^"']+)["']""",
    r"""token["'\s:=]+([A-Za-z0-9_-]{8,})""",
)

FIELDS = field_map(zip=('zip', 'postal_code'))


def detect(html: str) -> Optional[str]:
    """Return the Storemapper API token."""
    if 'storemapper' not in html:
        return None
    return first_match(html, _TOKEN_PATTERNS)


async def retrieve(fetcher: Fetcher, token: str, ctx: ExtractContext) -> List[RawLocation]:
    payload = await fetcher.fetch_json(
        cfg.STOREMAPPER_STORES_URL,
        params={'token': token},
        referer=ctx.locator_url,
    )
    return map_records(dig(payload, 'stores'), KIND, FIELDS)
