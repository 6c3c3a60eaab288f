"""Locally.com widget extraction."""

from typing import List, Optional

from config import locator_config as cfg
from src.shared.http import Fetcher
from src.shared.scraper_utils import first_match
from src.locator.extractors.common import dig, field_map, map_records
from src.locator.types import ExtractContext, RawLocation, StrategyKind

KIND = StrategyKind.LOCALLY

# Ordered from most specific to most general
_COMPANY_ID_PATTERNS = (
    r"""locally\.com/stores/json\?[^"']*company_id=(\d+)""",
    r"locallyWidgetCompanyId\s*[=:]\s*(\d+)",
    r"company_id\s*[=:]\s*(\d+)",
)

FIELDS = field_map()


def detect(html: str) -> Optional[str]:
    """Return the Locally company ID.

    A bare ``company_id`` is only trusted on pages that also carry a
    Locally signal; on its own it is too common on CRM and analytics
    snippets.
    """
    if 'locally.com' not in html and 'locallyWidgetCompanyId' not in html:
        return None
    return first_match(html, _COMPANY_ID_PATTERNS)


async def retrieve(fetcher: Fetcher, company_id: str, ctx: ExtractContext) -> List[RawLocation]:
    payload = await fetcher.fetch_json(
        cfg.LOCALLY_STORES_URL,
        params={'company_id': company_id, 'take': cfg.LOCALLY_TAKE},
        referer=ctx.locator_url,
    )
    return map_records(dig(payload, 'stores'), KIND, FIELDS)
