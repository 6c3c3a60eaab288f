"""VTInfo beverage finder extraction.

The finder is an iframe app: the iframe page carries a CSRF token and
implementation settings, and results come back as HTML cards from a form
POST centred on a ZIP code. Radius searches are capped by the provider, so
the finder is swept across several US origins, sequentially and paced.

VTInfo rate-limits aggressively per client IP. Every request, from any
brand, goes through one process-wide gate so concurrent brands never burst.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlencode

from bs4 import BeautifulSoup

from config import locator_config as cfg
from src.shared import delays
from src.shared.constants import SWEEP
from src.shared.errors import ExtractError, FetchError
from src.shared.http import Fetcher
from src.shared.store_schema import clean_text, to_float
from src.locator.grid import GridPoint, strategic_points
from src.locator.types import ExtractContext, RawLocation, StrategyKind

KIND = StrategyKind.VTINFO

_EMBED_RE = re.compile(r"""finder\.vtinfo\.com/finder/web/v2/iframe\?([^"'\s>]+)""")
_FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded; charset=UTF-8'

REQUEST_GATE = delays.RequestGate(SWEEP.VTINFO_MIN_REQUEST_GAP_MS / 1000.0)


@dataclass(frozen=True)
class VtinfoEmbed:
    cust_id: str
    uuid: Optional[str] = None

    @property
    def iframe_url(self) -> str:
        params = [('custID', self.cust_id)]
        if self.uuid:
            params.append(('UUID', self.uuid))
        return f"{cfg.VTINFO_IFRAME_URL}?{urlencode(params)}"


@dataclass(frozen=True)
class FinderSettings:
    """Values scraped from the iframe page that every search must echo."""

    pagesize: str
    implementation_id: str
    uuid: str
    csrf_token: str
    on_prem: str
    off_prem: str


def detect(html: str) -> Optional[VtinfoEmbed]:
    """Return the customer ID (and UUID, if present) of the finder iframe."""
    if 'finder.vtinfo.com' not in html:
        return None
    normalized = (
        html.replace('&amp;', '&')
        .replace('\\\\/', '/')
        .replace('\\/', '/')
        .replace('\n', '')
    )
    match = _EMBED_RE.search(normalized)
    if not match:
        return None

    params: Dict[str, str] = {}
    for part in match.group(1).split('&'):
        key, _, value = part.partition('=')
        if value and key in ('custID', 'UUID'):
            params[key] = value
    if 'custID' not in params:
        return None
    return VtinfoEmbed(params['custID'], params.get('UUID'))


def _js_string(html: str, variable: str) -> Optional[str]:
    match = re.search(rf'{re.escape(variable)}\s*=\s*"([^"]*)"', html)
    return match.group(1) if match else None


def parse_finder_settings(iframe_html: str, embed: VtinfoEmbed) -> FinderSettings:
    soup = BeautifulSoup(iframe_html, 'html.parser')

    def hidden(name: str) -> Optional[str]:
        tag = soup.find('input', attrs={'name': name})
        return tag.get('value') if tag is not None else None

    return FinderSettings(
        pagesize=hidden('pagesize') or cfg.VTINFO_DEFAULT_PAGE_SIZE,
        implementation_id=hidden('implementationID') or '',
        uuid=hidden('UUID') or embed.uuid or '',
        csrf_token=_js_string(iframe_html, 'CSRFToken') or '',
        on_prem=_js_string(iframe_html, 'onPremDescription') or cfg.VTINFO_DEFAULT_ON_PREM,
        off_prem=_js_string(iframe_html, 'offPremDescription') or cfg.VTINFO_DEFAULT_OFF_PREM,
    )


def build_search_form(
    cust_id: str,
    settings: FinderSettings,
    zip_code: str,
    lat: float,
    lng: float,
) -> List[Tuple[str, str]]:
    """Search form pairs in the order the finder's own JS submits them."""
    form = [
        ('custID', cust_id),
        ('pagesize', settings.pagesize),
        ('implementationID', settings.implementation_id),
        ('action', 'results'),
        ('d', zip_code),
        ('z', zip_code),
        ('m', cfg.VTINFO_SEARCH_RADIUS_MILES),
        ('lat', str(lat)),
        ('long', str(lng)),
        ('themeVersion', cfg.VTINFO_THEME_VERSION),
        ('onPremDescription', settings.on_prem),
        ('offPremDescription', settings.off_prem),
        ('CSRFToken', settings.csrf_token),
        ('storeType', 'on'),
        ('storeType', 'off'),
    ]
    if settings.uuid:
        form.append(('UUID', settings.uuid))
    # Some deployments reject searches missing these
    form.append(('minResults', ''))
    form.append(('minSold', ''))
    return form


def is_rate_limited_body(body: str) -> bool:
    lowered = body.lower()
    return any(marker in lowered for marker in cfg.VTINFO_RATE_LIMIT_MARKERS)


def _span_text(tag) -> Optional[str]:
    return clean_text(tag.get_text(' ', strip=True)) if tag is not None else None


def parse_search_results(html: str) -> List[RawLocation]:
    """Parse the ``article.finder_location`` result cards."""
    soup = BeautifulSoup(html, 'html.parser')
    locations = []
    for article in soup.find_all('article', class_='finder_location'):
        name = _span_text(article.find('h2', class_='finder_dba_text'))
        if not name:
            continue
        address_link = article.find('a', class_='finder_address')
        street = None
        if address_link is not None:
            # Street is the first unclassed span; city and state spans carry classes
            street = next((s for s in address_link.find_all('span') if not s.get('class')), None)
        tel_link = article.find('a', href=re.compile(r'^tel:'))
        locations.append(RawLocation(
            name=name,
            locator_source=KIND,
            address_line1=_span_text(street),
            city=_span_text(article.find('span', class_='finder_address_city')),
            state=_span_text(article.find('span', class_='finder_address_state')),
            country='US',
            latitude=to_float(article.get('data-latitude')),
            longitude=to_float(article.get('data-longitude')),
            phone=_span_text(tel_link.find('span')) if tel_link is not None else None,
            raw_data={'html': str(article)},
        ))
    return locations


def search_points() -> List[Tuple[GridPoint, str]]:
    """Strategic origins the finder is swept from, in priority order, with their ZIPs.

    The sweep stops at the result cap, so leading points decide coverage.
    """
    return [
        (point, cfg.VTINFO_ZIP_BY_LABEL[point.label])
        for point in strategic_points()
        if point.label in cfg.VTINFO_ZIP_BY_LABEL
    ]


def dedup_key(location: RawLocation) -> str:
    return '|'.join(
        (value or '').lower()
        for value in (location.name, location.address_line1, location.city, location.state)
    )


async def _gated_request(
    fetcher: Fetcher,
    method: str,
    url: str,
    referer: str,
    form: Optional[Sequence[Tuple[str, str]]] = None,
) -> Optional[str]:
    """One finder request under the shared gate with VTInfo's retry contract.

    429 waits for Retry-After, a rate-limit page backs off, a 5xx is not
    retried. Returns None when every attempt failed.
    """
    kwargs = {'referer': referer}
    if form is not None:
        kwargs['content'] = urlencode(list(form))
        kwargs['headers'] = {'Content-Type': _FORM_CONTENT_TYPE}

    for attempt in range(SWEEP.VTINFO_MAX_ATTEMPTS):
        if attempt > 0:
            await delays.pause(delays.retry_backoff_delay(attempt - 1))
        await REQUEST_GATE.wait()
        try:
            response = await fetcher.send(method, url, **kwargs)
        except FetchError as e:
            logging.debug(f"VTInfo request error: {e}")
            continue

        status = response.status_code
        if status == 429:
            wait_time = delays.retry_after_delay(response.headers)
            if wait_time is not None:
                await delays.pause(wait_time)
            continue
        if status >= 500:
            logging.debug(f"VTInfo server error ({status}), not retrying")
            return None
        if not 200 <= status < 300:
            continue

        body = response.text
        if is_rate_limited_body(body):
            await delays.pause(delays.retry_backoff_delay(attempt))
            continue
        if body.strip():
            return body
    return None


async def retrieve(fetcher: Fetcher, embed: VtinfoEmbed, ctx: ExtractContext) -> List[RawLocation]:
    iframe_url = embed.iframe_url
    iframe_html = await _gated_request(fetcher, 'GET', iframe_url, referer=ctx.locator_url)
    if iframe_html is None:
        raise ExtractError(KIND.value, f"finder iframe unavailable for custID={embed.cust_id}")
    settings = parse_finder_settings(iframe_html, embed)
    logging.debug(f"[{ctx.brand}] VTInfo iframe parsed (custID={embed.cust_id}, pagesize={settings.pagesize})")

    found: Dict[str, RawLocation] = {}
    for idx, (point, zip_code) in enumerate(search_points()):
        await delays.paced_sleep(embed.cust_id, idx)
        form = build_search_form(embed.cust_id, settings, zip_code, point.lat, point.lng)
        body = await _gated_request(fetcher, 'POST', cfg.VTINFO_SEARCH_URL, referer=iframe_url, form=form)
        if body is None:
            logging.debug(f"[{ctx.brand}] VTInfo search failed near {zip_code}")
            continue
        if 'Invalid token' in body:
            logging.debug(f"[{ctx.brand}] VTInfo rejected CSRF token near {zip_code}")
        for location in parse_search_results(body):
            found.setdefault(dedup_key(location), location)
        logging.debug(f"[{ctx.brand}] VTInfo cumulative count {len(found)} after {zip_code}")
        if len(found) >= SWEEP.VTINFO_RESULT_CAP:
            logging.info(f"[{ctx.brand}] VTInfo result cap reached ({len(found)}), stopping sweep")
            break
    return list(found.values())
