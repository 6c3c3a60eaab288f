"""Tests for the single-call provider extractors"""

import json

import pytest

from config import locator_config as cfg
from src.shared.errors import ExtractError, FetchError
from src.locator.extractors import (
    agile_store_locator,
    beveragefinder,
    locally,
    roseperl,
    stockist,
    storemapper,
    storepoint,
    storerocket,
)
from src.locator.types import ExtractContext, StrategyKind

PAGE = 'https://brand.example/where-to-buy'


@pytest.fixture
def ctx():
    return ExtractContext(locator_url=PAGE, brand='test-brand')


class TestLocally:
    """Test Locally.com detection and retrieval"""

    def test_detect_from_stores_url(self):
        html = '<script src="https://api.locally.com/stores/json?company_id=4812&take=50"></script>'
        assert locally.detect(html) == '4812'

    def test_detect_from_widget_variable(self):
        assert locally.detect('<script>var locallyWidgetCompanyId = 991;</script>') == '991'

    def test_bare_company_id_needs_locally_signal(self):
        assert locally.detect('<script>crm.init({company_id: 42})</script>') is None

    @pytest.mark.asyncio
    async def test_retrieve(self, router, make_fetcher, ctx):
        router.add('GET', cfg.LOCALLY_STORES_URL, json={'stores': [
            {'id': 7, 'name': 'Corner Bottle Shop', 'address': '1 King St', 'city': 'Charleston',
             'state': 'SC', 'zip': '29401', 'lat': '32.78', 'lng': '-79.93', 'phone': '843-555-0100'},
            {'id': 8, 'name': '   '},
        ]})
        async with make_fetcher(router) as fetcher:
            locations = await locally.retrieve(fetcher, '4812', ctx)

        assert len(locations) == 1
        store = locations[0]
        assert store.name == 'Corner Bottle Shop'
        assert store.external_id == '7'
        assert store.latitude == 32.78
        assert store.locator_source == 'locally'
        request = router.requests[0]
        assert request.url.params['company_id'] == '4812'
        assert request.headers['Referer'] == PAGE


class TestStoremapper:
    """Test Storemapper detection and retrieval"""

    def test_detect_token(self):
        html = '<div data-storemapper-token="abc123XYZ"></div><script src="storemapper.js"></script>'
        assert storemapper.detect(html) == 'abc123XYZ'

    def test_requires_storemapper_signal(self):
        assert storemapper.detect('<script>var token = "abcdefgh1234"</script>') is None

    @pytest.mark.asyncio
    async def test_retrieve_uses_postal_code_fallback(self, router, make_fetcher, ctx):
        router.add('GET', cfg.STOREMAPPER_STORES_URL, json={'stores': [
            {'id': 'sm-1', 'name': 'Lakeside Grocer', 'address': '9 Lake Rd', 'city': 'Greenville',
             'state': 'SC', 'postal_code': '29601'},
        ]})
        async with make_fetcher(router) as fetcher:
            locations = await storemapper.retrieve(fetcher, 'abc123XYZ', ctx)
        assert locations[0].zip == '29601'
        assert router.requests[0].url.params['token'] == 'abc123XYZ'


class TestStockist:
    """Test Stockist JSONP config and search"""

    def test_detect_widget_tag(self):
        assert stockist.detect('<div data-stockist-widget-tag="u23010"></div>') == 'u23010'

    def test_parse_jsonp(self):
        assert stockist.parse_jsonp('cb({"latitude": 33.1, "max_distance": 250});') == {
            'latitude': 33.1, 'max_distance': 250,
        }

    def test_parse_jsonp_without_call(self):
        assert stockist.parse_jsonp('not jsonp') == {}

    def test_parse_jsonp_invalid_payload(self):
        with pytest.raises(ExtractError):
            stockist.parse_jsonp('cb({not json})')

    @pytest.mark.asyncio
    async def test_retrieve_uses_widget_centre(self, router, make_fetcher, ctx):
        base = f"{cfg.STOCKIST_API_BASE}/u23010"
        router.add('GET', f"{base}/widget.js",
                   text='_stockistConfigCallback_u23010({"latitude": 33.0, "longitude": -80.5, "max_distance": 300})')
        router.add('GET', f"{base}/locations/search", json={'locations': [
            {'id': 11, 'name': 'Harbor Market', 'address_line_1': '5 Dock St', 'city': 'Beaufort',
             'state': 'SC', 'postal_code': '29902', 'latitude': '32.43', 'longitude': '-80.67'},
        ]})
        async with make_fetcher(router) as fetcher:
            locations = await stockist.retrieve(fetcher, 'u23010', ctx)

        assert locations[0].address_line1 == '5 Dock St'
        assert locations[0].zip == '29902'
        search = router.requests_to(f"{base}/locations/search")[0]
        assert search.url.params['latitude'] == '33.0'
        assert search.url.params['distance'] == '300'

    @pytest.mark.asyncio
    async def test_retrieve_defaults_without_config(self, router, make_fetcher, ctx):
        base = f"{cfg.STOCKIST_API_BASE}/u1"
        router.add('GET', f"{base}/widget.js", text='// no config')
        router.add('GET', f"{base}/locations/search", json={'locations': []})
        async with make_fetcher(router) as fetcher:
            assert await stockist.retrieve(fetcher, 'u1', ctx) == []
        search = router.requests_to(f"{base}/locations/search")[0]
        assert search.url.params['distance'] == str(cfg.STOCKIST_DEFAULT_DISTANCE)


class TestStorepoint:
    """Test Storepoint detection and address tail parsing"""

    def test_detect_constructor(self):
        assert storepoint.detect("<script>new StorepointWidget('15f0b1c2d3', 'div')</script>") == '15f0b1c2d3'

    def test_detect_escaped_constructor_in_js_string(self):
        html = r"""{"html":"<script>new StorepointWidget(\n'abc999', 'sp')</script>"}"""
        assert storepoint.detect(html) == 'abc999'

    def test_parse_address_tail_with_country(self):
        assert storepoint.parse_address_tail('1324 5th Street, Jellico TN 37762, USA') == \
            ('Jellico', 'TN', '37762', 'USA')

    def test_parse_address_tail_known_country(self):
        assert storepoint.parse_address_tail('77 Elm St, Aiken SC 29801', country_known=True) == \
            ('Aiken', 'SC', '29801', None)

    def test_unparseable_tail(self):
        assert storepoint.parse_address_tail('Somewhere downtown') == (None, None, None, 'Somewhere downtown')

    @pytest.mark.asyncio
    async def test_retrieve(self, router, make_fetcher, ctx):
        router.add('GET', cfg.STOREPOINT_LOCATIONS_URL.format(widget_id='abc999'), json={
            'results': {'locations': [
                {'id': 3, 'name': 'Mill Street Deli', 'streetaddress': '1324 5th Street, Jellico TN 37762, USA',
                 'loc_lat': 36.58, 'loc_long': -84.13},
            ]},
        })
        async with make_fetcher(router) as fetcher:
            locations = await storepoint.retrieve(fetcher, 'abc999', ctx)
        store = locations[0]
        assert (store.city, store.state, store.zip, store.country) == ('Jellico', 'TN', '37762', 'USA')
        assert store.longitude == -84.13


class TestRoseperl:
    """Test Roseperl WTB bundle extraction"""

    BUNDLE = 'https://cdn.roseperl.com/storelocator-prod/wtb/shop-123.js'

    def test_detect_unescapes_json_slashes(self):
        html = '{"src":"https:\\/\\/cdn.roseperl.com\\/storelocator-prod\\/wtb\\/shop-123.js"}'
        assert roseperl.detect(html) == self.BUNDLE

    def test_detect_absent(self):
        assert roseperl.detect('<html></html>') is None

    @pytest.mark.asyncio
    async def test_retrieve(self, router, make_fetcher, ctx):
        payload = {'locations': [{'id': 1, 'title': 'River Co-op', 'city': 'Athens', 'state': 'GA',
                                  'zipcode': '30601', 'lat': 33.96, 'lng': -83.38}]}
        router.add('GET', self.BUNDLE, text=f"window.x=1;SCASLWtb={json.dumps(payload)};init();")
        async with make_fetcher(router) as fetcher:
            locations = await roseperl.retrieve(fetcher, self.BUNDLE, ctx)
        assert locations[0].name == 'River Co-op'
        assert locations[0].zip == '30601'

    @pytest.mark.asyncio
    async def test_retrieve_without_assignment(self, router, make_fetcher, ctx):
        router.add('GET', self.BUNDLE, text='console.log("nothing here")')
        async with make_fetcher(router) as fetcher:
            assert await roseperl.retrieve(fetcher, self.BUNDLE, ctx) == []


class TestBeverageFinder:
    """Test BeverageFinder key detection and data-locations parsing"""

    def test_detect_embed_script(self):
        html = '<script src="https://beveragefinder.net/users/embed.js" data-key="KEY42"></script>'
        assert beveragefinder.detect(html) == 'KEY42'

    def test_detect_map_iframe(self):
        html = '<iframe src="https://beveragefinder.net/users/beveragefinder-map.php?embed=1&amp;key=MAPKEY"></iframe>'
        assert beveragefinder.detect(html) == 'MAPKEY'

    def test_parse_fragment_from_json_wrapper(self):
        body = json.dumps({'html': "<div data-locations='[{&quot;name&quot;:&quot;A&quot;}]'></div>"})
        assert beveragefinder.parse_locations_fragment(body) == [{'name': 'A'}]

    def test_parse_fragment_raw_html(self):
        assert beveragefinder.parse_locations_fragment("<div data-locations='[]'></div>") == []

    def test_parse_fragment_missing_attribute(self):
        assert beveragefinder.parse_locations_fragment('<div></div>') == []

    def test_default_zip(self):
        assert beveragefinder.default_zip({'defaultZip': '29401'}) == '29401'
        assert beveragefinder.default_zip(None) == cfg.BEVERAGEFINDER_DEFAULT_ZIP

    @pytest.mark.asyncio
    async def test_retrieve(self, router, make_fetcher, ctx):
        records = [{'id': 5, 'store': 'Bay Liquors', 'address1': '2 Bay St', 'city': 'Savannah',
                    'state': 'GA', 'postal': '31401', 'latitude': 32.08, 'longitude': -81.09}]
        encoded = json.dumps(records).replace('"', '&quot;')
        router.add('GET', cfg.BEVERAGEFINDER_MAP_URL, text='{"defaultZip": "31401"}')
        router.add('POST', cfg.BEVERAGEFINDER_SEARCH_URL, text=f"<div data-locations='{encoded}'></div>")
        async with make_fetcher(router) as fetcher:
            locations = await beveragefinder.retrieve(fetcher, 'KEY42', ctx)

        assert locations[0].name == 'Bay Liquors'
        assert locations[0].zip == '31401'
        search = router.requests_to(cfg.BEVERAGEFINDER_SEARCH_URL)[0]
        assert b'zip=31401' in search.content
        assert b'key=KEY42' in search.content


class TestStoreRocket:
    """Test StoreRocket account detection and script probing"""

    def test_detect_account(self):
        assert storerocket.detect("StoreRocket.init({selector: '.x', account: 'Ab12Cd34'})") == 'Ab12Cd34'

    def test_detect_api_url(self):
        assert storerocket.detect('fetch("https://storerocket.io/api/user/zZ9yY8/locations")') == 'zZ9yY8'

    def test_detect_without_signal(self):
        assert storerocket.detect("init({account: 'Ab12Cd34'})") is None

    @pytest.mark.asyncio
    async def test_discover_from_linked_script(self, router, make_fetcher, ctx):
        script = 'https://cdn.brand.example/assets/storerocket-loader.js'
        router.add('GET', script, text="StoreRocket.init({account: 'Found777'})")
        html = f'<script src="{script}"></script>'
        async with make_fetcher(router) as fetcher:
            assert await storerocket.discover(fetcher, html, ctx) == 'Found777'

    @pytest.mark.asyncio
    async def test_discover_skips_failed_scripts(self, router, make_fetcher, ctx):
        html = '<script src="https://cdn.brand.example/store-locator.js"></script>'
        async with make_fetcher(router) as fetcher:
            assert await storerocket.discover(fetcher, html, ctx) is None

    @pytest.mark.asyncio
    async def test_retrieve(self, router, make_fetcher, ctx):
        router.add('GET', cfg.STOREROCKET_LOCATIONS_URL.format(account='Found777'), json={
            'results': {'locations': [
                {'obf_id': 'x1', 'id': 9, 'name': 'Pier Pantry', 'display_address': '3 Pier Rd',
                 'city': 'Wilmington', 'state': 'NC', 'postal': '28401', 'lat': 34.2, 'lng': -77.9},
            ]},
        })
        async with make_fetcher(router) as fetcher:
            locations = await storerocket.retrieve(fetcher, 'Found777', ctx)
        store = locations[0]
        assert store.external_id == 'x1'
        assert store.address_line1 == '3 Pier Rd'
        assert store.zip == '28401'


AGILE_PAGE = """
<link rel="stylesheet" href="/wp-content/plugins/agile-store-locator/public/css/all.css">
<script>
var ASL_REMOTE = {"ajax_url":"https://brand.example/wp-admin/admin-ajax.php","nonce":"n0nce"};
var asl_configuration = {"lang":"en_US","load_all":"1","layout":"1","stores":"4,5"};
</script>
"""


class TestAgileStoreLocator:
    """Test Agile Store Locator config parsing and retrying retrieval"""

    def test_detect(self):
        config = agile_store_locator.detect(AGILE_PAGE)
        assert config.ajax_url == 'https://brand.example/wp-admin/admin-ajax.php'
        assert config.nonce == 'n0nce'
        assert config.query_params() == {
            'action': 'asl_load_stores', 'nonce': 'n0nce', 'asl_lang': 'en_US',
            'load_all': '1', 'layout': '1', 'stores': '4,5',
        }

    def test_detect_requires_nonce(self):
        html = AGILE_PAGE.replace('"nonce":"n0nce"', '"nonce":""')
        assert agile_store_locator.detect(html) is None

    @pytest.mark.asyncio
    async def test_retrieve_retries_then_succeeds(self, router, make_fetcher, ctx, no_sleep):
        url = 'https://brand.example/wp-admin/admin-ajax.php'
        router.add('GET', url, status=500)
        router.add('GET', url, text='<html>not json</html>')
        router.add('GET', url, json=[{'id': 1, 'title': 'Hilltop Wines', 'street': '8 Hill Rd',
                                      'city': 'Asheville', 'state': 'NC', 'postal_code': '28801',
                                      'lat': '35.59', 'lng': '-82.55'}])
        config = agile_store_locator.detect(AGILE_PAGE)
        async with make_fetcher(router) as fetcher:
            locations = await agile_store_locator.retrieve(fetcher, config, ctx)

        assert [loc.name for loc in locations] == ['Hilltop Wines']
        assert len(router.requests) == 3
        assert no_sleep == [0.3, 0.9]

    @pytest.mark.asyncio
    async def test_retrieve_gives_up_after_attempts(self, router, make_fetcher, ctx):
        url = 'https://brand.example/wp-admin/admin-ajax.php'
        router.add('GET', url, status=503)
        config = agile_store_locator.detect(AGILE_PAGE)
        async with make_fetcher(router) as fetcher:
            with pytest.raises(FetchError):
                await agile_store_locator.retrieve(fetcher, config, ctx)
        assert len(router.requests) == 3

    @pytest.mark.asyncio
    async def test_retrieve_stores_wrapper(self, router, make_fetcher, ctx):
        url = 'https://brand.example/wp-admin/admin-ajax.php'
        router.add('GET', url, json={'stores': [{'id': 2, 'name': 'Valley Mart', 'city': 'Boone', 'state': 'NC'}]})
        config = agile_store_locator.detect(AGILE_PAGE)
        async with make_fetcher(router) as fetcher:
            locations = await agile_store_locator.retrieve(fetcher, config, ctx)
        assert locations[0].locator_source == StrategyKind.AGILE_STORE_LOCATOR.value
