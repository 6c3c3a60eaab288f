"""Tests for the static-parse fallbacks (JSON-LD and inline JSON arrays)"""

import json

import pytest

from src.locator.extractors import json_embed, jsonld
from src.locator.types import ExtractContext


def ld_script(value) -> str:
    return f'<script type="application/ld+json">{json.dumps(value)}</script>'


STORE_NODE = {
    '@type': 'Store',
    'name': 'Cedar Lane Grocery',
    'telephone': '864-555-0199',
    'address': {
        '@type': 'PostalAddress',
        'streetAddress': '12 Cedar Ln',
        'addressLocality': 'Spartanburg',
        'addressRegion': 'SC',
        'postalCode': '29301',
        'addressCountry': {'@type': 'Country', 'name': 'US'},
    },
    'geo': {'latitude': '34.95', 'longitude': '-81.93'},
}


class TestJsonLd:
    """Test schema.org node discovery and mapping"""

    def test_detect_store_nodes(self):
        html = ld_script({'@type': 'Organization', 'name': 'Brand Co'}) + ld_script(STORE_NODE)
        assert jsonld.detect(html) == [STORE_NODE]

    def test_detect_expands_graph(self):
        html = ld_script({'@context': 'https://schema.org', '@graph': [
            {'@type': 'WebPage', 'name': 'Stores'},
            {'@type': ['Organization', 'LocalBusiness'], 'name': 'Depot'},
        ]})
        nodes = jsonld.detect(html)
        assert [node['name'] for node in nodes] == ['Depot']

    def test_types_are_case_insensitive(self):
        assert jsonld.is_location_type({'@type': 'GroceryStore'})
        assert jsonld.is_location_type({'@type': 'barorpub'})
        assert not jsonld.is_location_type({'@type': 42})

    def test_malformed_script_is_skipped(self):
        html = '<script type="application/ld+json">{not json</script>' + ld_script(STORE_NODE)
        assert len(jsonld.detect(html)) == 1

    def test_detect_without_ld_json(self):
        assert jsonld.detect('<html><body>No data</body></html>') is None

    def test_detect_without_store_types(self):
        assert jsonld.detect(ld_script({'@type': 'Product', 'name': 'Seltzer'})) is None

    def test_node_to_location(self):
        location = jsonld.node_to_location(STORE_NODE)
        assert location.name == 'Cedar Lane Grocery'
        assert location.address_line1 == '12 Cedar Ln'
        assert (location.city, location.state, location.zip) == ('Spartanburg', 'SC', '29301')
        assert location.country == 'US'
        assert location.latitude == 34.95
        assert location.phone == '864-555-0199'
        assert location.locator_source == 'jsonld'

    def test_node_without_name(self):
        assert jsonld.node_to_location({'@type': 'Store', 'address': {}}) is None

    @pytest.mark.asyncio
    async def test_retrieve_maps_nodes(self):
        ctx = ExtractContext(locator_url='https://brand.example/stores', brand='b')
        locations = await jsonld.retrieve(None, [STORE_NODE, {'@type': 'Store'}], ctx)
        assert [loc.name for loc in locations] == ['Cedar Lane Grocery']


def embed_page(records, variable='stores') -> str:
    return f"<html><script>window.{variable} = {json.dumps(records)};</script></html>"


EMBED_RECORDS = [
    {'name': 'Oak Street Market', 'city': 'Macon', 'state': 'GA', 'lat': 32.84, 'lng': -83.63},
    {'store_name': 'Pine Hill Foods', 'address1': '4 Pine Hill', 'State': 'GA'},
]


class TestJsonEmbed:
    """Test inline JSON array discovery"""

    def test_detect_store_array(self):
        assert json_embed.detect(embed_page(EMBED_RECORDS)) == EMBED_RECORDS

    def test_skips_arrays_without_store_shape(self):
        html = (
            '<script>var menu = [{"name": "Home", "url": "/"}];</script>'
            + embed_page(EMBED_RECORDS)
        )
        assert json_embed.detect(html) == EMBED_RECORDS

    def test_bare_names_are_not_stores(self):
        records = [{'name': 'Just A Name', 'city': None, 'notes': 'x'}]
        assert json_embed.detect(embed_page(records)) is None

    def test_only_script_bodies_are_scanned(self):
        text = json.dumps(EMBED_RECORDS)
        outside = f'<pre>{text}</pre><!-- {text} --><script type="text/javascript">var x = 1;</script>'
        assert json_embed.detect(outside) is None
        assert json_embed.detect(f'<SCRIPT type="text/javascript">var stores = {text};</SCRIPT>') == EMBED_RECORDS

    def test_unterminated_array(self):
        assert json_embed.detect('<script>var s = [{"name": "A", "city": "B"}</script>') is None

    def test_record_mapping_uses_aliases(self):
        location = json_embed.embed_record_to_location(EMBED_RECORDS[1])
        assert location.name == 'Pine Hill Foods'
        assert location.address_line1 == '4 Pine Hill'
        assert location.state == 'GA'
        assert location.locator_source == 'json_embed'

    @pytest.mark.asyncio
    async def test_retrieve(self):
        ctx = ExtractContext(locator_url='https://brand.example/stores', brand='b')
        locations = await json_embed.retrieve(None, EMBED_RECORDS, ctx)
        assert [loc.name for loc in locations] == ['Oak Street Market', 'Pine Hill Foods']
        assert locations[0].longitude == -83.63
