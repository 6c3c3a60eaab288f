"""Tests for per-brand collection outcomes and bounded fan-out"""

import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

import src.collector as collector
import src.shared.run_tracker as run_tracker
from config import locator_config as cfg
from src.shared.errors import PersistenceError
from src.shared.run_tracker import RunRecorder
from src.collector import (
    BrandConfig,
    BrandOutcome,
    OutcomeStatus,
    candidate_locator_urls,
    collect_all,
    collect_brand,
    discover_locator_url,
)
from src.location_store import InMemoryLocationStore
from src.territory import TerritoryTracker

PAGE = 'https://brand.example/where-to-buy'
NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)
LOCALLY_PAGE = '<html><script>var locallyWidgetCompanyId = 4812;</script></html>'


def locally_stores(count):
    return {'stores': [
        {'id': i, 'name': f"Store {i}", 'address': f"{i} Main St", 'city': 'Columbia', 'state': 'SC', 'zip': '29201'}
        for i in range(count)
    ]}


def brand(slug='brand-1', **kwargs):
    return BrandConfig.from_config(slug, dict({'locator_url': PAGE}, **kwargs))


@pytest.fixture
def store():
    return InMemoryLocationStore()


@pytest.fixture
def tracker(store):
    return TerritoryTracker(store)


class TestBrandConfig:
    """Test brand registry entries"""

    def test_defaults(self):
        config = BrandConfig.from_config('seltzer', None)
        assert (config.brand_id, config.name, config.locator_url, config.enabled) == ('seltzer', 'seltzer', None, True)

    def test_explicit_values(self):
        config = BrandConfig.from_config('seltzer', {
            'brand_id': 'b-17', 'name': 'Seltzer Co', 'domain': 'seltzer.example', 'enabled': False,
        })
        assert config.brand_id == 'b-17'
        assert config.domain == 'seltzer.example'
        assert not config.enabled


class TestLocatorDiscovery:
    """Test locator page auto-discovery"""

    def test_candidate_urls(self):
        urls = candidate_locator_urls('brand.example/')
        assert urls[0] == 'https://brand.example/pages/where-to-buy'
        assert urls[-1] == 'https://brand.example/stores'
        assert candidate_locator_urls('http://brand.example')[0].startswith('http://brand.example/')

    @pytest.mark.asyncio
    async def test_first_answering_path_wins(self, router, make_fetcher):
        router.add('HEAD', 'https://brand.example/pages/find-us', status=200)
        router.add('HEAD', 'https://brand.example/stores', status=200)
        async with make_fetcher(router) as fetcher:
            assert await discover_locator_url(fetcher, 'brand.example') == 'https://brand.example/pages/find-us'
        assert len(router.requests) == 4

    @pytest.mark.asyncio
    async def test_nothing_answers(self, router, make_fetcher):
        async with make_fetcher(router) as fetcher:
            assert await discover_locator_url(fetcher, 'brand.example') is None
        assert len(router.requests) == len(collector.LOCATOR_PATHS)


class TestCollectBrand:
    """Test the outcome of one brand's pipeline run"""

    @pytest.mark.asyncio
    async def test_no_url_writes_nothing(self, router, make_fetcher, tracker, store):
        config = BrandConfig.from_config('bare', {})
        async with make_fetcher(router) as fetcher:
            outcome = await collect_brand(fetcher, tracker, config)

        assert outcome.status == OutcomeStatus.NO_LOCATOR
        assert outcome.reason == 'no locator URL configured or discovered'
        assert router.requests == []
        assert store.brand_ids() == []

    @pytest.mark.asyncio
    async def test_failed_discovery_writes_nothing(self, router, make_fetcher, tracker, store):
        """A domain whose probes all fail is reported as having no locator."""
        router.add('HEAD', 'https://brand.example/pages/where-to-buy', status=500)
        router.add('HEAD', 'https://brand.example/stores', status=403)
        config = BrandConfig.from_config('brand-1', {'domain': 'brand.example'})
        async with make_fetcher(router) as fetcher:
            outcome = await collect_brand(fetcher, tracker, config, now=NOW)

        assert outcome.status == OutcomeStatus.NO_LOCATOR
        assert outcome.locator_url is None
        assert len(router.requests) == len(collector.LOCATOR_PATHS)
        assert all(request.method == 'HEAD' for request in router.requests)
        assert store.brand_ids() == []

    @pytest.mark.asyncio
    async def test_first_run_via_provider(self, router, make_fetcher, tracker, store):
        router.add('GET', PAGE, text=LOCALLY_PAGE)
        router.add('GET', cfg.LOCALLY_STORES_URL, json=locally_stores(50))
        async with make_fetcher(router) as fetcher:
            outcome = await collect_brand(fetcher, tracker, brand(), now=NOW)

        assert outcome.succeeded
        assert (outcome.source, outcome.location_count) == ('locally', 50)
        assert (outcome.added, outcome.removed, outcome.active) == (50, 0, 50)
        assert outcome.reason == 'trusted_source'
        assert len(store.active_keys('brand-1')) == 50
        assert 'via locally' in outcome.summary_line()

    @pytest.mark.asyncio
    async def test_discovered_url_is_used(self, router, make_fetcher, tracker):
        discovered = 'https://brand.example/pages/where-to-buy'
        router.add('HEAD', discovered, status=200)
        router.add('GET', discovered, text=LOCALLY_PAGE)
        router.add('GET', cfg.LOCALLY_STORES_URL, json=locally_stores(2))
        config = BrandConfig.from_config('brand-1', {'domain': 'brand.example'})
        async with make_fetcher(router) as fetcher:
            outcome = await collect_brand(fetcher, tracker, config)

        assert outcome.succeeded
        assert outcome.locator_url == discovered

    @pytest.mark.asyncio
    async def test_no_parseable_locator_keeps_territory(self, router, make_fetcher, tracker, store, make_location):
        tracker.apply('brand-1', [make_location()], now=NOW)
        router.add('GET', PAGE, text='<html><body>Coming soon</body></html>')
        async with make_fetcher(router) as fetcher:
            outcome = await collect_brand(fetcher, tracker, brand())

        assert outcome.status == OutcomeStatus.NO_LOCATOR
        assert outcome.reason == 'no parseable locator found'
        assert len(store.active_keys('brand-1')) == 1

    @pytest.mark.asyncio
    async def test_page_fetch_failure(self, router, make_fetcher, tracker, store, make_location):
        tracker.apply('brand-1', [make_location()], now=NOW)
        router.add('GET', PAGE, status=404)
        async with make_fetcher(router) as fetcher:
            outcome = await collect_brand(fetcher, tracker, brand())

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.reason.startswith('scrape failed: HTTP 404')
        assert len(store.active_keys('brand-1')) == 1

    @pytest.mark.asyncio
    async def test_detected_but_failing_provider(self, router, make_fetcher, tracker):
        router.add('GET', PAGE, text=LOCALLY_PAGE)
        router.add('GET', cfg.LOCALLY_STORES_URL, status=410)
        async with make_fetcher(router) as fetcher:
            outcome = await collect_brand(fetcher, tracker, brand())

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.reason.startswith('scrape failed: locally: HTTP 410')

    @pytest.mark.asyncio
    async def test_untrusted_embed_is_not_persisted(self, router, make_fetcher, tracker, store, make_location):
        tracker.apply('brand-1', [make_location()], now=NOW)
        records = [{'name': f"Shop {i}", 'city': 'Columbia', 'state': 'SC'} for i in range(3)]
        router.add('GET', PAGE, text=f"<html><script>var s = {json.dumps(records)};</script></html>")
        async with make_fetcher(router) as fetcher:
            outcome = await collect_brand(fetcher, tracker, brand())

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.source == 'json_embed'
        assert outcome.reason.startswith('untrusted scrape result: json_embed scrape below trust threshold')
        assert len(store.active_keys('brand-1')) == 1

    @pytest.mark.asyncio
    async def test_sweep_results_are_deduplicated(self, router, make_fetcher, tracker):
        embed_id = '0f8fad5b-d9cb-469f-a165-70867728950e'
        router.add('GET', PAGE, text=f'<script>/* askhoodie */ hoodieEmbedWtbV2("{embed_id}")</script>')
        hits = [
            {'MASTER_D_ID': 'a', 'MASTER_D_NAME': 'Leaf & Co', 'MASTER_D_STATE': 'CO', '_geoloc': {'lat': 39.74, 'lng': -104.99}},
            {'MASTER_D_ID': 'b', 'MASTER_D_NAME': 'Leaf and Co', 'MASTER_D_STATE': 'CO', '_geoloc': {'lat': 39.74, 'lng': -104.99}},
        ]
        router.add('POST', cfg.ASKHOODIE_SEARCH_URL, json={'results': [{'hits': hits, 'page': 0, 'nbPages': 1}]})
        async with make_fetcher(router) as fetcher:
            outcome = await collect_brand(fetcher, tracker, brand())

        assert outcome.succeeded
        assert outcome.source == 'askhoodie'
        assert outcome.location_count == 1

    @pytest.mark.asyncio
    async def test_persistence_failure(self, router, make_fetcher):
        class ReadOnlyStore(InMemoryLocationStore):
            def commit(self, brand_id, upserts, deactivate_keys):
                raise PersistenceError('read-only')

        router.add('GET', PAGE, text=LOCALLY_PAGE)
        router.add('GET', cfg.LOCALLY_STORES_URL, json=locally_stores(3))
        async with make_fetcher(router) as fetcher:
            outcome = await collect_brand(fetcher, TerritoryTracker(ReadOnlyStore()), brand())

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.reason == 'persistence failed: read-only'

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_outcome(self, router, make_fetcher, tracker, monkeypatch):
        async def exploding_cascade(*args, **kwargs):
            raise RuntimeError('boom')

        monkeypatch.setattr(collector, 'run_cascade', exploding_cascade)
        async with make_fetcher(router) as fetcher:
            outcome = await collect_brand(fetcher, tracker, brand())

        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.reason == 'unexpected error: RuntimeError: boom'


class TestCollectAll:
    """Test bounded concurrent collection"""

    @pytest.mark.asyncio
    async def test_outcomes_are_isolated_and_ordered(self, router, make_fetcher, tracker, store, tmp_path):
        router.add('GET', PAGE, text=LOCALLY_PAGE)
        router.add('GET', cfg.LOCALLY_STORES_URL, json=locally_stores(5))
        router.add('GET', 'https://broken.example/stores', status=500)
        brands = [
            brand('good'),
            BrandConfig.from_config('missing', {}),
            BrandConfig.from_config('broken', {'locator_url': 'https://broken.example/stores'}),
        ]
        recorder = RunRecorder(str(tmp_path), run_id='run_test')
        async with make_fetcher(router) as fetcher:
            outcomes = await collect_all(fetcher, tracker, brands, concurrency=2, recorder=recorder)

        assert list(outcomes) == ['good', 'missing', 'broken']
        assert [o.status for o in outcomes.values()] == ['succeeded', 'no_locator', 'failed']
        assert store.brand_ids() == ['good']
        assert recorder.metadata['stats'] == {'succeeded': 1, 'no_locator': 1, 'failed': 1}

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, tracker, monkeypatch):
        in_flight = 0
        peak = 0

        async def slow_collect(fetcher, tracker, brand, now=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return BrandOutcome(slug=brand.slug, brand_id=brand.brand_id, status=OutcomeStatus.SUCCEEDED)

        monkeypatch.setattr(collector, 'collect_brand', slow_collect)
        brands = [BrandConfig.from_config(f"b{i}", {}) for i in range(7)]
        outcomes = await collect_all(None, tracker, brands, concurrency=3)

        assert len(outcomes) == 7
        assert peak == 3

    @pytest.mark.asyncio
    async def test_task_exception_is_converted(self, tracker, monkeypatch, tmp_path):
        async def flaky_collect(fetcher, tracker, brand, now=None):
            if brand.slug == 'bad':
                raise RuntimeError('task crashed')
            return BrandOutcome(slug=brand.slug, brand_id=brand.brand_id, status=OutcomeStatus.SUCCEEDED)

        monkeypatch.setattr(collector, 'collect_brand', flaky_collect)
        recorder = RunRecorder(str(tmp_path), run_id='run_test')
        brands = [BrandConfig.from_config('ok', {}), BrandConfig.from_config('bad', {})]
        outcomes = await collect_all(None, tracker, brands, concurrency=4, recorder=recorder)

        assert outcomes['ok'].succeeded
        assert outcomes['bad'].status == OutcomeStatus.FAILED
        assert outcomes['bad'].reason == 'unexpected error: RuntimeError: task crashed'
        assert recorder.metadata['brands']['bad']['status'] == 'failed'

    @pytest.mark.asyncio
    async def test_run_file_write_failure_does_not_abort_batch(
        self, router, make_fetcher, tracker, store, tmp_path, monkeypatch
    ):
        router.add('GET', PAGE, text=LOCALLY_PAGE)
        router.add('GET', cfg.LOCALLY_STORES_URL, json=locally_stores(3))
        recorder = RunRecorder(str(tmp_path), run_id='run_test')

        def disk_full(data, path):
            raise OSError('disk full')

        monkeypatch.setattr(run_tracker, 'atomic_write_json', disk_full)
        brands = [brand('good'), BrandConfig.from_config('missing', {})]
        async with make_fetcher(router) as fetcher:
            outcomes = await collect_all(fetcher, tracker, brands, concurrency=2, recorder=recorder)

        assert [o.status for o in outcomes.values()] == ['succeeded', 'no_locator']
        assert outcomes['good'].active == 3
        assert len(store.active_keys('good')) == 3

    @pytest.mark.asyncio
    async def test_crashed_task_survives_run_file_write_failure(self, tracker, monkeypatch, tmp_path):
        async def crashing_collect(fetcher, tracker, brand, now=None):
            raise RuntimeError('task crashed')

        recorder = RunRecorder(str(tmp_path), run_id='run_test')

        def disk_full(data, path):
            raise OSError('disk full')

        monkeypatch.setattr(collector, 'collect_brand', crashing_collect)
        monkeypatch.setattr(run_tracker, 'atomic_write_json', disk_full)
        brands = [BrandConfig.from_config('a', {}), BrandConfig.from_config('b', {})]
        outcomes = await collect_all(None, tracker, brands, concurrency=2, recorder=recorder)

        assert [o.status for o in outcomes.values()] == ['failed', 'failed']
