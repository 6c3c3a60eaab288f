"""Pytest configuration and fixtures for locator tests"""

import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx
import pytest

from src.shared import delays
from src.shared.http import Fetcher
from src.locator.extractors import vtinfo
from src.locator.types import RawLocation


ResponseSpec = Union[Dict[str, Any], Callable[[httpx.Request], httpx.Response]]


class MockRouter:
    """httpx.MockTransport handler keyed by (method, URL without query).

    Each route holds a queue of response specs; the last spec repeats once
    the queue is drained. A spec is either a dict of ``httpx.Response``
    keyword arguments (plus ``status``) or a callable taking the request.
    Unrouted requests get a 404.

    Example:
        router = MockRouter()
        router.add('GET', 'https://api.example.com/stores', json={'stores': []})
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[ResponseSpec]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, url: str, status: int = 200, **kwargs) -> 'MockRouter':
        self.routes.setdefault((method.upper(), url), []).append(dict(kwargs, status=status))
        return self

    def add_handler(self, method: str, url: str, handler: Callable[[httpx.Request], httpx.Response]) -> 'MockRouter':
        self.routes.setdefault((method.upper(), url), []).append(handler)
        return self

    def requests_to(self, url: str, method: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if _route_url(r) == url and (method is None or r.method == method.upper())
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, _route_url(request)))
        if not queue:
            return httpx.Response(404, text='not found')
        spec = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(spec):
            return spec(request)
        spec = dict(spec)
        return httpx.Response(spec.pop('status'), **spec)


def _route_url(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    """Replace every pacing/backoff wait with an instant no-op.

    Yields the list of requested wait durations in seconds.
    """
    waits: List[float] = []

    async def fake_sleep(seconds):
        waits.append(seconds)

    monkeypatch.setattr(delays, '_sleep', fake_sleep)
    yield waits


@pytest.fixture(autouse=True)
def reset_vtinfo_gate():
    """Each test gets a fresh VTInfo gate bound to its own event loop."""
    vtinfo.REQUEST_GATE._lock = None
    vtinfo.REQUEST_GATE._last = None
    yield


@pytest.fixture
def router():
    return MockRouter()


@pytest.fixture
def make_fetcher():
    """Factory for Fetchers backed by a MockRouter (or any handler).

    Usage:
        async with make_fetcher(router) as fetcher:
            html = await fetcher.fetch(url)
    """
    def _create(handler, max_retries: int = 3, timeout: float = 5.0) -> Fetcher:
        return Fetcher(timeout=timeout, max_retries=max_retries, transport=httpx.MockTransport(handler))

    return _create


@pytest.fixture
def make_location():
    """Factory for RawLocation records with sensible defaults"""
    def _create(name: str = 'Main Street Market', **kwargs) -> RawLocation:
        values = {
            'locator_source': 'locally',
            'address_line1': '100 Main St',
            'city': 'Columbia',
            'state': 'SC',
            'zip': '29201',
            'country': 'US',
        }
        values.update(kwargs)
        return RawLocation(name=name, **values)

    return _create
