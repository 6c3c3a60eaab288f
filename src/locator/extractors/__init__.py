"""Format extractor registry.

Every StrategyKind maps to exactly one extractor module exposing:

- ``KIND``: the StrategyKind it serves
- ``detect(html) -> Optional[ident]``: pure identifier extraction
- ``async retrieve(fetcher, ident, ctx) -> List[RawLocation]``
- optionally ``async discover(fetcher, html, ctx) -> Optional[ident]``,
  tried when ``detect`` finds nothing in the page itself

The registry is checked for completeness at import time, so adding a
StrategyKind without an extractor fails immediately rather than at scrape
time.
"""

import importlib
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from src.locator.types import CASCADE_ORDER, StrategyKind

# Registry of available extractors
EXTRACTOR_REGISTRY: Dict[StrategyKind, str] = {
    StrategyKind.LOCALLY: 'src.locator.extractors.locally',
    StrategyKind.STOREMAPPER: 'src.locator.extractors.storemapper',
    StrategyKind.STOCKIST: 'src.locator.extractors.stockist',
    StrategyKind.STOREPOINT: 'src.locator.extractors.storepoint',
    StrategyKind.ROSEPERL: 'src.locator.extractors.roseperl',
    StrategyKind.VTINFO: 'src.locator.extractors.vtinfo',
    StrategyKind.ASKHOODIE: 'src.locator.extractors.askhoodie',
    StrategyKind.BEVERAGEFINDER: 'src.locator.extractors.beveragefinder',
    StrategyKind.DESTINI: 'src.locator.extractors.destini',
    StrategyKind.STOREROCKET: 'src.locator.extractors.storerocket',
    StrategyKind.AGILE_STORE_LOCATOR: 'src.locator.extractors.agile_store_locator',
    StrategyKind.JSONLD: 'src.locator.extractors.jsonld',
    StrategyKind.JSON_EMBED: 'src.locator.extractors.json_embed',
}


@dataclass(frozen=True)
class Extractor:
    kind: StrategyKind
    detect: Callable[[str], Optional[Any]]
    retrieve: Callable[..., Awaitable[List[Any]]]
    discover: Optional[Callable[..., Awaitable[Optional[Any]]]] = None


def _load(kind: StrategyKind) -> Extractor:
    module = importlib.import_module(EXTRACTOR_REGISTRY[kind])
    if module.KIND is not kind:
        raise RuntimeError(f"{module.__name__} declares {module.KIND}, registered as {kind}")
    return Extractor(
        kind=kind,
        detect=module.detect,
        retrieve=module.retrieve,
        discover=getattr(module, 'discover', None),
    )


_missing = [kind.value for kind in CASCADE_ORDER if kind not in EXTRACTOR_REGISTRY]
if _missing:
    raise RuntimeError(f"No extractor registered for: {', '.join(_missing)}")

EXTRACTORS: Dict[StrategyKind, Extractor] = {kind: _load(kind) for kind in CASCADE_ORDER}


def get_extractor(kind) -> Extractor:
    """Return the extractor for a StrategyKind or its string value."""
    try:
        return EXTRACTORS[StrategyKind(kind)]
    except ValueError:
        raise ValueError(f"Unknown strategy: {kind}. Available: {[k.value for k in CASCADE_ORDER]}") from None


__all__ = ['EXTRACTORS', 'EXTRACTOR_REGISTRY', 'Extractor', 'get_extractor']
