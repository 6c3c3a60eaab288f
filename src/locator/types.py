"""Domain types for store locator extraction."""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from src.shared.store_schema import CANONICAL_FIELDS, clean_text

__all__ = [
    'CASCADE_ORDER',
    'CascadeResult',
    'ExtractContext',
    'RawLocation',
    'StrategyKind',
    'SWEEP_STRATEGIES',
]


class StrategyKind(str, Enum):
    """Locator formats, declared in cascade priority order.

    Dedicated provider APIs come first; the static-parse fallbacks
    (``jsonld`` then ``json_embed``) come last so a page carrying both a
    widget and incidental structured data resolves to the widget.
    """

    LOCALLY = 'locally'
    STOREMAPPER = 'storemapper'
    STOCKIST = 'stockist'
    STOREPOINT = 'storepoint'
    ROSEPERL = 'roseperl'
    VTINFO = 'vtinfo'
    ASKHOODIE = 'askhoodie'
    BEVERAGEFINDER = 'beveragefinder'
    DESTINI = 'destini'
    STOREROCKET = 'storerocket'
    AGILE_STORE_LOCATOR = 'agile_store_locator'
    JSONLD = 'jsonld'
    JSON_EMBED = 'json_embed'

    def __str__(self) -> str:
        return self.value


CASCADE_ORDER: Tuple[StrategyKind, ...] = tuple(StrategyKind)

# Strategies that query one provider from several search origins and can
# therefore observe the same physical store more than once
SWEEP_STRATEGIES: FrozenSet[StrategyKind] = frozenset({
    StrategyKind.VTINFO,
    StrategyKind.ASKHOODIE,
    StrategyKind.DESTINI,
})

_TEXT_FIELDS = tuple(name for name, kind in CANONICAL_FIELDS.items() if kind is str)


@dataclass
class RawLocation:
    """One store observation produced by an extractor.

    Text fields are trimmed on construction and blank strings become None.
    ``locator_source`` is the StrategyKind value of the producing extractor.
    """

    name: str
    locator_source: str
    address_line1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    phone: Optional[str] = None
    external_id: Optional[str] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for name in _TEXT_FIELDS:
            setattr(self, name, clean_text(getattr(self, name)))
        if self.name is None:
            self.name = ''
        if isinstance(self.locator_source, StrategyKind):
            self.locator_source = self.locator_source.value

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RawLocation':
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class ExtractContext:
    """Per-brand context handed to every extractor.

    Attributes:
        locator_url: The brand's locator page, used as Referer and as the
            base for resolving relative script URLs
        brand: Brand slug, used only as a log prefix
    """

    locator_url: str
    brand: str = ''


@dataclass
class CascadeResult:
    """Outcome of running the strategy cascade over one locator page.

    An empty result (``kind`` is None) means no strategy produced
    locations. ``errors`` lists the extractors that detected their signal
    but failed while retrieving.
    """

    kind: Optional[StrategyKind] = None
    locations: List[RawLocation] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.kind is not None and bool(self.locations)
