"""Trust gate applied to a cascade result before it may mutate stored data."""

from dataclasses import dataclass
from typing import FrozenSet, Sequence, Union

from src.shared.constants import TRUST
from src.shared.validation import has_minimum_shape, has_valid_state
from src.locator.types import RawLocation, StrategyKind

__all__ = [
    'HIGH_CONFIDENCE_STRATEGIES',
    'LOW_CONFIDENCE_STRATEGIES',
    'TrustDecision',
    'evaluate',
]

# Static-parse fallbacks with no provider guarantee that the data is a store list
LOW_CONFIDENCE_STRATEGIES: FrozenSet[StrategyKind] = frozenset({StrategyKind.JSON_EMBED})

HIGH_CONFIDENCE_STRATEGIES: FrozenSet[StrategyKind] = frozenset(StrategyKind) - LOW_CONFIDENCE_STRATEGIES


@dataclass(frozen=True)
class TrustDecision:
    """Verdict of the trust gate.

    Attributes:
        passed: Whether the result may be persisted
        reason: Machine-readable code
        detail: Human-readable explanation for logs and run records
    """

    passed: bool
    reason: str
    detail: str = ''

    TRUSTED = 'trusted_source'
    EMPTY = 'empty_result'
    BELOW_THRESHOLD = 'below_quality_threshold'
    UNKNOWN = 'unknown_source'


def _quality_ratio(locations: Sequence[RawLocation]) -> float:
    good = sum(1 for loc in locations if has_minimum_shape(loc) and has_valid_state(loc.state))
    return good / len(locations)


def evaluate(strategy: Union[StrategyKind, str, None], locations: Sequence[RawLocation]) -> TrustDecision:
    """Decide whether a brand's extracted location set is trustworthy.

    An empty set always fails. Strategies backed by a queryable provider API
    pass once non-empty. ``json_embed`` passes only with at least
    ``TRUST.EMBED_MIN_COUNT`` records of which at least
    ``TRUST.EMBED_MIN_QUALITY_RATIO`` have a usable shape and a valid
    state; this keeps unrelated inline JSON that happens to resemble a
    store list out of storage. Unknown strategies fail.
    """
    if not locations:
        return TrustDecision(False, TrustDecision.EMPTY, "scrape returned zero locations")

    try:
        kind = StrategyKind(strategy)
    except ValueError:
        return TrustDecision(False, TrustDecision.UNKNOWN, f"unknown locator source {strategy!r}")

    if kind in HIGH_CONFIDENCE_STRATEGIES:
        return TrustDecision(True, TrustDecision.TRUSTED, f"{kind.value} is a provider-backed source")

    count = len(locations)
    ratio = _quality_ratio(locations)
    if count >= TRUST.EMBED_MIN_COUNT and ratio >= TRUST.EMBED_MIN_QUALITY_RATIO:
        return TrustDecision(True, TrustDecision.TRUSTED, f"{kind.value} passed (count={count}, quality_ratio={ratio:.2f})")
    return TrustDecision(
        False,
        TrustDecision.BELOW_THRESHOLD,
        f"{kind.value} scrape below trust threshold (count={count}, quality_ratio={ratio:.2f})",
    )
