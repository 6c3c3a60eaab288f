"""Store locator detection and extraction."""

from src.locator.cascade import run_cascade
from src.locator.types import (
    CASCADE_ORDER,
    CascadeResult,
    ExtractContext,
    RawLocation,
    StrategyKind,
    SWEEP_STRATEGIES,
)

__all__ = [
    'CASCADE_ORDER',
    'CascadeResult',
    'ExtractContext',
    'RawLocation',
    'StrategyKind',
    'SWEEP_STRATEGIES',
    'run_cascade',
]
