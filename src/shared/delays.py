"""Delay and pacing utilities for rate limiting.

This module provides the waits used between requests so that provider APIs
never see bursts from a single brand: fixed pauses, deterministic
per-brand sweep pacing, bounded retry backoff and a cross-brand request gate.

All waits go through ``pause`` (or ``_sleep`` underneath it) so tests can
replace the sleep with a no-op.
"""

import asyncio
import logging
import time
from typing import Mapping, Optional

from src.shared.constants import HTTP, SWEEP

__all__ = [
    'RequestGate',
    'pacing_delay',
    'paced_sleep',
    'pause',
    'retry_after_delay',
    'retry_backoff_delay',
]

_sleep = asyncio.sleep

# FNV-1a 64-bit offset basis and prime
_FNV_OFFSET = 14695981039346656037
_FNV_PRIME = 1099511628211
_U64_MASK = (1 << 64) - 1


async def pause(seconds: float) -> None:
    """Wait ``seconds`` before the next request; non-positive waits are skipped."""
    if seconds > 0:
        await _sleep(seconds)
        logging.debug(f"Delayed {seconds:.2f} seconds")


def _stable_hash(seed: str, request_index: int) -> int:
    value = _FNV_OFFSET
    for byte in seed.encode('utf-8'):
        value ^= byte
        value = (value * _FNV_PRIME) & _U64_MASK
    return value ^ ((request_index * _FNV_PRIME) & _U64_MASK)


def pacing_delay(seed: str, request_index: int) -> float:
    """Deterministic pre-request delay for one point of a sweep.

    The spread is derived from a stable hash of the brand's provider
    identifier, so two brands sharing a provider do not fire in lockstep,
    yet a given brand always paces identically across runs.

    Args:
        seed: Provider-side identifier of the brand (customer id, client id)
        request_index: Position of the request within the sweep

    Returns:
        Delay in seconds, within [base, base + spread)
    """
    spread = 0
    if SWEEP.PACING_SPREAD_MS:
        spread = _stable_hash(seed, request_index) % SWEEP.PACING_SPREAD_MS
    return (SWEEP.PACING_BASE_MS + spread) / 1000.0


async def paced_sleep(seed: str, request_index: int) -> None:
    """Sleep for the sweep pacing delay of one request."""
    await pause(pacing_delay(seed, request_index))


def retry_backoff_delay(attempt: int) -> float:
    """Exponential backoff in seconds for a zero-based attempt number.

    Examples:
        >>> retry_backoff_delay(0)
        0.5
        >>> retry_backoff_delay(10)
        6.0
    """
    growth = 1 << min(attempt, 6)
    delay_ms = min(HTTP.RETRY_BACKOFF_BASE_MS * growth, HTTP.RETRY_BACKOFF_MAX_MS)
    return delay_ms / 1000.0


def retry_after_delay(headers: Mapping[str, str]) -> Optional[float]:
    """Parse a Retry-After header given in whole seconds, capped.

    HTTP-date values are ignored; callers fall back to their own backoff.
    """
    raw = headers.get('retry-after') or headers.get('Retry-After')
    if raw is None:
        return None
    raw = raw.strip()
    if not raw.isdigit():
        return None
    return float(min(int(raw), HTTP.RETRY_AFTER_MAX_SECONDS))


class RequestGate:
    """Enforces a minimum gap between requests sharing one upstream.

    A single gate instance is shared by every brand task in the process,
    so concurrent brands using the same provider are serialized to at most
    one request per ``min_gap`` seconds.
    """

    def __init__(self, min_gap_seconds: float):
        self.min_gap = min_gap_seconds
        self._lock: Optional[asyncio.Lock] = None
        self._last: Optional[float] = None

    async def wait(self) -> None:
        # Lock is created lazily so it binds to the running event loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self._last is not None:
                elapsed = time.monotonic() - self._last
                if elapsed < self.min_gap:
                    await _sleep(self.min_gap - elapsed)
            self._last = time.monotonic()
