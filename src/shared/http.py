"""HTTP utilities for store locator scraping.

This module provides the Fetcher, the single egress point for every
extraction strategy. One Fetcher (and therefore one httpx connection pool)
is created per run and shared by all concurrent brand tasks.
"""

import logging
import random
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple
from urllib.parse import urlencode, urlparse

import httpx

from src.shared import delays
from src.shared.constants import HTTP
from src.shared.errors import ExtractError, FetchError

__all__ = [
    'DEFAULT_USER_AGENTS',
    'Fetcher',
    'get_headers',
    'log_safe',
]


def _sanitize_url(url: str) -> str:
    """Redact query parameters from URL for safe logging.

    Provider tokens and nonces travel in query strings, so the sanitized URL
    retains scheme, host, and path but replaces query parameters with
    [REDACTED].

    Args:
        url: URL to sanitize

    Returns:
        Sanitized URL with query parameters redacted
    """
    try:
        parsed = urlparse(url)
        safe_url = f"{parsed.scheme}://{parsed.netloc}{parsed.path}"
        if parsed.query:
            safe_url += "?[REDACTED]"
        return safe_url
    except ValueError:
        return "[INVALID_URL]"


def log_safe(message: str, *args, level: int = logging.INFO, **kwargs) -> None:
    """Log a message that has been pre-sanitized for sensitive data.

    Args:
        message: Pre-sanitized log message
        *args: Additional arguments for logging
        level: Logging level (default: INFO)
        **kwargs: Additional keyword arguments for logging
    """
    safe_message = str(message)
    logging.log(level, safe_message, *args, **kwargs)


# Default user agents for rotation
DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36 Edg/123.0.0.0",
]


def get_headers(user_agent: str = None, referer: str = None) -> Dict[str, str]:
    """Get headers dict with user agent rotation.

    Args:
        user_agent: User agent string (random if not provided)
        referer: Optional Referer header value

    Returns:
        Dictionary of HTTP headers
    """
    if user_agent is None:
        user_agent = random.choice(DEFAULT_USER_AGENTS)

    headers = {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }
    if referer:
        headers["Referer"] = referer
    return headers


class Fetcher:
    """Shared async HTTP client with UA rotation, timeouts and bounded retry.

    Status handling mirrors the scraper's long-standing retry policy:
    429 and 403 back off exponentially (honouring Retry-After), 408 and 5xx
    back off and retry, any other 4xx fails immediately. After
    ``max_retries`` attempts a FetchError is raised; callers decide whether
    that aborts the brand or falls through to the next strategy.

    Example:
        async with Fetcher(timeout=20) as fetcher:
            html = await fetcher.fetch("https://brand.example/where-to-buy")
    """

    def __init__(
        self,
        timeout: float = HTTP.TIMEOUT,
        max_retries: int = HTTP.MAX_RETRIES,
        user_agents: Optional[Sequence[str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.user_agents = list(user_agents or DEFAULT_USER_AGENTS)
        self._client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
            limits=httpx.Limits(max_connections=HTTP.MAX_CONNECTIONS),
        )

    async def __aenter__(self) -> 'Fetcher':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, referer: Optional[str], extra: Optional[Dict[str, str]]) -> Dict[str, str]:
        headers = get_headers(random.choice(self.user_agents), referer)
        if extra:
            headers.update(extra)
        return headers

    async def send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        content: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        referer: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """Issue exactly one request and return the response whatever its status.

        Providers with their own retry contract (VTInfo) build on this.

        Raises:
            FetchError: with kind 'network' when no response was received
        """
        try:
            return await self._client.request(
                method,
                url,
                params=params,
                json=json,
                content=content,
                headers=self._headers(referer, headers),
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TransportError as e:
            raise FetchError(_sanitize_url(url), FetchError.NETWORK, type(e).__name__) from e

    async def request(
        self,
        method: str,
        url: str,
        *,
        max_retries: Optional[int] = None,
        **kwargs,
    ) -> httpx.Response:
        """Issue a request and return the first 2xx response.

        Keyword arguments are passed through to ``send``.

        Raises:
            FetchError: on network failure or a non-2xx final status
        """
        safe_url = _sanitize_url(url)
        attempts = max_retries if max_retries is not None else self.max_retries
        last_error: Optional[FetchError] = None

        for attempt in range(attempts):
            try:
                response = await self.send(method, url, **kwargs)
            except FetchError as e:
                last_error = e
                wait_time = delays.retry_backoff_delay(attempt)
                log_safe(
                    f"Request error for {safe_url}: {e}. "
                    f"Waiting {wait_time}s (attempt {attempt + 1}/{attempts})...",
                    level=logging.WARNING
                )
                if attempt + 1 < attempts:
                    await delays.pause(wait_time)
                continue

            status = response.status_code
            if 200 <= status < 300:
                log_safe(f"Successfully fetched {safe_url}", level=logging.DEBUG)
                return response

            last_error = FetchError(safe_url, FetchError.STATUS, status_code=status)

            if status in (429, 403):
                wait_time = delays.retry_after_delay(response.headers)
                if wait_time is None:
                    wait_time = delays.retry_backoff_delay(attempt)
                log_safe(
                    f"{'Rate limited' if status == 429 else 'Blocked'} ({status}) for {safe_url}. "
                    f"Waiting {wait_time}s (attempt {attempt + 1}/{attempts})...",
                    level=logging.WARNING
                )
            elif status >= 500 or status == 408:
                wait_time = delays.retry_backoff_delay(attempt)
                log_safe(
                    f"Retryable status ({status}) for {safe_url}. "
                    f"Waiting {wait_time}s (attempt {attempt + 1}/{attempts})...",
                    level=logging.WARNING
                )
            else:
                # 404, 401, 410, etc. won't succeed on retry
                log_safe(f"Client error ({status}) for {safe_url}. Failing immediately.", level=logging.DEBUG)
                raise last_error

            if attempt + 1 < attempts:
                await delays.pause(wait_time)

        log_safe(
            f"Failed to fetch {safe_url} after {attempts} attempts ({last_error})",
            level=logging.WARNING
        )
        raise last_error

    async def fetch(self, url: str, **kwargs) -> str:
        """GET a page and return its body text.

        Raises:
            FetchError: on failure, or with kind 'empty_body' for a blank body
        """
        response = await self.request('GET', url, **kwargs)
        text = response.text
        if not text.strip():
            raise FetchError(_sanitize_url(url), FetchError.EMPTY_BODY)
        return text

    async def fetch_json(self, url: str, **kwargs) -> Any:
        """GET a URL and decode its body as JSON."""
        response = await self.request('GET', url, **kwargs)
        return _decode_json(response, url)

    async def post_json(self, url: str, payload: Any, **kwargs) -> Any:
        """POST a JSON payload and decode the JSON response."""
        response = await self.request('POST', url, json=payload, **kwargs)
        return _decode_json(response, url)

    async def post_form(self, url: str, form: Iterable[Tuple[str, str]], **kwargs) -> str:
        """POST an urlencoded form and return the body text.

        ``form`` is a sequence of pairs so repeated field names and field
        order are preserved exactly.
        """
        headers = dict(kwargs.pop('headers', None) or {})
        headers['Content-Type'] = 'application/x-www-form-urlencoded; charset=UTF-8'
        response = await self.request('POST', url, content=urlencode(list(form)), headers=headers, **kwargs)
        return response.text

    async def head_ok(self, url: str, timeout: float = HTTP.PROBE_TIMEOUT) -> bool:
        """Return True when a single HEAD request answers with 2xx."""
        try:
            await self.request('HEAD', url, timeout=timeout, max_retries=1)
        except FetchError:
            return False
        return True


def _decode_json(response: httpx.Response, url: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise ExtractError('http', f"invalid JSON from {_sanitize_url(url)}: {e}") from e

