"""Text-scanning helpers shared by the locator extractors.

Locator widgets leave their configuration scattered across inline scripts,
data attributes and linked JS bundles. These helpers cover the recurring
work: first-match regex capture, balanced JSON slicing out of JavaScript,
entity decoding and discovering which linked scripts are worth probing.
"""

import json
import logging
import re
from typing import Any, Iterable, List, Optional, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup

__all__ = [
    'decode_html_entities',
    'extract_assignment_object',
    'extract_balanced_array',
    'first_match',
    'linked_script_urls',
    'loads_lenient',
    'script_urls_in_text',
]

_ABSOLUTE_JS_RE = re.compile(r"""https?://[^\s"'<>]+\.js(?:\?[^\s"'<>]*)?""")

_ENTITIES = (
    ('&quot;', '"'),
    ('&#34;', '"'),
    ('&#39;', "'"),
    ('&amp;', '&'),
)


def first_match(text: str, patterns: Iterable[str], flags: int = 0) -> Optional[str]:
    """Return the first non-blank capture group 1 across ``patterns``, in order.

    Example:
        >>> first_match('id=42', [r'key=(\\w+)', r'id=(\\d+)'])
        '42'
    """
    for pattern in patterns:
        match = re.search(pattern, text, flags)
        if match:
            value = match.group(1).strip()
            if value:
                return value
    return None


def decode_html_entities(text: str) -> str:
    """Decode the handful of entities found inside HTML attribute payloads.

    ``&amp;`` is decoded last so ``&amp;quot;`` yields ``&quot;`` rather than
    a bare quote.
    """
    for entity, replacement in _ENTITIES:
        text = text.replace(entity, replacement)
    return text


def extract_balanced_array(text: str) -> Optional[str]:
    """Slice a complete JSON array off the start of ``text``.

    Tracks nesting depth while respecting string literals and escapes. Only
    a closing ``]`` that brings the depth back to zero ends the scan, so a
    mismatched closer such as ``[42}`` is never accepted.

    Returns:
        The array text including both brackets, or None when ``text`` does
        not start with ``[`` or the array is unterminated
    """
    if not text.startswith('['):
        return None
    depth = 0
    in_string = False
    escaped = False
    for idx, char in enumerate(text):
        if escaped:
            escaped = False
            continue
        if in_string:
            if char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in '[{':
            depth += 1
        elif char == '}':
            depth -= 1
        elif char == ']':
            depth -= 1
            if depth == 0:
                return text[:idx + 1]
    return None


def extract_assignment_object(js: str, variable: str) -> Optional[str]:
    """Return the ``{...}`` literal assigned to ``variable`` in a JS bundle.

    Example:
        >>> extract_assignment_object('SCASLWtb={"a":{"b":1}};x=2;', 'SCASLWtb')
        '{"a":{"b":1}}'
    """
    needle = f"{variable}="
    start = js.find(needle)
    if start < 0:
        return None
    open_idx = js.find('{', start + len(needle))
    if open_idx < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for idx in range(open_idx, len(js)):
        char = js[idx]
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return js[open_idx:idx + 1]
    return None


def loads_lenient(text: str) -> Optional[Any]:
    """Parse JSON, returning None instead of raising on malformed input."""
    try:
        return json.loads(text)
    except (TypeError, ValueError) as e:
        logging.debug(f"Ignoring malformed JSON payload: {e}")
        return None


def linked_script_urls(html: str, base_url: str, markers: Sequence[str]) -> List[str]:
    """Resolve ``<script src>`` and ``<link href>`` JS URLs worth probing.

    Relative URLs are resolved against ``base_url``. Only URLs containing
    one of ``markers`` (case-insensitive) are kept; document order is
    preserved and duplicates are dropped.
    """
    urls: List[str] = []
    seen = set()
    soup = BeautifulSoup(html, 'html.parser')
    for tag in soup.find_all(['script', 'link']):
        source = (tag.get('src' if tag.name == 'script' else 'href') or '').strip()
        if '.js' not in source:
            continue
        url = urljoin(base_url, source)
        lowered = url.lower()
        if url not in seen and any(marker in lowered for marker in markers):
            seen.add(url)
            urls.append(url)
    return urls


def script_urls_in_text(text: str, markers: Sequence[str]) -> List[str]:
    """Absolute ``.js`` URLs anywhere in ``text`` containing a marker, sorted."""
    found = set()
    for match in _ABSOLUTE_JS_RE.finditer(text):
        url = match.group(0)
        lowered = url.lower()
        if any(marker in lowered for marker in markers):
            found.add(url)
    return sorted(found)
