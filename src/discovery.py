"""
Offline locator discovery from a browser HAR capture.

Onboarding an unrecognised locator widget starts in a browser: load the
brand's locator page with devtools open, export the network log as a HAR
file, then run ``python run.py --discover capture.har``. Every XHR/fetch
call whose JSON response looks like a list of geocoded places is written
out as a CapturedCall record for an engineer to turn into a new extractor.
"""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from src.shared.constants import DISCOVERY
from src.shared.io import atomic_write_json

__all__ = [
    'CapturedCall',
    'calls_from_har',
    'load_har',
    'looks_like_location_data',
    'write_discovery_output',
]

_RESOURCE_TYPES = ('xhr', 'fetch')
_ARRAY_KEYS = ('results', 'locations', 'stores', 'data')


@dataclass
class CapturedCall:
    url: str
    method: str
    post_data: Optional[str]
    sample_response: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'method': self.method,
            'postData': self.post_data,
            'sampleResponse': self.sample_response,
        }


def _location_array(data: Any) -> Any:
    if isinstance(data, list):
        return data
    if not isinstance(data, dict):
        return None
    # First key present wins, even if its value is not a list
    for key in _ARRAY_KEYS:
        if data.get(key) is not None:
            return data[key]
    return None


def looks_like_location_data(data: Any) -> bool:
    """True when ``data`` is (or wraps) a non-empty list of geocoded objects.

    Example:
        >>> looks_like_location_data({'stores': [{'name': 'A', 'Latitude': 1}]})
        True
        >>> looks_like_location_data({'products': [{'sku': 1}]})
        False
    """
    items = _location_array(data)
    if not isinstance(items, list) or not items or not isinstance(items[0], dict):
        return False
    keys = [str(key).lower() for key in items[0]]
    return any(hint in key for key in keys for hint in DISCOVERY.LOCATION_KEY_HINTS)


def _trim_sample(data: Any) -> Any:
    """Shorten the location array so samples stay readable."""
    limit = DISCOVERY.SAMPLE_MAX_ITEMS
    if isinstance(data, list):
        return data[:limit]
    trimmed = dict(data)
    for key in _ARRAY_KEYS:
        if isinstance(trimmed.get(key), list):
            trimmed[key] = trimmed[key][:limit]
            break
    return trimmed


def _response_text(content: Dict[str, Any]) -> Optional[str]:
    text = content.get('text')
    if not isinstance(text, str):
        return None
    if content.get('encoding') == 'base64':
        try:
            return base64.b64decode(text).decode('utf-8')
        except (binascii.Error, UnicodeDecodeError):
            return None
    return text


def _is_script_request(entry: Dict[str, Any]) -> bool:
    resource_type = entry.get('_resourceType')
    if resource_type is not None:
        return resource_type in _RESOURCE_TYPES
    # HAR exports without Chrome's resource type; fall back to the MIME type
    content = (entry.get('response') or {}).get('content') or {}
    mime_type = (content.get('mimeType') or '').lower()
    return 'json' in mime_type


def calls_from_har(har: Dict[str, Any]) -> List[CapturedCall]:
    """Location-like XHR/fetch calls from a parsed HAR document, in capture order."""
    calls = []
    for entry in (har.get('log') or {}).get('entries') or []:
        if not isinstance(entry, dict) or not _is_script_request(entry):
            continue
        request = entry.get('request') or {}
        text = _response_text((entry.get('response') or {}).get('content') or {})
        if not text:
            continue
        try:
            body = json.loads(text)
        except ValueError:
            continue
        if not looks_like_location_data(body):
            continue
        post_data = (request.get('postData') or {}).get('text')
        calls.append(CapturedCall(
            url=request.get('url', ''),
            method=request.get('method', 'GET'),
            post_data=post_data,
            sample_response=_trim_sample(body),
        ))
    return calls


def load_har(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a HAR file.

    Raises:
        OSError: if the file cannot be read
        ValueError: if it is not a HAR JSON document
    """
    with open(path, 'r', encoding='utf-8') as f:
        har = json.load(f)
    if not isinstance(har, dict) or 'log' not in har:
        raise ValueError(f"{path} is not a HAR document (missing 'log')")
    return har


def write_discovery_output(calls: List[CapturedCall], output_path: Union[str, Path]) -> None:
    atomic_write_json([call.to_dict() for call in calls], output_path)
    logging.info(f"Wrote {len(calls)} captured calls to {output_path}")
