"""JSON file I/O with atomic writes.

Every persisted artifact (per-brand location sets, run records, discovery
output) goes through ``atomic_write_json`` so an interrupted process never
leaves a truncated file behind.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

__all__ = [
    'atomic_write_json',
    'load_json',
]


def atomic_write_json(data: Any, filepath: Union[str, Path]) -> None:
    """Write data as JSON using an atomic write (temp file + rename).

    The temporary file is created in the target directory so the final
    ``os.replace`` never crosses a filesystem boundary.

    Args:
        data: JSON-serializable data
        filepath: Destination path

    Raises:
        OSError: If filesystem operations fail
        TypeError: If data is not JSON serializable
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path = tempfile.mkstemp(
        suffix='.tmp',
        dir=path.parent,
        prefix=path.name + '.'
    )
    try:
        with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        os.replace(temp_path, str(path))
    except BaseException:
        Path(temp_path).unlink(missing_ok=True)
        raise
    logging.debug(f"Wrote {path}")


def load_json(filepath: Union[str, Path], strict: bool = False) -> Optional[Any]:
    """Load JSON from a file.

    Args:
        filepath: Path to read
        strict: Re-raise decode errors instead of returning None

    Returns:
        Parsed data, or None if the file doesn't exist or is invalid
    """
    path = Path(filepath)
    if not path.exists():
        return None

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        if strict:
            raise
        logging.warning(f"Failed to load {path}: {e}")
        return None
