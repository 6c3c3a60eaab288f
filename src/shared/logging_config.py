"""Logging configuration and setup.

This module provides idempotent logging configuration with file rotation
and console output. Brand tasks run concurrently inside one event loop, and
the CLI may call setup twice (once early, once after parsing --log-file), so
handler registration is guarded by a lock.
"""

import logging
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path

from src.shared.constants import LOGGING

__all__ = [
    'DEFAULT_LOG_FILE',
    'setup_logging',
]

DEFAULT_LOG_FILE = "logs/locator.log"

_logging_lock = threading.Lock()


def setup_logging(
    log_file: str = DEFAULT_LOG_FILE,
    level: int = logging.INFO,
    max_bytes: int = LOGGING.MAX_BYTES,
    backup_count: int = LOGGING.BACKUP_COUNT,
) -> None:
    """Setup logging configuration with rotation.

    Calling this more than once never adds duplicate handlers. A file
    handler whose rotation settings differ from the requested ones is
    replaced. The root level is always updated so ``--verbose`` takes
    effect on a second call. Per-request httpx logging is only
    shown at DEBUG.

    Args:
        log_file: Path to log file
        level: Root logger level
        max_bytes: Maximum file size before rotation (default: 10MB)
        backup_count: Number of backup files to keep (default: 5)
    """
    with _logging_lock:
        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        # httpx logs every request at INFO; keep that for --verbose only
        logging.getLogger("httpx").setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)
        log_path = Path(log_file)

        has_file_handler = False
        for handler in root_logger.handlers[:]:
            if isinstance(handler, RotatingFileHandler) and handler.baseFilename == str(log_path.absolute()):
                if handler.maxBytes == max_bytes and handler.backupCount == backup_count:
                    has_file_handler = True
                    break
                root_logger.removeHandler(handler)
                handler.close()

        # FileHandler is the base of every file-based handler
        has_console_handler = any(
            isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
            for h in root_logger.handlers
        )

        if has_file_handler and has_console_handler:
            return

        log_path.parent.mkdir(parents=True, exist_ok=True)
        formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

        if not has_file_handler:
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        if not has_console_handler:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)
