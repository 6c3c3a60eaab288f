"""Run metadata tracking for batch locator collection"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.shared.constants import RUNS
from src.shared.io import atomic_write_json, load_json

__all__ = [
    'RunRecorder',
    'get_latest_run',
    'get_run_history',
]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


class RunRecorder:
    """Record per-brand outcomes of one batch run.

    The run file is rewritten after every recorded brand so an interrupted
    run still leaves a record of the brands that finished.
    """

    def __init__(self, data_dir: str = 'data', run_id: Optional[str] = None):
        """Initialize run recorder

        Args:
            data_dir: Root data directory; runs go to ``<data_dir>/runs``
            run_id: Optional run ID, auto-generated from the timestamp if omitted
        """
        self.run_id = run_id or datetime.now(timezone.utc).strftime("run_%Y%m%d_%H%M%S_%f")
        self.run_dir = Path(data_dir) / 'runs'
        self.run_file = self.run_dir / f"{self.run_id}.json"
        self.metadata: Dict[str, Any] = {
            'run_id': self.run_id,
            'status': 'running',
            'started_at': _utc_now(),
            'completed_at': None,
            'stats': {'succeeded': 0, 'no_locator': 0, 'failed': 0},
            'brands': {},
        }
        self._save()

    def _save(self) -> None:
        atomic_write_json(self.metadata, self.run_file)

    def record(self, slug: str, outcome: Dict[str, Any]) -> None:
        """Store one brand's outcome row.

        Args:
            slug: Brand slug from the registry
            outcome: Serialized BrandOutcome (must carry a ``status`` key)
        """
        previous = self.metadata['brands'].get(slug)
        if previous is not None:
            self.metadata['stats'][previous['status']] -= 1
        self.metadata['brands'][slug] = outcome
        status = outcome['status']
        self.metadata['stats'][status] = self.metadata['stats'].get(status, 0) + 1
        self._save()

    def complete(self) -> None:
        """Mark the run finished."""
        self.metadata['status'] = 'complete'
        self.metadata['completed_at'] = _utc_now()
        self._save()
        stats = self.metadata['stats']
        logging.info(
            f"Run {self.run_id} complete: {stats['succeeded']} succeeded, "
            f"{stats['no_locator']} without locator, {stats['failed']} failed"
        )


def get_run_history(data_dir: str = 'data', limit: int = RUNS.HISTORY_LIMIT) -> List[Dict[str, Any]]:
    """Get historical runs, most recent first

    Args:
        data_dir: Root data directory
        limit: Maximum number of runs to return

    Returns:
        List of run metadata dictionaries
    """
    run_dir = Path(data_dir) / 'runs'
    if not run_dir.exists():
        return []

    # Run IDs embed a sortable UTC timestamp
    run_files = sorted(run_dir.glob("*.json"), key=lambda p: p.name, reverse=True)[:limit]

    runs = []
    for run_file in run_files:
        metadata = load_json(run_file)
        if metadata:
            runs.append(metadata)
    return runs


def get_latest_run(data_dir: str = 'data') -> Optional[Dict[str, Any]]:
    """Get the latest run record, or None if no runs exist"""
    history = get_run_history(data_dir, limit=1)
    return history[0] if history else None
