"""Bounded in-memory progress tracker for website downloads.

Entries live in insertion/update order. The least recently updated entry is
evicted once `max_entries` is exceeded, and entries not touched for
`ttl_seconds` read as absent. Only the event loop thread mutates the map.
"""

import time
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Optional, Tuple

from app.jobs.models import DownloadProgress, JobStatus


class ProgressTracker:

    def __init__(
        self,
        max_entries: int = 1000,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._entries: "OrderedDict[str, Tuple[float, DownloadProgress]]" = OrderedDict()
        self._max_entries = max_entries
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, job_id: str) -> Optional[DownloadProgress]:
        entry = self._entries.get(job_id)
        if entry is None:
            return None
        stamp, progress = entry
        if self._clock() - stamp > self._ttl_seconds:
            del self._entries[job_id]
            return None
        return progress

    def set(self, job_id: str, progress: DownloadProgress) -> None:
        self._entries[job_id] = (self._clock(), progress)
        self._entries.move_to_end(job_id)
        self._evict()

    def update(self, job_id: str, **fields) -> DownloadProgress:
        """Merge fields into the entry for job_id, creating it if needed."""
        current = self.get(job_id) or DownloadProgress()
        fields["updated_at"] = datetime.utcnow()
        progress = current.model_copy(update=fields)
        self.set(job_id, progress)
        return progress

    def discard(self, job_id: str) -> None:
        self._entries.pop(job_id, None)

    def status_of(self, job_id: str) -> Optional[JobStatus]:
        progress = self.get(job_id)
        return progress.status if progress else None

    def _evict(self) -> None:
        now = self._clock()
        while self._entries:
            oldest_id, (stamp, _) = next(iter(self._entries.items()))
            if len(self._entries) > self._max_entries or now - stamp > self._ttl_seconds:
                del self._entries[oldest_id]
            else:
                break
