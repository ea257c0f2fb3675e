"""Per-job scratch directories for downloaded payloads, with TTL cleanup."""

import os
import shutil
import tempfile
import time
from typing import Optional


class ScratchArea:
    """Manages temporary job directories under one base directory."""

    def __init__(self, base_dir: Optional[str] = None, ttl_hours: int = 2):
        if base_dir:
            self._base_dir = base_dir
        else:
            self._base_dir = os.path.join(tempfile.gettempdir(), "inklab_downloads")
        os.makedirs(self._base_dir, exist_ok=True)
        self._ttl_seconds = ttl_hours * 3600

    @property
    def base_dir(self) -> str:
        return self._base_dir

    def create(self, job_id: str) -> str:
        """Create a fresh directory for a job. Returns its path."""
        return tempfile.mkdtemp(prefix=f"{job_id}-", dir=self._base_dir)

    def write(self, job_dir: str, filename: str, data: bytes) -> str:
        path = os.path.join(job_dir, os.path.basename(filename))
        with open(path, "wb") as dst:
            dst.write(data)
        return path

    def remove(self, job_dir: str) -> None:
        shutil.rmtree(job_dir, ignore_errors=True)

    def cleanup_expired(self) -> int:
        """Delete job directories a crashed fetch left behind. Returns how many."""
        if not os.path.isdir(self._base_dir):
            return 0
        cutoff = time.time() - self._ttl_seconds
        with os.scandir(self._base_dir) as entries:
            stale = [e.path for e in entries if e.is_dir() and e.stat().st_mtime < cutoff]
        for job_dir in stale:
            self.remove(job_dir)
        return len(stale)
