"""Download jobs: create, read, list, delete and cancel.

Creation inserts a pending row and hands the fetch to the bounded queue;
the response means "accepted", not "completed". Reads reconcile the row
with the progress tracker, which is the fresher source while a fetch runs.
"""

import asyncio
import logging
from typing import List

from app.db.supabase_client import run_query
from app.downloads.fetcher import WebsiteFetcher, set_download_status
from app.errors import NotFound, UpstreamDatabaseError, UpstreamStorageError
from app.jobs.dispatcher import TaskQueue
from app.jobs.models import DownloadJob, JobStatus
from app.jobs.progress import ProgressTracker
from app.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)


class DownloadService:

    def __init__(
        self,
        queue: TaskQueue,
        fetcher: WebsiteFetcher,
        tracker: ProgressTracker,
        blob_store: BlobStore,
    ):
        self._queue = queue
        self._fetcher = fetcher
        self._tracker = tracker
        self._blobs = blob_store

    async def create(self, url: str, user_id: str) -> DownloadJob:
        logger.info("Creating new download", extra={"url": url, "user_id": user_id})
        rows = await run_query(
            "create download",
            lambda db: db.table("downloads").insert(
                {"url": url, "user_id": user_id, "status": JobStatus.PENDING.value}
            ),
        )
        if not rows:
            raise UpstreamDatabaseError("Failed to create download: no row returned")
        job = DownloadJob.from_row(rows[0])
        logger.info("Download record created", extra={"job_id": job.id, "user_id": user_id})

        self._tracker.update(job.id, status=JobStatus.PENDING)
        handle = await self._queue.submit(
            lambda: self._fetcher.fetch(job.id, user_id, url), key=job.id
        )
        handle.add_done_callback(lambda f: self._on_fetch_done(job.id, f))
        return job

    def _on_fetch_done(self, job_id: str, future: "asyncio.Future") -> None:
        if future.cancelled():
            logger.warning("Download %s was cancelled before completion", job_id)
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Download process failed: %s", exc, extra={"job_id": job_id})

    async def get(self, job_id: str, user_id: str) -> DownloadJob:
        rows = await run_query(
            "get download",
            lambda db: db.table("downloads")
            .select("*")
            .eq("id", job_id)
            .eq("user_id", user_id),
        )
        if not rows:
            raise NotFound(f"Download {job_id} not found", job_id=job_id)
        job = DownloadJob.from_row(rows[0])

        live = self._tracker.status_of(job_id)
        if live is not None and live != job.status:
            logger.debug(
                "Updating download status from progress: %s -> %s",
                job.status.value,
                live.value,
                extra={"job_id": job_id},
            )
            await set_download_status(job_id, user_id, live)
            job.status = live
        return job

    async def list_downloads(self, user_id: str) -> List[DownloadJob]:
        rows = await run_query(
            "list downloads",
            lambda db: db.table("downloads")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True),
        )
        jobs = [DownloadJob.from_row(row) for row in rows]
        for job in jobs:
            live = self._tracker.status_of(job.id)
            if live is not None:
                job.status = live
        return jobs

    async def delete(self, job_id: str, user_id: str) -> None:
        rows = await run_query(
            "fetch download",
            lambda db: db.table("downloads")
            .select("storage_path")
            .eq("id", job_id)
            .eq("user_id", user_id),
        )
        if not rows:
            raise NotFound(f"Download {job_id} not found", job_id=job_id)

        storage_path = rows[0].get("storage_path")
        if storage_path:
            try:
                await self._blobs.remove([storage_path])
            except UpstreamStorageError as exc:
                logger.error("Failed to delete storage files: %s", exc, extra={"job_id": job_id})

        await run_query(
            "delete download",
            lambda db: db.table("downloads")
            .delete()
            .eq("id", job_id)
            .eq("user_id", user_id),
        )
        self._tracker.discard(job_id)
        logger.info("Download deleted", extra={"job_id": job_id, "user_id": user_id})

    async def cancel(self, job_id: str, user_id: str) -> None:
        """Mark a download failed. A fetch already running is not interrupted."""
        rows = await run_query(
            "cancel download",
            lambda db: db.table("downloads")
            .update({"status": JobStatus.FAILED.value})
            .eq("id", job_id)
            .eq("user_id", user_id),
        )
        if not rows:
            raise NotFound(f"Download {job_id} not found", job_id=job_id)
        if self._tracker.get(job_id) is not None:
            self._tracker.update(job_id, status=JobStatus.FAILED)
        logger.info("Download canceled", extra={"job_id": job_id, "user_id": user_id})
