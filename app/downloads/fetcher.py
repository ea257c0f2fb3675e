"""Website fetch worker: retrieve one URL and store it in the bucket.

A fetch moves the job through pending -> processing -> completed|failed,
mirrored in both the `downloads` table and the in-memory tracker. Nothing
is retried; the first error fails the job.
"""

import asyncio
import logging
import os
import re
import socket
import ssl
import time
from typing import Optional
from urllib.parse import unquote, urlsplit

import httpx

from app.db.supabase_client import run_query
from app.errors import ResourceFetchError
from app.jobs.models import JobStatus
from app.jobs.progress import ProgressTracker
from app.storage.blob_store import BlobStore
from app.storage.scratch import ScratchArea

logger = logging.getLogger(__name__)

SITE_NOT_FOUND = "Site not found. Check that the URL is correct."
INVALID_CERTIFICATE = (
    "Site not found or invalid SSL certificate. Check that the URL is correct."
)

# RFC 6266 / RFC 5987: filename*=charset'lang'percent-encoded
_DISPOSITION_EXTENDED = re.compile(r"""filename\*\s*=\s*([^']*)'[^']*'([^;\s]+)""", re.IGNORECASE)
_DISPOSITION_FILENAME = re.compile(r"""filename\s*=\s*((['"]).*?\2|[^;\n]*)""", re.IGNORECASE)
_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


def storage_path_for(user_id: str, job_id: str, filename: str) -> str:
    return f"{user_id}/downloads/{job_id}/{filename}"


def _safe_name(candidate: str) -> Optional[str]:
    name = os.path.basename(candidate.strip().strip("\"'"))
    if name in ("", ".", ".."):
        return None
    return name


def _disposition_filename(content_disposition: str) -> Optional[str]:
    extended = _DISPOSITION_EXTENDED.search(content_disposition)
    if extended:
        charset = extended.group(1).strip() or "utf-8"
        try:
            name = unquote(extended.group(2), encoding=charset, errors="replace")
        except LookupError:
            name = unquote(extended.group(2), errors="replace")
        safe = _safe_name(name)
        if safe:
            return safe

    plain = _DISPOSITION_FILENAME.search(content_disposition)
    if plain and plain.group(1):
        return _safe_name(plain.group(1))
    return None


def filename_from_response(url: str, content_disposition: Optional[str]) -> str:
    """Pick the stored filename for a fetched resource.

    Prefers a well-formed Content-Disposition hint (`filename*` over
    `filename`), then the last URL path segment, then the host name.
    """
    if content_disposition:
        hinted = _disposition_filename(content_disposition)
        if hinted:
            return hinted

    parts = urlsplit(url)
    segments = [s for s in parts.path.split("/") if s]
    if segments:
        from_path = _safe_name(unquote(segments[-1]))
        if from_path:
            return from_path
    return parts.hostname or "download"


def classify_fetch_error(exc: Exception) -> str:
    """Turn a connection failure into the message shown to the user."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ssl.SSLCertVerificationError):
            return INVALID_CERTIFICATE
        if isinstance(current, socket.gaierror):
            return SITE_NOT_FOUND
        current = current.__cause__ or current.__context__

    text = str(exc).lower()
    if "certificate_verify_failed" in text or "certificate verify failed" in text:
        return INVALID_CERTIFICATE
    if any(marker in text for marker in _DNS_MARKERS):
        return SITE_NOT_FOUND
    return str(exc) or type(exc).__name__


async def set_download_status(job_id: str, user_id: str, status: JobStatus, **fields) -> None:
    await run_query(
        "update download",
        lambda db: db.table("downloads")
        .update({"status": status.value, **fields})
        .eq("id", job_id)
        .eq("user_id", user_id),
    )


class WebsiteFetcher:
    """Fetches a URL into the bucket, updating durable and in-memory state."""

    def __init__(
        self,
        tracker: ProgressTracker,
        blob_store: BlobStore,
        scratch: ScratchArea,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self._tracker = tracker
        self._blobs = blob_store
        self._scratch = scratch
        self._http = http_client or httpx.AsyncClient(
            follow_redirects=True, timeout=timeout
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def fetch(self, job_id: str, user_id: str, url: str) -> str:
        """Run one download to completion. Returns the storage path."""
        started = time.monotonic()
        log_ctx = {"job_id": job_id, "user_id": user_id, "url": url}
        loop = asyncio.get_running_loop()
        job_dir = None
        try:
            job_dir = self._scratch.create(job_id)
            self._tracker.update(job_id, status=JobStatus.PROCESSING)
            await set_download_status(job_id, user_id, JobStatus.PROCESSING)
            logger.info("Download %s processing", job_id, extra=log_ctx)

            await self._check_reachable(url)
            response = await self._get(url)

            body = response.content
            filename = filename_from_response(
                url, response.headers.get("content-disposition")
            )
            await loop.run_in_executor(None, self._scratch.write, job_dir, filename, body)
            logger.info("Fetched %s (%d bytes)", filename, len(body), extra=log_ctx)
            self._tracker.update(job_id, downloaded_files=1, total_files=1)

            storage_path = storage_path_for(user_id, job_id, filename)
            await self._blobs.upload(
                storage_path,
                body,
                content_type=response.headers.get("content-type") or "application/octet-stream",
            )

            await set_download_status(
                job_id, user_id, JobStatus.COMPLETED, storage_path=storage_path
            )
            self._tracker.update(job_id, status=JobStatus.COMPLETED)
            logger.info(
                "Download %s completed in %.2fs",
                job_id,
                time.monotonic() - started,
                extra={**log_ctx, "storage_path": storage_path},
            )
            return storage_path
        except Exception as exc:
            self._tracker.update(job_id, status=JobStatus.FAILED)
            try:
                await set_download_status(job_id, user_id, JobStatus.FAILED)
            except Exception:
                logger.exception("Could not mark download %s failed", job_id, extra=log_ctx)
            logger.error("Download %s failed: %s", job_id, exc, extra=log_ctx)
            raise
        finally:
            if job_dir is not None:
                await loop.run_in_executor(None, self._scratch.remove, job_dir)

    async def _check_reachable(self, url: str) -> None:
        try:
            response = await self._http.head(url)
        except httpx.TransportError as exc:
            raise ResourceFetchError(classify_fetch_error(exc), url=url) from exc
        if response.status_code != 200:
            raise ResourceFetchError(
                f"Site returned status code {response.status_code}",
                status=response.status_code,
                url=url,
            )

    async def _get(self, url: str) -> httpx.Response:
        try:
            response = await self._http.get(url)
        except httpx.TransportError as exc:
            raise ResourceFetchError(classify_fetch_error(exc), url=url) from exc
        if not response.is_success:
            raise ResourceFetchError(
                f"Request failed with status code {response.status_code}",
                status=response.status_code,
                url=url,
            )
        return response
