"""Supabase Storage bucket wrapper: upload, signed URLs, removal."""

import logging
from typing import List, Optional
from urllib.parse import urlsplit

from app.db.supabase_client import get_supabase, run_blocking
from app.errors import UpstreamStorageError

logger = logging.getLogger(__name__)

# One expiry policy for every signed URL the service hands out
SIGNED_URL_TTL_SECONDS = 60 * 60 * 24


class BlobStore:
    """Objects in a single Supabase Storage bucket.

    Storage calls are blocking HTTP requests and run in the thread executor.
    """

    def __init__(self, bucket: str):
        self.bucket = bucket

    def _bucket(self):
        return get_supabase().storage.from_(self.bucket)

    async def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        try:
            await run_blocking(
                lambda: self._bucket().upload(
                    path=path,
                    file=data,
                    file_options={"content-type": content_type, "upsert": "false"},
                )
            )
        except Exception as exc:
            raise UpstreamStorageError(
                f"Failed to upload to storage: {exc}", path=path
            ) from exc
        logger.info("Uploaded %d bytes to %s/%s", len(data), self.bucket, path)
        return path

    async def signed_url(self, path: str, expires_in: int = SIGNED_URL_TTL_SECONDS) -> str:
        try:
            result = await run_blocking(
                lambda: self._bucket().create_signed_url(path, expires_in)
            )
        except Exception as exc:
            raise UpstreamStorageError(
                f"Failed to create signed URL: {exc}", path=path
            ) from exc
        url = (result or {}).get("signedURL") or (result or {}).get("signedUrl")
        if not url:
            raise UpstreamStorageError("Storage returned no signed URL", path=path)
        return url

    async def remove(self, paths: List[str]) -> None:
        try:
            await run_blocking(lambda: self._bucket().remove(paths))
        except Exception as exc:
            raise UpstreamStorageError(
                f"Failed to delete storage files: {exc}", paths=paths
            ) from exc

    def object_key(self, url: str) -> Optional[str]:
        """Recover the object key from a previously issued signed URL.

        Signed URLs look like `.../object/sign/<bucket>/<key>?token=...`.
        A value without a scheme is taken to be a key already.
        """
        marker = f"/object/sign/{self.bucket}/"
        if marker in url:
            key = url.split(marker, 1)[1]
            return urlsplit(key).path or None
        if "://" not in url:
            return url or None
        return None
