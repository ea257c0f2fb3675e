"""Website download API: submit a URL, poll, list, delete, cancel."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AnyHttpUrl, BaseModel

from app.auth.supabase_auth import verify_jwt
from app.jobs.models import DownloadJob

router = APIRouter()

# These will be set by main.py during lifespan
_service = None
_tracker = None


def set_service(service):
    global _service
    _service = service


def set_tracker(tracker):
    global _tracker
    _tracker = tracker


class DownloadRequest(BaseModel):
    url: AnyHttpUrl


class ProgressInfo(BaseModel):
    total_files: int
    downloaded_files: int


class DownloadResponse(BaseModel):
    id: str
    url: str
    status: str
    storage_path: Optional[str] = None
    created_at: Optional[datetime] = None
    progress: Optional[ProgressInfo] = None


def _require_service():
    if _service is None:
        raise HTTPException(status_code=503, detail="Download service not initialized")
    return _service


def _to_response(job: DownloadJob) -> DownloadResponse:
    progress = None
    if _tracker is not None:
        live = _tracker.get(job.id)
        if live is not None:
            progress = ProgressInfo(
                total_files=live.total_files, downloaded_files=live.downloaded_files
            )
    return DownloadResponse(
        id=job.id,
        url=job.url,
        status=job.status.value,
        storage_path=job.storage_path,
        created_at=job.created_at,
        progress=progress,
    )


@router.post("/downloads", response_model=DownloadResponse)
async def create_download(request: DownloadRequest, user=Depends(verify_jwt)):
    """Accept a URL for background download. Poll GET /downloads/{id} for status."""
    service = _require_service()
    job = await service.create(str(request.url), user.id)
    return _to_response(job)


@router.get("/downloads/{download_id}", response_model=DownloadResponse)
async def get_download(download_id: str, user=Depends(verify_jwt)):
    service = _require_service()
    job = await service.get(download_id, user.id)
    return _to_response(job)


@router.get("/downloads", response_model=List[DownloadResponse])
async def list_downloads(user=Depends(verify_jwt)):
    service = _require_service()
    jobs = await service.list_downloads(user.id)
    return [_to_response(job) for job in jobs]


@router.delete("/downloads/{download_id}")
async def delete_download(download_id: str, user=Depends(verify_jwt)):
    service = _require_service()
    await service.delete(download_id, user.id)
    return {"success": True}


@router.post("/downloads/{download_id}/cancel")
async def cancel_download(download_id: str, user=Depends(verify_jwt)):
    """Mark a download failed. Work already in flight keeps running."""
    service = _require_service()
    await service.cancel(download_id, user.id)
    return {"success": True}
