"""Root and health check endpoints (no authentication)."""

from fastapi import APIRouter
import platform
import sys

router = APIRouter()

# Set by main.py during lifespan
_queue = None


def set_queue(queue):
    global _queue
    _queue = queue


@router.get("/")
async def root():
    return {"status": "ok", "message": "Inklab API is running!"}


@router.get("/health")
async def health_check():
    """Service health and download queue load."""
    queue_info = None
    if _queue is not None:
        queue_info = {
            "concurrency": _queue.concurrency,
            "active": _queue.active,
            "pending": _queue.pending,
        }
    return {
        "status": "ok",
        "download_queue": queue_info,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
