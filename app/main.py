"""Inklab backend - FastAPI application."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.api.router import api_router
from app.api import ai as ai_api
from app.api import downloads as downloads_api
from app.api import health as health_api
from app.downloads.fetcher import WebsiteFetcher
from app.downloads.service import DownloadService
from app.errors import ServiceError
from app.generation.orchestrator import GenerationOrchestrator
from app.jobs.in_process_queue import InProcessQueue
from app.jobs.progress import ProgressTracker
from app.logging_setup import configure_logging
from app.storage.blob_store import BlobStore
from app.storage.scratch import ScratchArea

logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    configure_logging(settings.log_level, settings.log_json)
    logger.info("Starting Inklab backend on %s:%s", settings.host, settings.port)
    logger.info("Storage bucket: %s", settings.supabase_bucket)
    logger.info("Download concurrency: %d", settings.download_concurrency)

    tracker = ProgressTracker(
        max_entries=settings.progress_max_entries,
        ttl_seconds=settings.progress_ttl_seconds,
    )
    blob_store = BlobStore(settings.supabase_bucket)
    scratch = ScratchArea(settings.scratch_dir)
    fetcher = WebsiteFetcher(
        tracker, blob_store, scratch, timeout=settings.fetch_timeout_seconds
    )

    queue = InProcessQueue(concurrency=settings.download_concurrency)
    await queue.start()
    logger.info("Download queue started")

    # Wire services into API endpoints
    downloads_api.set_service(DownloadService(queue, fetcher, tracker, blob_store))
    downloads_api.set_tracker(tracker)
    ai_api.set_orchestrator(GenerationOrchestrator(blob_store, settings.replicate_model))
    health_api.set_queue(queue)

    yield

    logger.info("Shutting down Inklab backend")
    await queue.stop()
    await fetcher.aclose()
    scratch.cleanup_expired()


app = FastAPI(
    title="Inklab API",
    description="AI tattoo generation and website downloads backed by Supabase",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router)


def run() -> None:
    uvicorn.run("app.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
