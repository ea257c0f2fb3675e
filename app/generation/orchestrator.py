"""AI image generation orchestrator.

Sequence for one request:
1. Insert a pending `ai_generations` row
2. Run the Replicate model (single blocking call, no progress callback)
3. Drain each output, upload it to the bucket, sign a URL for it
4. Mark the row completed with the signed URLs in output order

Any failure after step 1 marks the row failed with the error message.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from app.db.supabase_client import run_query
from app.errors import (
    GenerationFailed,
    ServiceError,
    UpstreamInferenceError,
    UpstreamStorageError,
)
from app.generation.replicate_client import get_replicate
from app.jobs.models import Generation, JobStatus
from app.storage.blob_store import SIGNED_URL_TTL_SECONDS, BlobStore

logger = logging.getLogger(__name__)

DEFAULT_NEGATIVE_PROMPT = "ugly, broken, distorted, nsfw, inappropriate content"


@dataclass(frozen=True)
class GenerationParams:
    """Every input sent to the model.

    width, height, negative_prompt, num_inference_steps, guidance_scale,
    high_noise_frac and apply_watermark come from the client; the rest are
    fixed for this model.
    """
    prompt: str
    negative_prompt: str = DEFAULT_NEGATIVE_PROMPT
    width: int = 1024
    height: int = 1024
    num_inference_steps: int = 25
    guidance_scale: float = 7.5
    high_noise_frac: float = 0.9
    apply_watermark: bool = False
    refine: str = "expert_ensemble_refiner"
    scheduler: str = "K_EULER"
    lora_scale: float = 0.6
    num_outputs: int = 1
    prompt_strength: float = 0.8

    def model_input(self) -> Dict[str, Any]:
        return asdict(self)


def artifact_path(user_id: str, timestamp_ms: int, index: int) -> str:
    return f"generations/{user_id}/tattoo_{timestamp_ms}_{index}.png"


async def _drain(output: Any) -> bytes:
    """Read one model output completely into memory."""
    if isinstance(output, (bytes, bytearray)):
        return bytes(output)
    if hasattr(output, "aread"):
        return await output.aread()
    if hasattr(output, "read"):
        data = output.read()
        if inspect.isawaitable(data):
            data = await data
        return data
    raise UpstreamInferenceError(
        f"Unsupported model output type: {type(output).__name__}"
    )


class GenerationOrchestrator:

    def __init__(self, blob_store: BlobStore, model_ref: str, client: Any = None):
        self._blobs = blob_store
        self._model_ref = model_ref
        self._client = client

    @property
    def client(self):
        return self._client or get_replicate()

    async def generate(self, params: GenerationParams, user_id: str) -> Dict[str, Any]:
        log_ctx = {"user_id": user_id}
        rows = await run_query(
            "create generation record",
            lambda db: db.table("ai_generations").insert(
                {
                    "user_id": user_id,
                    **params.model_input(),
                    "status": JobStatus.PENDING.value,
                }
            ),
        )
        if not rows:
            raise GenerationFailed("Failed to create generation record: no row returned")
        generation_id = rows[0]["id"]
        log_ctx["generation_id"] = generation_id
        logger.info("Generation record created", extra=log_ctx)

        try:
            outputs = await self._run_model(params)
            timestamp_ms = int(time.time() * 1000)
            output_urls = list(
                await asyncio.gather(
                    *(
                        self._store_output(output, user_id, timestamp_ms, index)
                        for index, output in enumerate(outputs)
                    )
                )
            )

            updated = await run_query(
                "update generation",
                lambda db: db.table("ai_generations")
                .update({"output_urls": output_urls, "status": JobStatus.COMPLETED.value})
                .eq("id", generation_id),
            )
        except Exception as exc:
            message = exc.message if isinstance(exc, ServiceError) else str(exc)
            logger.error("Generation failed: %s", message, extra=log_ctx, exc_info=True)
            try:
                await run_query(
                    "mark generation failed",
                    lambda db: db.table("ai_generations")
                    .update({"status": JobStatus.FAILED.value, "error": message})
                    .eq("id", generation_id),
                )
            except ServiceError:
                logger.exception("Could not mark generation failed", extra=log_ctx)
            raise GenerationFailed(message, generation_id=generation_id) from exc

        logger.info("Generation completed with %d output(s)", len(output_urls), extra=log_ctx)
        record = updated[0] if updated else rows[0]
        return {
            "success": True,
            "id": generation_id,
            "urls": output_urls,
            "prompt": params.prompt,
            "status": JobStatus.COMPLETED.value,
            "created_at": record.get("created_at"),
        }

    async def _run_model(self, params: GenerationParams) -> List[Any]:
        logger.info("Starting Replicate generation with %s", self._model_ref)
        try:
            output = await self.client.async_run(self._model_ref, input=params.model_input())
        except Exception as exc:
            raise UpstreamInferenceError(str(exc) or type(exc).__name__) from exc
        if output is None:
            return []
        if isinstance(output, (list, tuple)):
            return list(output)
        return [output]

    async def _store_output(self, output: Any, user_id: str, timestamp_ms: int, index: int) -> str:
        data = await _drain(output)
        path = artifact_path(user_id, timestamp_ms, index)
        await self._blobs.upload(path, data, content_type="image/png")
        return await self._blobs.signed_url(path, SIGNED_URL_TTL_SECONDS)

    async def list_generations(self, user_id: str) -> List[Dict[str, Any]]:
        """All generations of a user, newest first, with freshly signed URLs."""
        rows = await run_query(
            "list generations",
            lambda db: db.table("ai_generations")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True),
        )
        generations = [Generation.from_row(row) for row in rows]
        logger.info("Fetched %d generation(s)", len(generations), extra={"user_id": user_id})

        results = []
        for generation in generations:
            signed = await asyncio.gather(
                *(self._resign(url) for url in generation.output_urls)
            )
            entry = generation.model_dump(mode="json")
            entry["urls"] = [url for url in signed if url is not None]
            results.append(entry)
        return results

    async def _resign(self, stored_url: str) -> Optional[str]:
        key = self._blobs.object_key(stored_url)
        if key is None:
            logger.error("Could not derive object key from stored URL")
            return None
        try:
            return await self._blobs.signed_url(key, SIGNED_URL_TTL_SECONDS)
        except UpstreamStorageError as exc:
            logger.error("Signed URL creation failed for %s: %s", key, exc)
            return None
