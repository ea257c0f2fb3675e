"""AI image generation API."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.auth.supabase_auth import verify_jwt
from app.errors import ServiceError
from app.generation.orchestrator import DEFAULT_NEGATIVE_PROMPT, GenerationParams

router = APIRouter()

# Set by main.py during lifespan (same pattern as downloads.py)
_orchestrator = None


def set_orchestrator(orchestrator):
    global _orchestrator
    _orchestrator = orchestrator


class GenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    negative_prompt: Optional[str] = None
    width: int = Field(1024, ge=256, le=2048)
    height: int = Field(1024, ge=256, le=2048)
    num_inference_steps: int = Field(25, ge=1, le=100)
    guidance_scale: float = Field(7.5, ge=1.0, le=50.0)
    high_noise_frac: float = Field(0.9, ge=0.0, le=1.0)
    apply_watermark: bool = False

    def to_params(self) -> GenerationParams:
        return GenerationParams(
            prompt=self.prompt,
            negative_prompt=self.negative_prompt or DEFAULT_NEGATIVE_PROMPT,
            width=self.width,
            height=self.height,
            num_inference_steps=self.num_inference_steps,
            guidance_scale=self.guidance_scale,
            high_noise_frac=self.high_noise_frac,
            apply_watermark=self.apply_watermark,
        )


def _require_orchestrator():
    if _orchestrator is None:
        raise HTTPException(status_code=503, detail="Generation service not initialized")
    return _orchestrator


@router.post("/generate")
async def generate(request: GenerateRequest, user=Depends(verify_jwt)):
    """Generate images and wait for them. Returns signed URLs on success."""
    orchestrator = _require_orchestrator()
    try:
        return await orchestrator.generate(request.to_params(), user.id)
    except ServiceError as exc:
        return JSONResponse(
            status_code=500,
            content={"error": "generation_failed", "message": exc.message or "Failed to generate image"},
        )


@router.get("/generations")
async def list_generations(user=Depends(verify_jwt)):
    """All of the caller's generations with freshly signed URLs."""
    orchestrator = _require_orchestrator()
    try:
        return await orchestrator.list_generations(user.id)
    except ServiceError as exc:
        return JSONResponse(
            status_code=500,
            content={"error": "fetch_failed", "message": exc.message or "Failed to fetch generations"},
        )
