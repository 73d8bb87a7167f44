"""Generative-media endpoints — image generation, prompt preview, health, config and cache control."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from fashionist.services.media import diagnostics
from fashionist.services.media.contracts import build_request
from fashionist.services.media.orchestrator import MediaOrchestrator
from fashionist.services.media.prompts import enhance_prompt, generate_prompt_variations, smart_base_prompt

router = APIRouter()

PREVIEW_HINTS = ("flux", "dalle", "gemini", "generic")


def get_orchestrator(request: Request) -> MediaOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(503, "Media generation is not initialised")
    return orchestrator


class AttemptOut(BaseModel):
    provider_id: str
    outcome: str
    latency_ms: float
    error: Optional[str] = None


class GenerateImageResponse(BaseModel):
    key: str
    artifact_reference: str
    metadata_reference: Optional[str] = None
    provider_used: Optional[str] = None
    model: Optional[str] = None
    degraded: bool
    cost_estimate: float
    latency_ms: float
    attempts: list[AttemptOut]
    skipped: list[str]
    created_at: str


class FlushResponse(BaseModel):
    flushed: int


@router.post(
    "/media/generate-image",
    response_model=GenerateImageResponse,
    summary="Generate a fashion image with provider fallback",
)
async def generate_image_endpoint(
    payload: Any = Body(...),
    orchestrator: MediaOrchestrator = Depends(get_orchestrator),
):
    # Validation happens in the orchestrator so the HTTP and in-process paths
    # reject the same payloads.
    result = await orchestrator.generate_image(payload)
    return GenerateImageResponse(**result.to_dict())


@router.get("/media/health")
async def media_health(
    probe: bool = Query(False, description="Contact every enabled provider"),
    orchestrator: MediaOrchestrator = Depends(get_orchestrator),
):
    if probe:
        return await diagnostics.probe_all(orchestrator.registry)
    health = diagnostics.get_health(orchestrator.registry)
    health["cache"] = orchestrator.cache.stats()
    return health


@router.get("/media/config")
def media_config(orchestrator: MediaOrchestrator = Depends(get_orchestrator)):
    return diagnostics.get_config(orchestrator.registry)


@router.post("/media/cache/flush", response_model=FlushResponse)
def flush_media_cache(orchestrator: MediaOrchestrator = Depends(get_orchestrator)):
    return FlushResponse(flushed=orchestrator.flush_cache())


class PromptPreviewResponse(BaseModel):
    base_template: str
    enhanced: dict[str, str]
    variations: list[str]


@router.post(
    "/media/prompt-preview",
    response_model=PromptPreviewResponse,
    summary="Show the provider-ready prompts for a request without generating",
)
def prompt_preview(
    payload: Any = Body(...),
    count: int = Query(3, ge=0, le=6, description="Number of magazine/shoot variations"),
):
    request = build_request(payload)
    keywords = [request.prompt, *request.style.styles, *request.style.occasions]
    return PromptPreviewResponse(
        base_template=smart_base_prompt(keywords),
        enhanced={hint: enhance_prompt(request.prompt, request.style, hint) for hint in PREVIEW_HINTS},
        variations=generate_prompt_variations(request.prompt, count),
    )
