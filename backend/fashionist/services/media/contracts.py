"""Contracts for the generative-media layer — requests, attempts and results."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fashionist.core.errors import MalformedRequest

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

MagazineStyle = Literal["vogue", "cosmopolitan", "menshealth", "elle", "harpers", "gq"]
ShootType = Literal["studio", "street", "editorial", "commercial", "runway"]
ModelGender = Literal["female", "male", "unisex"]
TargetMarket = Literal["mexico", "latinamerica", "global"]
AspectRatio = Literal["1:1", "16:9", "9:16", "4:3", "3:4"]
QualityTier = Literal["standard", "hd"]
OutputFormat = Literal["jpg", "png", "webp"]

MAX_PROMPT_LENGTH = 2000
MAX_CONTEXT_ITEMS = 12


class StyleContext(BaseModel):
    """Structured style preferences layered onto the raw prompt.

    List fields are lower-cased, de-duplicated and sorted on construction so
    that two contexts with the same content in a different order are equal.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    colors: tuple[str, ...] = ()
    styles: tuple[str, ...] = ()
    seasons: tuple[str, ...] = ()
    occasions: tuple[str, ...] = ()
    magazine_style: Optional[MagazineStyle] = None
    shoot_type: Optional[ShootType] = None
    model: Optional[ModelGender] = None
    target_market: Optional[TargetMarket] = None

    @field_validator("colors", "styles", "seasons", "occasions", mode="before")
    @classmethod
    def _normalize_items(cls, value):
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split(",")
        items = {str(item).strip().lower() for item in value if str(item).strip()}
        if len(items) > MAX_CONTEXT_ITEMS:
            msg = f"At most {MAX_CONTEXT_ITEMS} items allowed, got {len(items)}"
            raise ValueError(msg)
        return tuple(sorted(items))


class ShapeHints(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    aspect_ratio: AspectRatio = "1:1"
    quality: QualityTier = "standard"
    output_format: OutputFormat = "jpg"

    @property
    def dimensions(self) -> tuple[int, int]:
        return ASPECT_DIMENSIONS[self.aspect_ratio]


ASPECT_DIMENSIONS: dict[str, tuple[int, int]] = {
    "1:1": (1024, 1024),
    "16:9": (1344, 768),
    "9:16": (768, 1344),
    "4:3": (1152, 864),
    "3:4": (864, 1152),
}


class GenerationRequest(BaseModel):
    """An incoming content-generation request. Immutable once created."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    prompt: str = Field(..., min_length=1, max_length=MAX_PROMPT_LENGTH)
    style: StyleContext = Field(default_factory=StyleContext)
    shape: ShapeHints = Field(default_factory=ShapeHints)

    @field_validator("prompt", mode="before")
    @classmethod
    def _collapse_whitespace(cls, value):
        if isinstance(value, str):
            return " ".join(value.split())
        return value

    def summary(self, limit: int = 120) -> str:
        text = self.prompt if len(self.prompt) <= limit else self.prompt[: limit - 3] + "..."
        return text


def build_request(payload: dict[str, Any] | GenerationRequest) -> GenerationRequest:
    """Validate *payload* into a ``GenerationRequest``.

    Raises ``MalformedRequest`` before any provider is contacted.
    """
    if isinstance(payload, GenerationRequest):
        return payload
    if not isinstance(payload, dict):
        raise MalformedRequest(f"Request must be an object, got {type(payload).__name__}")
    try:
        return GenerationRequest.model_validate(payload)
    except ValidationError as exc:
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
            for err in exc.errors()
        ]
        logger.info("Rejected malformed generation request: %d error(s)", len(errors))
        raise MalformedRequest("Invalid generation request", errors) from exc


# ---------------------------------------------------------------------------
# Provider output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderArtifact:
    """Raw output of a provider call: bytes, or a remote reference to fetch."""

    media_type: str
    model: str
    content: Optional[bytes] = None
    source_url: Optional[str] = None
    description: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.content and not self.source_url:
            raise ValueError("ProviderArtifact needs content or source_url")


# ---------------------------------------------------------------------------
# Attempts and results
# ---------------------------------------------------------------------------


class AttemptOutcome(StrEnum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class GenerationAttempt:
    provider_id: str
    outcome: AttemptOutcome
    latency_ms: float = 0.0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.outcome in (AttemptOutcome.TIMEOUT, AttemptOutcome.PROVIDER_ERROR)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "outcome": self.outcome.value,
            "latency_ms": self.latency_ms,
            "error": self.error,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class GenerationResult:
    """Final outcome of one orchestration: a stored artifact or a placeholder.

    ``attempts`` holds every provider that was actually called, in order.
    Disabled providers never appear there; they are listed in ``skipped``.
    """

    key: str
    artifact_reference: str
    degraded: bool
    provider_used: Optional[str] = None
    model: Optional[str] = None
    cost_estimate: float = 0.0
    latency_ms: float = 0.0
    metadata_reference: Optional[str] = None
    attempts: tuple[GenerationAttempt, ...] = ()
    skipped: tuple[GenerationAttempt, ...] = ()
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if not self.artifact_reference:
            raise ValueError("GenerationResult requires an artifact reference")
        if not self.degraded and not self.provider_used:
            raise ValueError("A non-degraded GenerationResult requires provider_used")

    @property
    def failed_attempts(self) -> tuple[GenerationAttempt, ...]:
        return tuple(a for a in self.attempts if a.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "artifact_reference": self.artifact_reference,
            "metadata_reference": self.metadata_reference,
            "provider_used": self.provider_used,
            "model": self.model,
            "degraded": self.degraded,
            "cost_estimate": self.cost_estimate,
            "latency_ms": self.latency_ms,
            "attempts": [a.to_dict() for a in self.attempts],
            "skipped": [a.provider_id for a in self.skipped],
            "created_at": self.created_at.isoformat(),
        }
