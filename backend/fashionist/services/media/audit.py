"""Generation audit — one structured log entry per completed orchestration."""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Optional

from fashionist.core.config import get_settings
from fashionist.utils.alerting import alert_tracker

from .contracts import AttemptOutcome, GenerationRequest, GenerationResult

logger = logging.getLogger("fashionist.audit")

_ATTEMPT_ACTIONS = {
    AttemptOutcome.TIMEOUT: "PROVIDER_TIMEOUT",
    AttemptOutcome.PROVIDER_ERROR: "PROVIDER_ERROR",
}


def build_audit_record(
    request: GenerationRequest,
    result: GenerationResult,
    *,
    enhanced_prompt: Optional[str] = None,
    store_raw: bool = False,
) -> dict[str, Any]:
    """PII: the prompt is always hashed; raw text only when ``store_raw``."""
    record: dict[str, Any] = {
        "action": "AI_IMAGE_PLACEHOLDER" if result.degraded else "AI_IMAGE_GENERATED",
        "key": result.key,
        "provider": result.provider_used,
        "model": result.model,
        "degraded": result.degraded,
        "cost_estimate": result.cost_estimate,
        "latency_ms": result.latency_ms,
        "attempts": [f"{a.provider_id}:{a.outcome.value}" for a in result.attempts],
        "skipped": [a.provider_id for a in result.skipped],
        "prompt_hash": hashlib.sha256(request.prompt.encode()).hexdigest(),
    }
    if store_raw:
        record["prompt_raw"] = request.prompt
        if enhanced_prompt is not None:
            record["enhanced_prompt_raw"] = enhanced_prompt
    return record


def log_generation_run(
    request: GenerationRequest,
    result: GenerationResult,
    *,
    enhanced_prompt: Optional[str] = None,
) -> dict[str, Any]:
    settings = get_settings()
    record = build_audit_record(
        request, result, enhanced_prompt=enhanced_prompt, store_raw=settings.ai_debug_store_raw
    )
    logger.info("%s %s", record["action"], record)

    for attempt in result.attempts:
        action = _ATTEMPT_ACTIONS.get(attempt.outcome)
        if action:
            alert_tracker.record(action, attempt.provider_id, {"error": attempt.error})
    if result.degraded:
        alert_tracker.record("GENERATION_PLACEHOLDER", metadata={"key": result.key})
    return record
