"""Fallback orchestrator — tries providers in priority order and always returns a result."""

from __future__ import annotations

import asyncio
import functools
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Optional, Union

from fashionist.core.config import Settings, get_settings
from fashionist.core.errors import PersistenceFailure, ProviderTimeout
from fashionist.core.storage import get_artifact_store
from fashionist.utils.alerting import alert_tracker

from .audit import log_generation_run
from .cache import ResultCache, normalized_key
from .contracts import (
    AttemptOutcome,
    GenerationAttempt,
    GenerationRequest,
    GenerationResult,
    ProviderArtifact,
    build_request,
)
from .materializer import ResultMaterializer
from .placeholder import PlaceholderGenerator
from .prompts import enhance_prompt
from .providers import build_registry
from .registry import ProviderDescriptor, ProviderRegistry

logger = logging.getLogger(__name__)

PLACEHOLDER_MODEL = "placeholder"


@dataclass(frozen=True)
class _Ok:
    artifact: ProviderArtifact
    attempt: GenerationAttempt
    prompt: str


@dataclass(frozen=True)
class _Err:
    attempt: GenerationAttempt


CallOutcome = Union[_Ok, _Err]


class MediaOrchestrator:
    """Drives one generation request to a ``GenerationResult``.

    Flow per request:
      1. Validate the payload (``MalformedRequest`` on failure).
      2. Return the cached outcome when one is live.
      3. Call each enabled provider in priority order, one at a time, each
         bounded by its own timeout. The first artifact wins.
      4. Persist the winner and cache it with the success TTL.
      5. If every provider failed (or none is enabled), cache and return an
         offline placeholder with the short placeholder TTL.

    Provider failures never escape; only ``MalformedRequest`` and
    ``PersistenceFailure`` reach the caller. Concurrent identical requests
    share one run when ``single_flight`` is on; that run keeps going when
    the caller that started it is cancelled.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        cache: ResultCache,
        materializer: ResultMaterializer,
        placeholder: Optional[PlaceholderGenerator] = None,
        *,
        success_ttl_seconds: float = 3600,
        placeholder_ttl_seconds: float = 60,
        single_flight: bool = True,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.registry = registry
        self.cache = cache
        self.materializer = materializer
        self.placeholder = placeholder or PlaceholderGenerator()
        self.success_ttl_seconds = success_ttl_seconds
        self.placeholder_ttl_seconds = placeholder_ttl_seconds
        self.single_flight = single_flight
        self._rng = rng
        self._inflight: dict[str, asyncio.Future] = {}

    async def generate_image(self, payload: Union[GenerationRequest, dict[str, Any]]) -> GenerationResult:
        request = build_request(payload)
        key = normalized_key(request)

        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit %s (provider=%s degraded=%s)", key, cached.provider_used, cached.degraded)
            return cached

        if not self.single_flight:
            return await self._run(request, key)

        task = self._inflight.get(key)
        if task is None:
            # The run belongs to no single caller; a cancelled caller only abandons its own wait.
            task = asyncio.ensure_future(self._run(request, key))
            self._inflight[key] = task
            task.add_done_callback(functools.partial(self._release, key))
        else:
            logger.info("Joining in-flight generation %s", key)
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Retrieve so a run whose callers all left does not log "never retrieved".
            task.exception()

    async def _run(self, request: GenerationRequest, key: str) -> GenerationResult:
        t0 = time.monotonic()
        skipped = tuple(
            GenerationAttempt(d.id, AttemptOutcome.SKIPPED, error=f"not configured ({d.credential_env})")
            for d in self.registry.list_disabled()
        )
        enabled = self.registry.list_enabled()
        attempts: list[GenerationAttempt] = []

        if not enabled:
            logger.warning("No providers enabled; serving placeholder for %s", key)

        for descriptor in enabled:
            outcome = await self._call(descriptor, request)
            attempts.append(outcome.attempt)
            if isinstance(outcome, _Err):
                continue

            total_ms = (time.monotonic() - t0) * 1000
            try:
                stored = await self.materializer.persist(
                    outcome.artifact,
                    request,
                    descriptor,
                    enhanced_prompt=outcome.prompt,
                    latency_ms=outcome.attempt.latency_ms,
                )
            except PersistenceFailure as exc:
                exc.provider_id = exc.provider_id or descriptor.id
                logger.error("Persisting %s artifact failed: %s", descriptor.id, exc)
                alert_tracker.record("PERSISTENCE_FAILURE", descriptor.id, {"key": key})
                raise

            result = GenerationResult(
                key=key,
                artifact_reference=stored.reference,
                metadata_reference=stored.metadata_reference,
                degraded=False,
                provider_used=descriptor.id,
                model=outcome.artifact.model,
                cost_estimate=descriptor.cost_per_call,
                latency_ms=round(total_ms, 2),
                attempts=tuple(attempts),
                skipped=skipped,
            )
            self.cache.set(key, result, ttl=self.success_ttl_seconds)
            log_generation_run(request, result, enhanced_prompt=outcome.prompt)
            return result

        total_ms = (time.monotonic() - t0) * 1000
        if enabled:
            logger.warning("All %d provider(s) failed for %s; serving placeholder", len(enabled), key)
        result = GenerationResult(
            key=key,
            artifact_reference=self.placeholder.build(request, attempts, skipped),
            degraded=True,
            model=PLACEHOLDER_MODEL,
            latency_ms=round(total_ms, 2),
            attempts=tuple(attempts),
            skipped=skipped,
        )
        self.cache.set(key, result, ttl=self.placeholder_ttl_seconds)
        log_generation_run(request, result)
        return result

    async def _call(self, descriptor: ProviderDescriptor, request: GenerationRequest) -> CallOutcome:
        provider = self.registry.client(descriptor.id)
        prompt = enhance_prompt(
            request.prompt,
            request.style,
            provider.prompt_hint,
            flux_model=getattr(provider, "model", "flux-dev"),
            rng=self._rng,
        )
        timeout = descriptor.timeout_seconds

        t0 = time.monotonic()
        try:
            artifact = await asyncio.wait_for(
                provider.generate(prompt, request.shape, timeout_seconds=timeout),
                timeout,
            )
        except (asyncio.TimeoutError, ProviderTimeout):
            elapsed = (time.monotonic() - t0) * 1000
            logger.warning("Provider %s timed out after %.0fms", descriptor.id, elapsed)
            return _Err(GenerationAttempt(
                descriptor.id, AttemptOutcome.TIMEOUT, round(elapsed, 2), f"exceeded {timeout:g}s budget",
            ))
        except Exception as exc:
            elapsed = (time.monotonic() - t0) * 1000
            logger.warning("Provider %s failed: %s", descriptor.id, exc)
            return _Err(GenerationAttempt(
                descriptor.id, AttemptOutcome.PROVIDER_ERROR, round(elapsed, 2), str(exc) or type(exc).__name__,
            ))

        elapsed = (time.monotonic() - t0) * 1000
        logger.info("Provider %s succeeded in %.0fms", descriptor.id, elapsed)
        return _Ok(
            artifact=artifact,
            attempt=GenerationAttempt(descriptor.id, AttemptOutcome.SUCCESS, round(elapsed, 2)),
            prompt=prompt,
        )

    def flush_cache(self) -> int:
        return self.cache.flush_all()


def build_orchestrator(
    settings: Optional[Settings] = None,
    *,
    registry: Optional[ProviderRegistry] = None,
) -> MediaOrchestrator:
    """Wire the orchestrator from settings; used once at application startup."""
    settings = settings or get_settings()
    registry = registry or build_registry(settings)
    cache = ResultCache(
        default_ttl_seconds=settings.ai_cache_success_ttl_seconds,
        max_entries=settings.ai_cache_max_entries,
    )
    materializer = ResultMaterializer(
        get_artifact_store(settings),
        thumbnails_enabled=settings.media_thumbnails_enabled,
        download_timeout_seconds=settings.media_download_timeout_seconds,
    )
    return MediaOrchestrator(
        registry,
        cache,
        materializer,
        success_ttl_seconds=settings.ai_cache_success_ttl_seconds,
        placeholder_ttl_seconds=settings.ai_cache_placeholder_ttl_seconds,
        single_flight=settings.ai_single_flight_enabled,
    )
