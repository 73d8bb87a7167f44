"""Diagnostics — configuration summary, aggregate health and live provider probes.

Read-only: nothing here feeds back into provider selection.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from fashionist.core.errors import ProviderTimeout

from .registry import ProviderDescriptor, ProviderRegistry

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
CRITICAL = "critical"


def get_config(registry: ProviderRegistry) -> dict[str, Any]:
    providers = [d.to_dict() for d in registry.list_all()]
    return {
        "providers": providers,
        "enabled": [d.id for d in registry.list_enabled()],
        "fallback_order": [d.id for d in registry.list_enabled()],
        "total": len(providers),
    }


def get_health(registry: ProviderRegistry) -> dict[str, Any]:
    """Configuration-only health; does not contact any provider."""
    all_providers = registry.list_all()
    enabled = registry.list_enabled()
    recommendations: list[str] = []

    if not enabled:
        status = CRITICAL
        recommendations.append("Configure at least one provider credential; every request returns a placeholder")
    elif all_providers and not all_providers[0].enabled:
        status = DEGRADED
        primary = all_providers[0]
        recommendations.append(
            f"Primary provider {primary.id} is not configured (set {primary.credential_env}); "
            f"falling back to {enabled[0].id}"
        )
    else:
        status = HEALTHY

    for d in registry.list_disabled():
        if d is all_providers[0]:
            continue
        recommendations.append(f"Set {d.credential_env} to enable {d.label} as a fallback")

    return {
        "status": status,
        "enabled_count": len(enabled),
        "total_count": len(all_providers),
        "primary": enabled[0].id if enabled else None,
        "recommendations": recommendations,
    }


async def _probe_one(registry: ProviderRegistry, descriptor: ProviderDescriptor) -> dict[str, Any]:
    provider = registry.client(descriptor.id)
    t0 = time.monotonic()
    try:
        details = await asyncio.wait_for(
            provider.probe(timeout_seconds=descriptor.timeout_seconds),
            descriptor.timeout_seconds,
        )
    except (asyncio.TimeoutError, ProviderTimeout):
        status, error, details = "timeout", f"no response within {descriptor.timeout_seconds:g}s", {}
    except Exception as exc:
        status, error, details = "error", str(exc) or type(exc).__name__, {}
    else:
        status, error = "ok", None
    latency_ms = round((time.monotonic() - t0) * 1000, 2)
    if error:
        logger.warning("Probe %s failed: %s", descriptor.id, error)
    return {
        "id": descriptor.id,
        "label": descriptor.label,
        "status": status,
        "latency_ms": latency_ms,
        "error": error,
        "details": details,
    }


async def probe_all(registry: ProviderRegistry) -> dict[str, Any]:
    """Probe every enabled provider in parallel; disabled ones are not contacted."""
    enabled = registry.list_enabled()
    probed = await asyncio.gather(*(_probe_one(registry, d) for d in enabled))
    by_id = {p["id"]: p for p in probed}

    providers = []
    for d in registry.list_all():
        if d.id in by_id:
            providers.append(by_id[d.id])
        else:
            providers.append({
                "id": d.id,
                "label": d.label,
                "status": "not_configured",
                "latency_ms": None,
                "error": f"set {d.credential_env}" if d.credential_env else None,
                "details": {},
            })

    passed = [p for p in probed if p["status"] == "ok"]
    failed = [p for p in probed if p["status"] != "ok"]
    if not passed:
        status = CRITICAL
    elif failed:
        status = DEGRADED
    else:
        status = HEALTHY

    fastest = min(passed, key=lambda p: p["latency_ms"]) if passed else None
    summary = {
        "total": len(probed),
        "passed": len(passed),
        "failed": len(failed),
        "average_latency_ms": round(sum(p["latency_ms"] for p in passed) / len(passed), 2) if passed else None,
        "fastest": fastest["id"] if fastest else None,
    }
    logger.info("Provider probe: status=%s passed=%d/%d", status, len(passed), len(probed))
    return {"status": status, "providers": providers, "summary": summary}
