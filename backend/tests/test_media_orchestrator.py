"""Fallback orchestration: priority, skipping, timeouts, caching and placeholders."""

import asyncio
import base64
import json
from pathlib import Path

import httpx
import pytest

from fashionist.core.errors import (
    CredentialMissing,
    MalformedRequest,
    PersistenceFailure,
    ProviderError,
    ProviderTimeout,
)
from fashionist.services.media.contracts import AttemptOutcome
from fashionist.services.media.providers import PollinationsProvider
from fashionist.utils.alerting import alert_tracker

REQUEST = {
    "prompt": "silk evening gown",
    "style": {"colors": ["black", "gold"], "seasons": ["winter"], "magazine_style": "vogue"},
    "shape": {"aspect_ratio": "3:4", "quality": "hd"},
}


def _decode_placeholder(reference: str) -> str:
    prefix = "data:image/svg+xml;base64,"
    assert reference.startswith(prefix)
    return base64.b64decode(reference[len(prefix):]).decode("utf-8")


class BrokenStore:
    def __init__(self):
        self.writes = 0

    def write(self, name, content, content_type):
        self.writes += 1
        raise PersistenceFailure("disk full")


# --- Priority and success path ---


@pytest.mark.asyncio
async def test_first_provider_success_never_touches_lower_priorities(scripted, registry_of, make_orchestrator):
    a, b, c = scripted("alpha"), scripted("beta"), scripted("gamma")
    orch = make_orchestrator(registry_of((c, 3, 5.0), (a, 1, 5.0, True, 0.003), (b, 2, 5.0)))

    result = await orch.generate_image(REQUEST)

    assert result.provider_used == "alpha"
    assert result.degraded is False
    assert result.model == "alpha-v1"
    assert result.cost_estimate == 0.003
    assert len(a.calls) == 1
    assert b.calls == [] and c.calls == []
    assert [att.outcome for att in result.attempts] == [AttemptOutcome.SUCCESS]
    assert result.skipped == ()


@pytest.mark.asyncio
async def test_success_is_materialized_with_sidecar_metadata(scripted, registry_of, make_orchestrator):
    a = scripted("alpha")
    orch = make_orchestrator(registry_of((a, 1, 5.0, True, 0.003)))

    result = await orch.generate_image(REQUEST)

    artifact = Path(result.artifact_reference)
    assert artifact.exists()
    assert artifact.name.startswith("alpha_fashion_") and artifact.suffix == ".png"
    metadata = json.loads(Path(result.metadata_reference).read_text(encoding="utf-8"))
    assert metadata["provider"] == "alpha"
    assert metadata["original_prompt"] == "silk evening gown"
    assert metadata["cost_estimate"] == 0.003
    assert metadata["prompt"] == a.calls[0]
    assert "generated_at" in metadata


@pytest.mark.asyncio
async def test_provider_receives_enhanced_prompt(scripted, registry_of, make_orchestrator):
    a = scripted("alpha")
    orch = make_orchestrator(registry_of((a, 1, 5.0)))

    await orch.generate_image(REQUEST)

    sent = a.calls[0]
    assert "silk evening gown" in sent
    assert "Avoid:" in sent
    assert sent != REQUEST["prompt"]


# --- Cache ---


@pytest.mark.asyncio
async def test_repeat_request_is_served_from_cache(scripted, registry_of, make_orchestrator):
    a, b = scripted("alpha"), scripted("beta")
    orch = make_orchestrator(registry_of((a, 1, 5.0), (b, 2, 5.0)))

    first = await orch.generate_image(REQUEST)
    second = await orch.generate_image(REQUEST)

    assert second is first
    assert len(a.calls) == 1
    assert b.calls == []


@pytest.mark.asyncio
async def test_list_order_does_not_defeat_cache(scripted, registry_of, make_orchestrator):
    a = scripted("alpha")
    orch = make_orchestrator(registry_of((a, 1, 5.0)))

    first = await orch.generate_image({"prompt": "linen set", "style": {"colors": ["red", "black"]}})
    second = await orch.generate_image({"prompt": "linen  set", "style": {"colors": ["Black", "red"]}})

    assert second.key == first.key
    assert len(a.calls) == 1


@pytest.mark.asyncio
async def test_success_expires_after_success_ttl(scripted, registry_of, make_orchestrator, clock):
    a = scripted("alpha")
    orch = make_orchestrator(registry_of((a, 1, 5.0)), success_ttl=100)

    await orch.generate_image(REQUEST)
    clock.advance(99)
    await orch.generate_image(REQUEST)
    assert len(a.calls) == 1

    clock.advance(2)
    await orch.generate_image(REQUEST)
    assert len(a.calls) == 2


@pytest.mark.asyncio
async def test_flush_cache_forces_new_generation(scripted, registry_of, make_orchestrator):
    a = scripted("alpha")
    orch = make_orchestrator(registry_of((a, 1, 5.0)))

    await orch.generate_image(REQUEST)
    assert orch.flush_cache() == 1
    await orch.generate_image(REQUEST)

    assert len(a.calls) == 2


# --- Skipping and failure handling ---


@pytest.mark.asyncio
async def test_disabled_provider_is_skipped_and_timeout_falls_through(scripted, registry_of, make_orchestrator):
    a = scripted("alpha")
    b = scripted("beta", delay=5.0)
    c = scripted("gamma")
    orch = make_orchestrator(registry_of((a, 1, 5.0, False), (b, 2, 0.05), (c, 3, 5.0)))

    result = await orch.generate_image(REQUEST)

    assert result.provider_used == "gamma"
    assert [(att.provider_id, att.outcome) for att in result.attempts] == [
        ("beta", AttemptOutcome.TIMEOUT),
        ("gamma", AttemptOutcome.SUCCESS),
    ]
    assert [s.provider_id for s in result.skipped] == ["alpha"]
    assert result.skipped[0].outcome is AttemptOutcome.SKIPPED
    assert a.calls == []
    assert len(b.calls) == 1


@pytest.mark.asyncio
async def test_timeout_is_bounded_by_provider_budget(scripted, registry_of, make_orchestrator):
    slow = scripted("slow", delay=10.0)
    orch = make_orchestrator(registry_of((slow, 1, 0.05)))

    result = await asyncio.wait_for(orch.generate_image(REQUEST), 2.0)

    assert result.degraded is True
    assert len(result.attempts) == 1
    attempt = result.attempts[0]
    assert attempt.outcome is AttemptOutcome.TIMEOUT
    assert attempt.latency_ms < 1000


@pytest.mark.asyncio
async def test_adapter_transport_timeout_is_recorded_as_timeout(registry_of, make_orchestrator):
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    pollinations = PollinationsProvider(transport=httpx.MockTransport(handler))
    orch = make_orchestrator(registry_of((pollinations, 1, 5.0)))

    result = await orch.generate_image(REQUEST)

    assert result.degraded is True
    assert [att.outcome for att in result.attempts] == [AttemptOutcome.TIMEOUT]
    assert alert_tracker.count("PROVIDER_TIMEOUT", "pollinations") == 1


@pytest.mark.asyncio
async def test_provider_timeout_error_counts_as_timeout(scripted, registry_of, make_orchestrator):
    a = scripted("alpha", error=ProviderTimeout("alpha", 5.0))
    b = scripted("beta")
    orch = make_orchestrator(registry_of((a, 1, 5.0), (b, 2, 5.0)))

    result = await orch.generate_image(REQUEST)

    assert result.provider_used == "beta"
    assert [att.outcome for att in result.attempts] == [AttemptOutcome.TIMEOUT, AttemptOutcome.SUCCESS]


@pytest.mark.asyncio
async def test_every_failure_kind_is_recorded_not_raised(scripted, registry_of, make_orchestrator):
    a = scripted("alpha", error=ProviderError("alpha", "bad gateway", status_code=502))
    b = scripted("beta", error=CredentialMissing("beta", "BETA_API_KEY"))
    c = scripted("gamma", error=RuntimeError("unexpected"))
    orch = make_orchestrator(registry_of((a, 1, 5.0), (b, 2, 5.0), (c, 3, 5.0)))

    result = await orch.generate_image(REQUEST)

    assert result.degraded is True
    assert [att.outcome for att in result.attempts] == [AttemptOutcome.PROVIDER_ERROR] * 3
    assert "HTTP 502" in result.attempts[0].error
    assert result.attempts[2].error == "unexpected"


@pytest.mark.asyncio
async def test_all_fail_returns_placeholder_with_full_attempt_list(scripted, registry_of, make_orchestrator):
    a = scripted("alpha", error=ProviderError("alpha", "boom"))
    b = scripted("beta", delay=5.0)
    c = scripted("gamma", error=ProviderError("gamma", "quota"))
    off = scripted("offline")
    orch = make_orchestrator(registry_of((a, 1, 5.0), (b, 2, 0.05), (c, 3, 5.0), (off, 4, 5.0, False)))

    result = await orch.generate_image(REQUEST)

    assert result.degraded is True
    assert result.provider_used is None
    assert result.cost_estimate == 0.0
    assert len(result.attempts) == 3
    assert all(att.failed for att in result.attempts)
    svg = _decode_placeholder(result.artifact_reference)
    assert "silk evening gown" in svg
    for name in ("alpha", "beta", "gamma", "offline"):
        assert name in svg


@pytest.mark.asyncio
async def test_placeholder_uses_short_ttl(scripted, registry_of, make_orchestrator, clock):
    a = scripted("alpha", error=ProviderError("alpha", "down"))
    b = scripted("beta", error=ProviderError("beta", "down"))
    orch = make_orchestrator(registry_of((a, 1, 5.0), (b, 2, 5.0)), placeholder_ttl=60)

    first = await orch.generate_image(REQUEST)
    clock.advance(30)
    second = await orch.generate_image(REQUEST)

    assert second is first
    assert len(a.calls) == 1 and len(b.calls) == 1

    clock.advance(31)
    third = await orch.generate_image(REQUEST)

    assert third is not first
    assert third.degraded is True
    assert len(a.calls) == 2 and len(b.calls) == 2


@pytest.mark.asyncio
async def test_no_providers_configured_goes_straight_to_placeholder(registry_of, make_orchestrator):
    orch = make_orchestrator(registry_of())

    result = await orch.generate_image(REQUEST)

    assert result.degraded is True
    assert result.attempts == ()
    assert "No providers configured" in _decode_placeholder(result.artifact_reference)


@pytest.mark.asyncio
async def test_only_disabled_providers_yields_placeholder_without_attempts(scripted, registry_of, make_orchestrator):
    a = scripted("alpha")
    orch = make_orchestrator(registry_of((a, 1, 5.0, False)))

    result = await orch.generate_image(REQUEST)

    assert result.degraded is True
    assert result.attempts == ()
    assert [s.provider_id for s in result.skipped] == ["alpha"]


# --- Caller-visible errors ---


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"prompt": ""},
        {"prompt": "   "},
        {"prompt": "x" * 2001},
        {"prompt": "dress", "size": "huge"},
        {"prompt": "dress", "shape": {"aspect_ratio": "2:1"}},
        {"style": {"colors": ["red"]}},
        "just a string",
    ],
)
async def test_malformed_request_is_rejected_before_any_provider(scripted, registry_of, make_orchestrator, payload):
    a = scripted("alpha")
    orch = make_orchestrator(registry_of((a, 1, 5.0)))

    with pytest.raises(MalformedRequest):
        await orch.generate_image(payload)

    assert a.calls == []
    assert len(orch.cache) == 0


@pytest.mark.asyncio
async def test_persistence_failure_surfaces_and_is_not_cached(scripted, registry_of, make_orchestrator):
    a, b = scripted("alpha"), scripted("beta")
    store = BrokenStore()
    orch = make_orchestrator(registry_of((a, 1, 5.0), (b, 2, 5.0)), store=store)

    with pytest.raises(PersistenceFailure) as excinfo:
        await orch.generate_image(REQUEST)

    assert excinfo.value.provider_id == "alpha"
    assert b.calls == []
    assert len(orch.cache) == 0
    assert alert_tracker.count("PERSISTENCE_FAILURE", "alpha") == 1

    with pytest.raises(PersistenceFailure):
        await orch.generate_image(REQUEST)
    assert len(a.calls) == 2


# --- Concurrency ---


@pytest.mark.asyncio
async def test_concurrent_identical_requests_share_one_run(scripted, registry_of, make_orchestrator):
    a = scripted("alpha", delay=0.05)
    orch = make_orchestrator(registry_of((a, 1, 5.0)))

    first, second = await asyncio.gather(orch.generate_image(REQUEST), orch.generate_image(REQUEST))

    assert first is second
    assert len(a.calls) == 1


@pytest.mark.asyncio
async def test_without_single_flight_concurrent_requests_run_independently(scripted, registry_of, make_orchestrator):
    a = scripted("alpha", delay=0.05)
    orch = make_orchestrator(registry_of((a, 1, 5.0)), single_flight=False)

    first, second = await asyncio.gather(orch.generate_image(REQUEST), orch.generate_image(REQUEST))

    assert first.key == second.key
    assert len(a.calls) == 2


@pytest.mark.asyncio
async def test_followers_see_the_leaders_persistence_failure(scripted, registry_of, make_orchestrator):
    a = scripted("alpha", delay=0.05)
    orch = make_orchestrator(registry_of((a, 1, 5.0)), store=BrokenStore())

    outcomes = await asyncio.gather(
        orch.generate_image(REQUEST), orch.generate_image(REQUEST), return_exceptions=True
    )

    assert all(isinstance(o, PersistenceFailure) for o in outcomes)
    assert len(a.calls) == 1


@pytest.mark.asyncio
async def test_different_requests_run_in_parallel(scripted, registry_of, make_orchestrator):
    a = scripted("alpha", delay=0.2)
    orch = make_orchestrator(registry_of((a, 1, 5.0)))

    loop = asyncio.get_running_loop()
    t0 = loop.time()
    results = await asyncio.gather(*(orch.generate_image({"prompt": f"look {i}"}) for i in range(4)))
    elapsed = loop.time() - t0

    assert len({r.key for r in results}) == 4
    assert len(a.calls) == 4
    assert elapsed < 0.6


@pytest.mark.asyncio
async def test_cancelled_first_caller_does_not_cancel_joined_callers(scripted, registry_of, make_orchestrator):
    a = scripted("alpha", delay=0.1)
    orch = make_orchestrator(registry_of((a, 1, 5.0)))

    first = asyncio.create_task(orch.generate_image(REQUEST))
    second = asyncio.create_task(orch.generate_image(REQUEST))
    await asyncio.sleep(0.02)
    first.cancel()

    result = await second

    assert first.cancelled()
    assert result.degraded is False
    assert result.provider_used == "alpha"
    assert len(a.calls) == 1
    assert orch.cache.get(result.key) is not None


@pytest.mark.asyncio
async def test_caller_deadline_leaves_shared_run_to_finish(scripted, registry_of, make_orchestrator):
    a = scripted("alpha", delay=0.1)
    orch = make_orchestrator(registry_of((a, 1, 5.0)))

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(orch.generate_image(REQUEST), 0.02)

    result = await orch.generate_image(REQUEST)

    assert result.degraded is False
    assert len(a.calls) == 1
