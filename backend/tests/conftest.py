import asyncio
import io
import random

import pytest
from PIL import Image

from fashionist.core.config import get_settings
from fashionist.core.storage import LocalArtifactStore
from fashionist.services.media.cache import ResultCache
from fashionist.services.media.contracts import ProviderArtifact
from fashionist.services.media.materializer import ResultMaterializer
from fashionist.services.media.orchestrator import MediaOrchestrator
from fashionist.services.media.providers.base import BaseProvider
from fashionist.services.media.registry import ProviderRegistry, RegisteredProvider
from fashionist.utils.alerting import alert_tracker

# Variables that would otherwise leak provider enablement in from the shell.
PROVIDER_ENV_VARS = (
    "REPLICATE_API_TOKEN",
    "GEMINI_API_KEY",
    "GEMINI2APIKEY",
    "OPENAI_API_KEY",
    "POLLINATIONS_ENABLED",
    "AI_MOCK_PROVIDER_ENABLED",
    "AI_DEBUG_STORE_RAW",
    "MEDIA_STORAGE_BACKEND",
)


@pytest.fixture(autouse=True)
def _reset_settings_cache(monkeypatch):
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    alert_tracker.reset()
    yield
    get_settings.cache_clear()


def png_bytes(size=(64, 48), color=(200, 30, 60)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


class ScriptedProvider(BaseProvider):
    """Provider double: succeeds, raises ``error`` or sleeps for ``delay`` first."""

    def __init__(self, name, *, error=None, delay=0.0, content=None, media_type="image/png"):
        super().__init__()
        self.name = name
        self.label = name.title()
        self.credential_env = f"{name.upper()}_API_KEY"
        self.error = error
        self.delay = delay
        self.content = content if content is not None else png_bytes()
        self.media_type = media_type
        self.calls = []
        self.probes = 0

    async def generate(self, prompt, shape, *, timeout_seconds=30.0):
        self.calls.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ProviderArtifact(media_type=self.media_type, model=f"{self.name}-v1", content=self.content)

    async def probe(self, *, timeout_seconds=10.0):
        self.probes += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {"model": f"{self.name}-v1"}


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_registry(*rows):
    """Each row: (provider, priority, timeout_seconds[, enabled[, cost]])."""
    entries = []
    for row in rows:
        provider, priority, timeout = row[:3]
        enabled = row[3] if len(row) > 3 else True
        cost = row[4] if len(row) > 4 else 0.0
        entries.append(
            RegisteredProvider.of(
                provider, priority=priority, timeout_seconds=timeout, cost_per_call=cost, enabled=enabled
            )
        )
    return ProviderRegistry(entries)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scripted():
    return ScriptedProvider


@pytest.fixture
def registry_of():
    return make_registry


@pytest.fixture
def png():
    return png_bytes()


@pytest.fixture
def make_orchestrator(tmp_path, clock):
    def _make(registry, *, store=None, single_flight=True, success_ttl=3600, placeholder_ttl=60):
        cache = ResultCache(default_ttl_seconds=success_ttl, clock=clock)
        materializer = ResultMaterializer(store or LocalArtifactStore(str(tmp_path)))
        return MediaOrchestrator(
            registry,
            cache,
            materializer,
            success_ttl_seconds=success_ttl,
            placeholder_ttl_seconds=placeholder_ttl,
            single_flight=single_flight,
            rng=random.Random(7),
        )

    return _make
