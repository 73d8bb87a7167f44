"""Mock provider — offline PNGs coloured from a hash of the prompt it receives.

The same prompt text always gives the same image; the orchestrator's prompt
enhancement adds a random lighting phrase, so repeat requests only match when
the orchestrator is given a seeded ``rng``.
"""

from __future__ import annotations

import hashlib
import io
import time

from PIL import Image, ImageDraw

from ..contracts import ProviderArtifact, ShapeHints
from .base import BaseProvider

# Small canvas; the mock is about wiring, not pixels.
MOCK_SCALE = 8


class MockProvider(BaseProvider):
    name = "mock"
    label = "Mock (offline)"
    credential_env = "AI_MOCK_PROVIDER_ENABLED"

    async def generate(
        self,
        prompt: str,
        shape: ShapeHints,
        *,
        timeout_seconds: float = 5.0,
    ) -> ProviderArtifact:
        t0 = time.monotonic()
        digest = hashlib.sha256(prompt.encode("utf-8")).digest()
        width, height = (d // MOCK_SCALE for d in shape.dimensions)

        img = Image.new("RGB", (width, height), (digest[0], digest[1], digest[2]))
        draw = ImageDraw.Draw(img)
        draw.rectangle(
            (width // 8, height // 8, width - width // 8, height - height // 8),
            outline=(212, 175, 55),
            width=3,
        )
        buf = io.BytesIO()
        img.save(buf, format="PNG")

        return ProviderArtifact(
            media_type="image/png",
            model="mock-v1",
            content=buf.getvalue(),
            extra={"render_ms": round((time.monotonic() - t0) * 1000, 2)},
        )

    async def probe(self, *, timeout_seconds: float = 5.0) -> dict:
        return {"model": "mock-v1"}
