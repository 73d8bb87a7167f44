"""Pollinations provider — free public endpoint, no API key."""

from __future__ import annotations

import logging
import random
import time
from typing import Optional
from urllib.parse import quote

import httpx

from fashionist.core.errors import ProviderError

from ..contracts import ProviderArtifact, ShapeHints
from .base import BaseProvider

logger = logging.getLogger(__name__)

POLLINATIONS_IMAGE_URL = "https://image.pollinations.ai/prompt"
POLLINATIONS_MODELS_URL = "https://image.pollinations.ai/models"


class PollinationsProvider(BaseProvider):
    name = "pollinations"
    label = "Pollinations.ai"
    credential_env = "POLLINATIONS_ENABLED"
    prompt_hint = "flux"

    def __init__(
        self,
        *,
        model: str = "flux",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(transport=transport)
        self.model = model

    def build_url(self, prompt: str, shape: ShapeHints, seed: int) -> str:
        width, height = shape.dimensions
        return (
            f"{POLLINATIONS_IMAGE_URL}/{quote(prompt, safe='')}"
            f"?width={width}&height={height}&seed={seed}&model={self.model}&nologo=true&enhance=false"
        )

    async def generate(
        self,
        prompt: str,
        shape: ShapeHints,
        *,
        timeout_seconds: float = 45.0,
    ) -> ProviderArtifact:
        t0 = time.monotonic()
        seed = random.randint(0, 999_999)
        url = self.build_url(prompt, shape, seed)

        try:
            async with self._client(timeout_seconds, follow_redirects=True) as client:
                resp = await client.get(url, headers={"Accept": "image/*"})
                self._raise_for_status(resp)
        except httpx.HTTPError as exc:
            raise self._transport_error(exc, timeout_seconds) from exc

        content_type = resp.headers.get("content-type", "").split(";")[0].strip()
        if not content_type.startswith("image/"):
            raise ProviderError(self.name, f"response is not an image: {content_type or 'unknown'}")
        if not resp.content:
            raise ProviderError(self.name, "empty image body")

        elapsed = (time.monotonic() - t0) * 1000
        logger.info("Pollinations %s image generated in %.0fms", self.model, elapsed)
        return ProviderArtifact(
            media_type=content_type,
            model=self.model,
            content=resp.content,
            extra={"seed": seed},
        )

    async def probe(self, *, timeout_seconds: float = 10.0) -> dict:
        try:
            async with self._client(timeout_seconds) as client:
                resp = await client.get(POLLINATIONS_MODELS_URL)
                self._raise_for_status(resp)
        except httpx.HTTPError as exc:
            raise self._transport_error(exc, timeout_seconds) from exc
        return {"model": self.model}
