"""OpenAI provider — DALL-E 3, the expensive high-quality last resort."""

from __future__ import annotations

import base64
import binascii
import logging
import time
from typing import Optional

import httpx

from fashionist.core.errors import ProviderError

from ..contracts import ProviderArtifact, ShapeHints
from .base import BaseProvider

logger = logging.getLogger(__name__)

OPENAI_IMAGES_URL = "https://api.openai.com/v1/images/generations"
OPENAI_MODELS_URL = "https://api.openai.com/v1/models"

# DALL-E 3 only renders three canvas sizes.
_SIZES = {
    "1:1": "1024x1024",
    "16:9": "1792x1024",
    "4:3": "1792x1024",
    "9:16": "1024x1792",
    "3:4": "1024x1792",
}


class OpenAIProvider(BaseProvider):
    name = "openai"
    label = "OpenAI DALL-E 3"
    credential_env = "OPENAI_API_KEY"
    prompt_hint = "dalle"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "dall-e-3",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(transport=transport)
        self._api_key = api_key
        self.model = model

    async def generate(
        self,
        prompt: str,
        shape: ShapeHints,
        *,
        timeout_seconds: float = 60.0,
    ) -> ProviderArtifact:
        self._require_credential(self._api_key)
        t0 = time.monotonic()
        try:
            async with self._client(timeout_seconds) as client:
                resp = await client.post(
                    OPENAI_IMAGES_URL,
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": self.model,
                        "prompt": prompt,
                        "n": 1,
                        "size": _SIZES[shape.aspect_ratio],
                        "quality": shape.quality,
                        "style": "vivid",
                        "response_format": "b64_json",
                    },
                )
                self._raise_for_status(resp)
                data = resp.json()
        except httpx.HTTPError as exc:
            raise self._transport_error(exc, timeout_seconds) from exc

        items = data.get("data") or []
        if not items or not items[0].get("b64_json"):
            raise ProviderError(self.name, "response carried no image data")
        try:
            content = base64.b64decode(items[0]["b64_json"], validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ProviderError(self.name, "image data is not valid base64") from exc

        elapsed = (time.monotonic() - t0) * 1000
        logger.info("OpenAI %s image generated in %.0fms", self.model, elapsed)
        return ProviderArtifact(
            media_type="image/png",
            model=self.model,
            content=content,
            extra={"revised_prompt": items[0].get("revised_prompt")},
        )

    async def probe(self, *, timeout_seconds: float = 10.0) -> dict:
        self._require_credential(self._api_key)
        try:
            async with self._client(timeout_seconds) as client:
                resp = await client.get(
                    f"{OPENAI_MODELS_URL}/{self.model}",
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
                self._raise_for_status(resp)
        except httpx.HTTPError as exc:
            raise self._transport_error(exc, timeout_seconds) from exc
        return {"model": self.model}
