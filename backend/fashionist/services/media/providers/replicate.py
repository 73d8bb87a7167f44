"""Replicate provider — FLUX image models, the ultra-low-cost first choice."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Optional

import httpx

from fashionist.core.errors import ProviderError

from ..contracts import ProviderArtifact, ShapeHints
from .base import BaseProvider

logger = logging.getLogger(__name__)

REPLICATE_API_URL = "https://api.replicate.com/v1/predictions"
REPLICATE_ACCOUNT_URL = "https://api.replicate.com/v1/account"

FLUX_VERSIONS: dict[str, str] = {
    "flux-schnell": "f2ab8a5569070ad0648a80556174f55c5e7bf6f5ca4ac2200e87a81b5db3cf80",
    "flux-dev": "5599ed30703defd1d160a25a63321b4dec97101d98b4674bcc56e41f62f35637",
    "flux-pro": "7437abc57c7e8a53ba7a3bb6e99dc26b887b31eaa02aba03b7b7c6f4c6b9e5b1",
}

TERMINAL_STATES = frozenset({"succeeded", "failed", "canceled"})

_MEDIA_TYPES = {"jpg": "image/jpeg", "png": "image/png", "webp": "image/webp"}


class ReplicateProvider(BaseProvider):
    name = "replicate"
    label = "Replicate FLUX"
    credential_env = "REPLICATE_API_TOKEN"
    prompt_hint = "flux"

    def __init__(
        self,
        api_token: str,
        *,
        model: str = "flux-schnell",
        poll_interval_seconds: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(transport=transport)
        self._api_token = api_token
        self.model = model if model in FLUX_VERSIONS else "flux-schnell"
        self._poll_interval = poll_interval_seconds

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_token}",
            "Content-Type": "application/json",
        }

    async def generate(
        self,
        prompt: str,
        shape: ShapeHints,
        *,
        timeout_seconds: float = 30.0,
    ) -> ProviderArtifact:
        self._require_credential(self._api_token)
        t0 = time.monotonic()
        payload = {
            "version": FLUX_VERSIONS[self.model],
            "input": {
                "prompt": prompt,
                "num_outputs": 1,
                "aspect_ratio": shape.aspect_ratio,
                "output_format": shape.output_format,
                "output_quality": 95 if shape.quality == "hd" else 90,
                "guidance_scale": 7.5,
                "num_inference_steps": 4 if self.model == "flux-schnell" else 20,
                "seed": random.randint(0, 999_999),
            },
        }

        try:
            async with self._client(timeout_seconds) as client:
                resp = await client.post(REPLICATE_API_URL, headers=self._headers, json=payload)
                self._raise_for_status(resp)
                prediction = resp.json()

                prediction = await self._wait_for(client, prediction)
                output_url = self._first_output(prediction)

                image = await client.get(output_url)
                self._raise_for_status(image)
                content = image.content
        except httpx.HTTPError as exc:
            raise self._transport_error(exc, timeout_seconds) from exc

        elapsed = (time.monotonic() - t0) * 1000
        logger.info("Replicate %s prediction %s done in %.0fms", self.model, prediction.get("id"), elapsed)
        return ProviderArtifact(
            media_type=image.headers.get("content-type", _MEDIA_TYPES[shape.output_format]).split(";")[0],
            model=self.model,
            content=content,
            source_url=output_url,
            extra={"prediction_id": prediction.get("id"), "seed": payload["input"]["seed"]},
        )

    async def _wait_for(self, client: httpx.AsyncClient, prediction: dict) -> dict:
        """Poll until the prediction reaches a terminal state.

        There is no local deadline; the orchestrator's per-call timeout
        cancels this loop.
        """
        poll_url = (prediction.get("urls") or {}).get("get") or f"{REPLICATE_API_URL}/{prediction.get('id')}"
        while prediction.get("status") not in TERMINAL_STATES:
            logger.debug("Replicate prediction %s: %s", prediction.get("id"), prediction.get("status"))
            await asyncio.sleep(self._poll_interval)
            resp = await client.get(poll_url, headers=self._headers)
            self._raise_for_status(resp)
            prediction = resp.json()
        return prediction

    def _first_output(self, prediction: dict) -> str:
        status = prediction.get("status")
        if status != "succeeded":
            raise ProviderError(self.name, f"prediction {status}: {prediction.get('error') or 'no detail'}")
        output = prediction.get("output")
        if isinstance(output, list):
            output = output[0] if output else None
        if not output or not isinstance(output, str):
            raise ProviderError(self.name, "prediction succeeded without output")
        return output

    async def probe(self, *, timeout_seconds: float = 10.0) -> dict:
        self._require_credential(self._api_token)
        try:
            async with self._client(timeout_seconds) as client:
                resp = await client.get(REPLICATE_ACCOUNT_URL, headers=self._headers)
                self._raise_for_status(resp)
                data = resp.json()
        except httpx.HTTPError as exc:
            raise self._transport_error(exc, timeout_seconds) from exc
        return {"model": self.model, "account": data.get("username", "")}
