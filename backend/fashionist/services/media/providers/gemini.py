"""Gemini provider — text art-direction rendered locally into an SVG fashion card.

The Gemini text models cannot paint, so this adapter asks for a structured
brief (description, palette, keywords) and draws it. It is the bundled,
free-tier second choice in the default chain.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx

from fashionist.core.errors import ProviderError

from .. import svg
from ..contracts import ProviderArtifact, ShapeHints
from ..json_tools import extract_json
from .base import BaseProvider

logger = logging.getLogger(__name__)

GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"

BRIEF_INSTRUCTIONS = (
    "You are the creative director of a high-end fashion magazine. "
    "Write an art-direction brief for a single editorial photograph. "
    "Return ONLY a JSON object with keys: description (string, at most 90 words), "
    "palette (array of 3 hex colors), keywords (array of up to 6 short strings). "
    'Example: {"description": "...", "palette": ["#1a1a1a", "#D4AF37", "#f5f0e6"], '
    '"keywords": ["silk", "evening"]}'
)

DEFAULT_PALETTE = [svg.COLOR_BG, svg.COLOR_GOLD, "#f5f0e6"]


def render_card(brief: dict, subject: str, shape: ShapeHints, model: str) -> str:
    """Draw a Gemini brief as a magazine-style SVG card."""
    width, height = shape.dimensions
    palette = [c for c in brief.get("palette") or [] if svg.is_hex_color(c)][:3] or DEFAULT_PALETTE
    keywords = [str(k) for k in brief.get("keywords") or [] if str(k).strip()][:6]
    cx = width // 2
    margin = 48

    body = [
        f'<rect width="100%" height="100%" fill="{svg.COLOR_BG}"/>',
        f'<rect x="{margin // 2}" y="{margin // 2}" width="{width - margin}" height="{height - margin}" '
        f'fill="url(#briefGradient)" opacity="0.18" rx="18"/>',
        svg.text(cx, 110, "FASHIONIST", size=56, fill=svg.COLOR_GOLD, weight="bold", family=svg.FONT_STACK),
        svg.text(cx, 150, "AI Art Direction", size=20, fill=svg.COLOR_MUTED),
    ]
    lines, y = svg.wrapped(
        cx, 230, str(brief["description"]),
        width_chars=max(30, width // 22), line_height=34, max_lines=12, size=22,
    )
    body.extend(lines)

    if keywords:
        body.append(svg.text(cx, y + 30, "  ·  ".join(keywords).upper(), size=16, fill=svg.COLOR_GOLD))

    swatch_y = height - 200
    for i, color in enumerate(palette):
        x = cx - (len(palette) * 90) // 2 + i * 90
        body.append(f'<rect x="{x}" y="{swatch_y}" width="70" height="70" rx="35" fill="{color}" '
                    f'stroke="{svg.COLOR_GOLD}" stroke-width="1"/>')

    footer, _ = svg.wrapped(
        cx, height - 90, f'"{subject}"',
        width_chars=max(30, width // 14), line_height=20, max_lines=2, size=14, fill=svg.COLOR_MUTED,
    )
    body.extend(footer)
    body.append(svg.text(cx, height - 36, f"Rendered from {model}", size=12, fill=svg.COLOR_MUTED))

    return svg.document(
        width, height, body,
        defs=svg.linear_gradient("briefGradient", palette),
        title=subject[:80],
    )


class GeminiProvider(BaseProvider):
    name = "gemini"
    label = "Google Gemini"
    credential_env = "GEMINI_API_KEY"
    prompt_hint = "gemini"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gemini-1.5-flash",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(transport=transport)
        self._api_key = api_key
        self.model = model

    async def describe(self, prompt: str, *, timeout_seconds: float = 30.0) -> dict:
        """Ask Gemini for a structured brief; returns the parsed dict."""
        self._require_credential(self._api_key)
        try:
            async with self._client(timeout_seconds) as client:
                resp = await client.post(
                    f"{GEMINI_API_BASE}/{self.model}:generateContent",
                    headers={"x-goog-api-key": self._api_key, "Content-Type": "application/json"},
                    json={
                        "contents": [{"parts": [{"text": f"{BRIEF_INSTRUCTIONS}\n\nSubject: {prompt}"}]}],
                        "generationConfig": {
                            "temperature": 0.6,
                            "topP": 0.8,
                            "topK": 40,
                            "maxOutputTokens": 2048,
                            "responseMimeType": "application/json",
                        },
                    },
                )
                self._raise_for_status(resp)
                data = resp.json()
        except httpx.HTTPError as exc:
            raise self._transport_error(exc, timeout_seconds) from exc

        try:
            reply = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError(self.name, "response carried no candidate text") from exc

        brief = extract_json(reply)
        if not isinstance(brief, dict) or not str(brief.get("description") or "").strip():
            raise ProviderError(self.name, "could not parse art-direction brief")
        return brief

    async def generate(
        self,
        prompt: str,
        shape: ShapeHints,
        *,
        timeout_seconds: float = 30.0,
    ) -> ProviderArtifact:
        t0 = time.monotonic()
        brief = await self.describe(prompt, timeout_seconds=timeout_seconds)
        card = render_card(brief, prompt, shape, self.model)

        elapsed = (time.monotonic() - t0) * 1000
        logger.info("Gemini %s brief rendered in %.0fms", self.model, elapsed)
        return ProviderArtifact(
            media_type="image/svg+xml",
            model=self.model,
            content=card.encode("utf-8"),
            description=str(brief["description"]),
            extra={"keywords": brief.get("keywords") or [], "palette": brief.get("palette") or []},
        )

    async def probe(self, *, timeout_seconds: float = 10.0) -> dict:
        self._require_credential(self._api_key)
        try:
            async with self._client(timeout_seconds) as client:
                resp = await client.get(
                    f"{GEMINI_API_BASE}/{self.model}",
                    headers={"x-goog-api-key": self._api_key},
                )
                self._raise_for_status(resp)
        except httpx.HTTPError as exc:
            raise self._transport_error(exc, timeout_seconds) from exc
        return {"model": self.model}
