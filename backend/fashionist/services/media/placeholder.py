"""Placeholder generator — the offline, self-describing artifact returned when
every provider failed. It never touches the network or the disk."""

from __future__ import annotations

import base64
from collections.abc import Sequence
from datetime import datetime, timezone

from . import svg
from .contracts import AttemptOutcome, GenerationAttempt, GenerationRequest

WIDTH = 1024
HEIGHT = 1024
MAX_ROWS = 8

_OUTCOME_LABELS = {
    AttemptOutcome.TIMEOUT: "TIMEOUT",
    AttemptOutcome.PROVIDER_ERROR: "ERROR",
    AttemptOutcome.SKIPPED: "NOT CONFIGURED",
    AttemptOutcome.SUCCESS: "OK",
}


class PlaceholderGenerator:
    def render(
        self,
        request: GenerationRequest,
        attempts: Sequence[GenerationAttempt],
        skipped: Sequence[GenerationAttempt] = (),
    ) -> str:
        cx = WIDTH // 2
        body = [
            f'<rect width="100%" height="100%" fill="{svg.COLOR_BG}"/>',
            f'<rect x="20" y="20" width="{WIDTH - 40}" height="{HEIGHT - 40}" fill="none" '
            f'stroke="{svg.COLOR_GOLD}" stroke-width="3" rx="20"/>',
            svg.text(cx, 120, "FASHIONIST", size=52, fill=svg.COLOR_GOLD, weight="bold", family=svg.FONT_STACK),
            svg.text(cx, 170, "Image temporarily unavailable", size=24, fill=svg.COLOR_TEXT),
            svg.text(cx, 240, "YOUR REQUEST", size=16, fill=svg.COLOR_MUTED, weight="bold"),
        ]
        lines, y = svg.wrapped(
            cx, 275, f'"{request.prompt}"', width_chars=64, line_height=26, max_lines=4, size=18,
        )
        body.extend(lines)

        context = ", ".join(
            [*request.style.styles, *request.style.seasons, *request.style.occasions, *request.style.colors]
        )
        if context:
            body.append(svg.text(cx, y + 10, context, size=14, fill=svg.COLOR_MUTED))
        body.append(svg.text(
            cx, y + 36, f"{request.shape.aspect_ratio} · {request.shape.quality}", size=14, fill=svg.COLOR_MUTED,
        ))

        table_y = max(y + 100, 460)
        body.append(svg.text(cx, table_y, "PROVIDERS TRIED", size=16, fill=svg.COLOR_MUTED, weight="bold"))
        rows = list(attempts) + list(skipped)
        if not rows:
            body.append(svg.text(cx, table_y + 40, "No providers configured", size=18, fill=svg.COLOR_ALERT))
        for i, attempt in enumerate(rows[:MAX_ROWS]):
            row_y = table_y + 40 + i * 44
            color = svg.COLOR_MUTED if attempt.outcome is AttemptOutcome.SKIPPED else svg.COLOR_ALERT
            body.append(svg.text(120, row_y, attempt.provider_id, size=18, fill=svg.COLOR_TEXT, anchor="start",
                                 weight="bold"))
            body.append(svg.text(330, row_y, _OUTCOME_LABELS[attempt.outcome], size=16, fill=color, anchor="start"))
            detail = (attempt.error or "")[:52]
            if attempt.latency_ms:
                detail = f"{attempt.latency_ms:.0f}ms  {detail}"
            body.append(svg.text(500, row_y, detail, size=14, fill=svg.COLOR_MUTED, anchor="start"))

        body.append(svg.text(
            cx, HEIGHT - 80, "We will retry the generation providers shortly.", size=16, fill=svg.COLOR_GOLD,
        ))
        body.append(svg.text(
            cx, HEIGHT - 45, f"Generated {datetime.now(timezone.utc):%Y-%m-%d %H:%M} UTC", size=12,
            fill=svg.COLOR_MUTED,
        ))
        return svg.document(WIDTH, HEIGHT, body, title="Placeholder: all generation providers failed")

    def build(
        self,
        request: GenerationRequest,
        attempts: Sequence[GenerationAttempt],
        skipped: Sequence[GenerationAttempt] = (),
    ) -> str:
        """Return the placeholder as a ``data:`` URI the UI can render inline."""
        document = self.render(request, attempts, skipped)
        encoded = base64.b64encode(document.encode("utf-8")).decode("ascii")
        return f"data:image/svg+xml;base64,{encoded}"
