"""Small SVG building helpers shared by locally rendered artifacts."""

from __future__ import annotations

import re
import textwrap
from xml.sax.saxutils import escape

# ── Brand tokens ──────────────────────────────────────────────
COLOR_BG = "#0b0b0b"
COLOR_GOLD = "#D4AF37"
COLOR_TEXT = "#e8e2d0"
COLOR_MUTED = "#8a8474"
COLOR_ALERT = "#e0776b"
FONT_STACK = "'Playfair Display', Georgia, 'Times New Roman', serif"
SANS_STACK = "'Helvetica Neue', Arial, sans-serif"

_HEX_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


def is_hex_color(value: object) -> bool:
    return isinstance(value, str) and bool(_HEX_RE.match(value.strip()))


def text(x: int, y: int, content: str, *, size: int = 16, fill: str = COLOR_TEXT, anchor: str = "middle",
         weight: str = "normal", family: str = SANS_STACK) -> str:
    return (
        f'<text x="{x}" y="{y}" font-family="{family}" font-size="{size}" '
        f'fill="{fill}" text-anchor="{anchor}" font-weight="{weight}">{escape(content)}</text>'
    )


def wrapped(x: int, y: int, content: str, *, width_chars: int, line_height: int, max_lines: int,
            **kwargs) -> tuple[list[str], int]:
    """Wrap *content* into ``<text>`` lines; returns the elements and the next free y."""
    lines = textwrap.wrap(content, width=width_chars) or [""]
    if len(lines) > max_lines:
        lines = lines[:max_lines]
        lines[-1] = lines[-1][: max(0, width_chars - 3)].rstrip() + "..."
    elements = [text(x, y + i * line_height, line, **kwargs) for i, line in enumerate(lines)]
    return elements, y + len(lines) * line_height


def document(width: int, height: int, body: list[str], *, defs: str = "", title: str = "") -> str:
    title_el = f"<title>{escape(title)}</title>" if title else ""
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
        f'viewBox="0 0 {width} {height}">'
        f"{title_el}<defs>{defs}</defs>" + "".join(body) + "</svg>"
    )


def linear_gradient(gradient_id: str, colors: list[str]) -> str:
    if len(colors) == 1:
        colors = colors * 2
    step = 100 / (len(colors) - 1)
    stops = "".join(
        f'<stop offset="{round(i * step)}%" stop-color="{c}"/>' for i, c in enumerate(colors)
    )
    return f'<linearGradient id="{gradient_id}" x1="0%" y1="0%" x2="100%" y2="100%">{stops}</linearGradient>'
