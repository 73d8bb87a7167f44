"""JSON extraction from free-form model replies."""

from __future__ import annotations

import json
import logging
import re

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _loads(text: str) -> dict | list | None:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def extract_json(text: str) -> dict | list | None:
    """Return the first JSON object or array found in *text*, else ``None``.

    Tries, in order: the whole reply, the first fenced code block, then a
    brace-balanced scan from each ``{`` / ``[``.
    """
    if not text or not text.strip():
        return None

    stripped = text.strip()
    parsed = _loads(stripped)
    if parsed is not None and isinstance(parsed, (dict, list)):
        return parsed

    fence = _FENCE_RE.search(stripped)
    if fence:
        parsed = _loads(fence.group(1).strip())
        if isinstance(parsed, (dict, list)):
            return parsed

    for start, ch in enumerate(stripped):
        if ch not in "{[":
            continue
        candidate = _balanced_span(stripped, start)
        if candidate is None:
            continue
        parsed = _loads(candidate)
        if parsed is not None:
            return parsed

    logger.debug("No JSON found in %d-char reply", len(stripped))
    return None


def _balanced_span(text: str, start: int) -> str | None:
    """Return ``text[start:end]`` where the bracket opened at *start* closes."""
    closer = {"{": "}", "[": "]"}
    stack = [closer[text[start]]]
    in_string = False
    escape = False

    for i in range(start + 1, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in closer:
            stack.append(closer[ch])
        elif ch in "}]":
            if ch != stack.pop():
                return None
            if not stack:
                return text[start : i + 1]
    return None
