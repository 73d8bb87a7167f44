"""Result cache — content-addressed TTL store for final orchestration outcomes."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any, Optional

from .contracts import GenerationRequest, GenerationResult

logger = logging.getLogger(__name__)

KEY_PREFIX = "media_gen_"
DEFAULT_TTL_SECONDS = 3600
DEFAULT_MAX_ENTRIES = 1000


def _canonical(value: Any) -> Any:
    """Sort list-valued fields so element order never changes the key."""
    if isinstance(value, dict):
        return {k: _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        items = [_canonical(v) for v in value]
        return sorted(items, key=lambda v: json.dumps(v, sort_keys=True))
    return value


def normalized_key(request: GenerationRequest) -> str:
    """Deterministic digest of the pre-enhancement request."""
    payload = _canonical(request.model_dump(mode="json"))
    serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
    return f"{KEY_PREFIX}{digest}"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: GenerationResult
    created_at: float
    ttl_seconds: float

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ResultCache:
    """Thread-safe in-memory TTL map of normalized key -> ``GenerationResult``.

    Only final outcomes are stored here (successes and placeholders); single
    provider failures are never cached.
    """

    def __init__(
        self,
        *,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()
        self._default_ttl = default_ttl_seconds
        self._max_entries = max(1, int(max_entries))
        self._clock = clock
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[GenerationResult]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.is_expired(now):
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry.value

    def set(self, key: str, result: GenerationResult, ttl: Optional[float] = None) -> None:
        ttl_seconds = self._default_ttl if ttl is None else ttl
        if ttl_seconds <= 0:
            return
        now = self._clock()
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_entries:
                self._evict(now)
            self._entries[key] = CacheEntry(key=key, value=result, created_at=now, ttl_seconds=ttl_seconds)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def flush_all(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Flushed %d cached generation result(s)", count)
        return count

    def _evict(self, now: float) -> None:
        """Drop expired entries, then the oldest one if still full (called under lock)."""
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if len(self._entries) >= self._max_entries:
            oldest = min(self._entries.values(), key=lambda e: e.created_at)
            del self._entries[oldest.key]

    def stats(self) -> dict[str, int]:
        with self._lock:
            size = len(self._entries)
        return {"entries": size, "hits": self.hits, "misses": self.misses, "max_entries": self._max_entries}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
