"""Provider registry — the read-only, priority-ordered set of configured providers."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .providers.base import BaseProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderDescriptor:
    """Capability descriptor of one provider."""

    id: str
    label: str
    cost_per_call: float
    priority: int
    enabled: bool
    timeout_seconds: float
    credential_env: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "enabled": self.enabled,
            "priority": self.priority,
            "timeout_seconds": self.timeout_seconds,
            "cost_per_call": self.cost_per_call,
            "credential_env": self.credential_env,
        }


@dataclass(frozen=True)
class RegisteredProvider:
    descriptor: ProviderDescriptor
    provider: Optional[BaseProvider]

    @classmethod
    def of(
        cls,
        provider: BaseProvider,
        *,
        priority: int,
        timeout_seconds: float,
        cost_per_call: float = 0.0,
        enabled: bool = True,
    ) -> "RegisteredProvider":
        descriptor = ProviderDescriptor(
            id=provider.name,
            label=provider.label,
            cost_per_call=cost_per_call,
            priority=priority,
            enabled=enabled,
            timeout_seconds=timeout_seconds,
            credential_env=provider.credential_env,
        )
        return cls(descriptor=descriptor, provider=provider if enabled else None)


class UnknownProvider(KeyError):
    pass


class ProviderRegistry:
    """Built once at startup; never reordered or mutated while serving.

    Disabled providers stay visible to diagnostics but are never handed to
    the orchestrator.
    """

    def __init__(self, entries: Iterable[RegisteredProvider]) -> None:
        ordered = sorted(entries, key=lambda e: (e.descriptor.priority, e.descriptor.id))
        seen: set[str] = set()
        for entry in ordered:
            if entry.descriptor.id in seen:
                raise ValueError(f"Duplicate provider id {entry.descriptor.id!r}")
            if entry.descriptor.enabled and entry.provider is None:
                raise ValueError(f"Enabled provider {entry.descriptor.id!r} has no client")
            seen.add(entry.descriptor.id)
        self._entries: tuple[RegisteredProvider, ...] = tuple(ordered)
        self._by_id = {e.descriptor.id: e for e in self._entries}

    def list_enabled(self) -> list[ProviderDescriptor]:
        return [e.descriptor for e in self._entries if e.descriptor.enabled]

    def list_disabled(self) -> list[ProviderDescriptor]:
        return [e.descriptor for e in self._entries if not e.descriptor.enabled]

    def list_all(self) -> list[ProviderDescriptor]:
        return [e.descriptor for e in self._entries]

    def describe(self, provider_id: str) -> ProviderDescriptor:
        try:
            return self._by_id[provider_id].descriptor
        except KeyError:
            raise UnknownProvider(provider_id) from None

    def client(self, provider_id: str) -> BaseProvider:
        entry = self._by_id.get(provider_id)
        if entry is None:
            raise UnknownProvider(provider_id)
        if entry.provider is None:
            raise UnknownProvider(f"{provider_id} (disabled)")
        return entry.provider

    def log_status(self) -> None:
        enabled = self.list_enabled()
        for d in self.list_disabled():
            logger.warning("Provider %s disabled (configure %s)", d.id, d.credential_env or "credentials")
        if not enabled:
            logger.warning("No generation provider enabled; every request will return a placeholder")
            return
        logger.info(
            "Generation providers active %d/%d, order: %s",
            len(enabled),
            len(self._entries),
            " -> ".join(d.id for d in enabled),
        )

    def __len__(self) -> int:
        return len(self._entries)
