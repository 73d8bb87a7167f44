"""Abstract base for all generation providers."""

from __future__ import annotations

import abc
from typing import Optional

import httpx

from fashionist.core.errors import CredentialMissing, MediaGenerationError, ProviderError, ProviderTimeout

from ..contracts import ProviderArtifact, ShapeHints


class BaseProvider(abc.ABC):
    """Contract that every generation provider must implement.

    Adapters own their wire format entirely; the orchestrator only sees
    ``ProviderArtifact`` or one of the error kinds.
    """

    name: str = "base"
    label: str = "Base"
    credential_env: str = ""
    # Key into the prompt pipeline's vendor phrasing.
    prompt_hint: str = "generic"

    def __init__(self, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    def _client(self, timeout_seconds: float, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout_seconds, transport=self._transport, **kwargs)

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.is_success:
            return
        detail = resp.text[:200] if resp.text else resp.reason_phrase
        raise ProviderError(self.name, detail, status_code=resp.status_code)

    def _transport_error(self, exc: httpx.HTTPError, timeout_seconds: float) -> MediaGenerationError:
        if isinstance(exc, httpx.TimeoutException):
            return ProviderTimeout(self.name, timeout_seconds)
        return ProviderError(self.name, f"transport error: {exc}")

    def _require_credential(self, value: Optional[str]) -> None:
        if not value:
            raise CredentialMissing(self.name, self.credential_env)

    @abc.abstractmethod
    async def generate(
        self,
        prompt: str,
        shape: ShapeHints,
        *,
        timeout_seconds: float = 30.0,
    ) -> ProviderArtifact:
        """Produce an artifact for the enhanced *prompt*."""

    @abc.abstractmethod
    async def probe(self, *, timeout_seconds: float = 10.0) -> dict:
        """Cheap, non-billable reachability check. Raises on failure."""
