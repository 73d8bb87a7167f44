"""Error taxonomy for the generative-media layer.

Only ``MalformedRequest`` and ``PersistenceFailure`` ever reach callers of the
orchestrator; the provider-side kinds are recorded as attempts and absorbed.
"""

from __future__ import annotations

from typing import Any


class MediaGenerationError(Exception):
    """Base class for all generation errors."""


class CredentialMissing(MediaGenerationError):
    def __init__(self, provider_id: str, env_var: str = "") -> None:
        self.provider_id = provider_id
        self.env_var = env_var
        hint = f" (set {env_var})" if env_var else ""
        super().__init__(f"Provider {provider_id!r} has no credentials{hint}")


class ProviderTimeout(MediaGenerationError):
    def __init__(self, provider_id: str, timeout_seconds: float) -> None:
        self.provider_id = provider_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Provider {provider_id!r} exceeded {timeout_seconds:g}s budget")


class ProviderError(MediaGenerationError):
    def __init__(self, provider_id: str, detail: str, *, status_code: int | None = None) -> None:
        self.provider_id = provider_id
        self.detail = detail
        self.status_code = status_code
        prefix = f"HTTP {status_code}: " if status_code else ""
        super().__init__(f"{provider_id}: {prefix}{detail}")


class MalformedRequest(MediaGenerationError):
    def __init__(self, detail: str, errors: list[dict[str, Any]] | None = None) -> None:
        self.detail = detail
        self.errors = errors or []
        super().__init__(detail)


class PersistenceFailure(MediaGenerationError):
    def __init__(self, detail: str, *, provider_id: str = "") -> None:
        self.detail = detail
        self.provider_id = provider_id
        super().__init__(detail)
