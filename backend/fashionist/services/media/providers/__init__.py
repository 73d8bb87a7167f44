"""Provider factory — builds the registry from settings."""

from __future__ import annotations

import logging
from typing import Optional

from fashionist.core.config import Settings, get_settings

from ..registry import ProviderRegistry, RegisteredProvider
from .base import BaseProvider
from .gemini import GeminiProvider
from .mock import MockProvider
from .openai import OpenAIProvider
from .pollinations import PollinationsProvider
from .replicate import ReplicateProvider

logger = logging.getLogger(__name__)

__all__ = [
    "BaseProvider",
    "GeminiProvider",
    "MockProvider",
    "OpenAIProvider",
    "PollinationsProvider",
    "ReplicateProvider",
    "build_registry",
]


def _entry(provider: BaseProvider, settings: Settings, enabled: bool) -> RegisteredProvider:
    prefix = provider.name
    return RegisteredProvider.of(
        provider,
        priority=getattr(settings, f"{prefix}_priority"),
        timeout_seconds=getattr(settings, f"{prefix}_timeout_seconds"),
        cost_per_call=getattr(settings, f"{prefix}_cost_per_call"),
        enabled=enabled,
    )


def build_registry(settings: Optional[Settings] = None) -> ProviderRegistry:
    """Return a ``ProviderRegistry`` for the configured providers.

    A provider whose credential is absent is registered as disabled; this
    never raises.
    """
    settings = settings or get_settings()

    entries = [
        _entry(
            ReplicateProvider(settings.replicate_api_token, model=settings.replicate_model),
            settings,
            bool(settings.replicate_api_token),
        ),
        _entry(
            GeminiProvider(settings.gemini_api_key, model=settings.gemini_model),
            settings,
            bool(settings.gemini_api_key),
        ),
        _entry(
            OpenAIProvider(settings.openai_api_key, model=settings.openai_image_model),
            settings,
            bool(settings.openai_api_key),
        ),
        _entry(
            PollinationsProvider(model=settings.pollinations_model),
            settings,
            settings.pollinations_enabled,
        ),
        _entry(MockProvider(), settings, settings.ai_mock_provider_enabled),
    ]

    registry = ProviderRegistry(entries)
    registry.log_status()
    return registry
