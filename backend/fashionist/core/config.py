from functools import lru_cache
from typing import Annotated

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        validate_by_name=True,
        populate_by_name=True,
    )

    environment: str = "development"
    expose_error_details: bool = False
    docs_enabled: bool = Field(default=True)
    openapi_enabled: bool = Field(default=True)

    cors_allow_origins: Annotated[list[str], NoDecode] = Field(default_factory=list)

    # --- Provider credentials (absence disables the provider) ---
    replicate_api_token: str = ""
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GEMINI_API_KEY", "GEMINI2APIKEY"),
    )
    openai_api_key: str = ""

    # Key-less providers are opt-in.
    pollinations_enabled: bool = False
    ai_mock_provider_enabled: bool = False

    # --- Provider models ---
    replicate_model: str = "flux-schnell"
    gemini_model: str = "gemini-1.5-flash"
    openai_image_model: str = "dall-e-3"
    pollinations_model: str = "flux"

    # --- Priority rank (lower = tried first) ---
    replicate_priority: int = 1
    gemini_priority: int = 2
    openai_priority: int = 3
    pollinations_priority: int = 4
    mock_priority: int = 99

    # --- Per-call timeout budgets (seconds) ---
    replicate_timeout_seconds: float = 30.0
    gemini_timeout_seconds: float = 30.0
    openai_timeout_seconds: float = 60.0
    pollinations_timeout_seconds: float = 45.0
    mock_timeout_seconds: float = 5.0

    # --- Cost-per-call estimates (USD) ---
    replicate_cost_per_call: float = 0.003
    gemini_cost_per_call: float = 0.0
    openai_cost_per_call: float = 0.04
    pollinations_cost_per_call: float = 0.0
    mock_cost_per_call: float = 0.0

    # --- Cache ---
    ai_cache_success_ttl_seconds: int = 3600
    ai_cache_placeholder_ttl_seconds: int = 60
    ai_cache_max_entries: int = 1000
    ai_single_flight_enabled: bool = True

    # --- Audit ---
    ai_debug_store_raw: bool = False

    # --- Artifact storage ---
    media_storage_backend: str = "local"
    media_storage_root: str = "uploads/generated"
    media_public_prefix: str = ""
    media_thumbnails_enabled: bool = True
    media_download_timeout_seconds: float = 30.0

    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: str = ""
    supabase_media_bucket: str = "generated-media"

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_csv(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            if value.strip() == "":
                return []
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("media_storage_backend", "replicate_model")
    @classmethod
    def _normalize_choice(cls, value: str) -> str:
        return value.lower().strip()

    @property
    def is_production(self) -> bool:
        return self.environment.lower().strip() == "production"

    def validate_required_config(self) -> list[str]:
        """Return human-readable configuration problems (empty list = OK)."""
        errors: list[str] = []
        if self.media_storage_backend not in {"local", "supabase"}:
            errors.append(f"MEDIA_STORAGE_BACKEND must be 'local' or 'supabase', got {self.media_storage_backend!r}")
        if self.media_storage_backend == "supabase":
            if not self.supabase_url:
                errors.append("SUPABASE_URL is required for the supabase storage backend")
            if not (self.supabase_service_role_key or self.supabase_key):
                errors.append("SUPABASE_SERVICE_ROLE_KEY or SUPABASE_KEY is required for the supabase storage backend")
        if self.ai_cache_placeholder_ttl_seconds >= self.ai_cache_success_ttl_seconds:
            errors.append("AI_CACHE_PLACEHOLDER_TTL_SECONDS should be shorter than AI_CACHE_SUCCESS_TTL_SECONDS")
        return errors


@lru_cache

def get_settings() -> Settings:
    return Settings()
