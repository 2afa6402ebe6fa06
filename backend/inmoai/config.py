"""
Application configuration using pydantic-settings.
Loads environment variables from .env file.

Nested config groups are env-overridable via the double-underscore
delimiter, e.g.:
    PRIMARY_AGENT__WEBHOOK_URL=https://example.app.n8n.cloud/webhook/abc
    PRIMARY_AGENT__MAX_RETRIES=5
    ORCHESTRATOR__PRIMARY_TIMEOUT_SECONDS=90
    STORAGE__LOCAL_STORE_PATH=/var/lib/inmoai/properties.json
"""

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PrimaryAgentConfig(BaseModel):
    """External orchestration webhook (n8n) parameters."""

    # Empty disables the primary agent; every run goes to the fallback
    webhook_url: str = ""
    max_retries: int = 3
    initial_backoff_seconds: float = 1.0
    request_timeout_seconds: float = 60.0
    # Substring of the "resultado" field that marks a remote-side failure
    failure_keyword: str = "fallado"


class FallbackAgentConfig(BaseModel):
    """Direct AI provider call parameters."""

    max_tokens: int = 4000
    temperature: float = 0.4
    # Temporal framing injected into the prompt
    reference_month: str = "Diciembre"
    reference_year: int = 2025


class OrchestratorConfig(BaseModel):
    """Latency budget for each agent attempt.

    Env-overridable via ORCHESTRATOR__KEY format, e.g.:
        ORCHESTRATOR__PRIMARY_TIMEOUT_SECONDS=90
    """

    primary_timeout_seconds: float = 120.0
    fallback_timeout_seconds: float = 90.0


class StorageConfig(BaseModel):
    """Persistence backend parameters."""

    # Empty path keeps the local store in memory only
    local_store_path: str = ""
    properties_table: str = "properties"
    reports_table: str = "reports"


class GeocodingConfig(BaseModel):
    """Location autocomplete (Nominatim) parameters."""

    base_url: str = "https://nominatim.openstreetmap.org/search"
    region_suffix: str = "Madrid"
    country_codes: str = "es"
    limit: int = 5
    min_query_length: int = 3
    user_agent: str = "inmoai-analytics/0.1"
    timeout_seconds: float = 5.0


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # API Keys
    openai_api_key: str
    telegram_bot_token: str = ""
    telegram_api_base: str = "https://api.telegram.org"

    # Supabase (database mode is enabled only when both are set)
    supabase_url: str = ""
    supabase_publishable_key: str = ""

    # OpenAI Model Configuration
    openai_model: str = "gpt-4o-mini"
    openai_chat_model: str = "gpt-4o-mini"

    # LangSmith / Observability
    langsmith_api_key: str = ""
    langsmith_project: str = "inmoai"
    langchain_tracing_v2: bool = False  # Explicit opt-in

    # App Settings
    debug: bool = False
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Nested config groups (env-overridable via SECTION__KEY format)
    primary_agent: PrimaryAgentConfig = Field(default_factory=PrimaryAgentConfig)
    fallback_agent: FallbackAgentConfig = Field(default_factory=FallbackAgentConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    geocoding: GeocodingConfig = Field(default_factory=GeocodingConfig)

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_publishable_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
