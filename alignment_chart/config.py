"""Application configuration with validation."""
from typing import Optional, Literal
from functools import lru_cache
from pydantic import Field, field_validator, model_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings. Every field has a default so the package imports without a .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Alignment Chart"
    APP_VERSION: str = "1.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    # API
    API_V1_PREFIX: str = "/api/v1"

    # Redis (shared analysis cache)
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SOCKET_TIMEOUT: float = Field(default=3.0, gt=0)
    CACHE_TTL_ANALYSIS: int = Field(default=1_209_600, gt=0)  # 14 days
    CACHE_SCHEMA_VERSION: str = "v1"

    # Enrichment providers
    ENRICHMENT_SOURCE: Literal["linkedin", "twitter"] = "linkedin"
    LINKEDIN_API_KEY: Optional[SecretStr] = None
    LINKEDIN_API_URL: str = "https://api.scrapin.io/enrichment/persons/activities/posts"
    EXA_API_KEY: Optional[SecretStr] = None
    EXA_API_URL: str = "https://api.exa.ai/contents"
    HTTP_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0, le=60)

    # LLM scorer
    OPENAI_API_KEY: Optional[SecretStr] = None
    OPENAI_BASE_URL: Optional[str] = None
    DEFAULT_LLM_MODEL: str = "gpt-4o-2024-08-06"
    LLM_TEMPERATURE: float = Field(default=0.8, ge=0, le=2)
    LLM_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # Prompt payload bounds
    PROMPT_MAX_POSTS: int = Field(default=20, ge=1, le=100)
    PROMPT_MAX_POST_CHARS: int = Field(default=1500, ge=50)

    # Avatars
    AVATAR_BASE_URL: str = "https://unavatar.io"
    AVATAR_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0, le=30)
    AVATAR_SAMPLE_SIZE: int = Field(default=20, ge=1, le=100)

    # Local placement store
    LOCAL_STORE_PATH: str = "data/alignment-chart.db"
    LOCAL_STORE_TABLE: str = Field(default="users", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    LOCAL_STORE_SCHEMA_VERSION: int = Field(default=1, ge=1)
    PERSIST_DEBOUNCE_SECONDS: float = Field(default=0.5, ge=0)

    @field_validator("AVATAR_BASE_URL", "LINKEDIN_API_URL", "EXA_API_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure production has the credentials the pipeline needs."""
        if self.APP_ENV == "production":
            if self.DEBUG:
                raise ValueError("DEBUG must be False in production")
            if not self.OPENAI_API_KEY:
                raise ValueError("OPENAI_API_KEY required in production")
        return self

    @property
    def cache_ttl_days(self) -> float:
        return self.CACHE_TTL_ANALYSIS / 86400


@lru_cache
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
