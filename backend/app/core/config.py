import os
from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
import logging


class Settings(BaseSettings):
    """
    Artifact agent platform configuration
    Manages all environment variables with validation and type safety
    """

    # Basic application settings
    APP_NAME: str = "Artifact Agents"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root logging level"
    )

    # API settings
    API_PREFIX: str = "/api/v1"
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # Database
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./artifact_agents.db",
        description="Async SQLAlchemy database URL"
    )

    # Multi-Provider LLM Configuration
    LLM_API_KEY: str = Field(
        default="mock-key",
        repr=False,
        description="LLM API key (auto-detects provider from key format)"
    )
    LLM_PROVIDER: Optional[str] = Field(
        default=None,
        description="Explicit LLM provider (openai|anthropic|google|fallback)"
    )
    LLM_MODEL: Optional[str] = Field(
        default=None,
        description="LLM model used when a request does not name one"
    )
    LLM_TEMPERATURE: float = Field(
        default=0.2,
        ge=0.0, le=2.0,
        description="LLM temperature for artifact agents"
    )
    LLM_MAX_TOKENS: int = Field(
        default=4000,
        description="Maximum tokens for LLM responses"
    )
    LLM_TIMEOUT: int = Field(
        default=60,
        description="LLM request timeout in seconds"
    )

    # Redis for the tool configuration cache
    REDIS_URL: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL"
    )

    # Agent orchestration
    AGENT_PROVIDER: str = Field(
        default="google",
        description="Provider suffix of agent configuration keys, e.g. python_agent_google"
    )
    ORCHESTRATOR_MAX_TOOL_ROUNDS: int = Field(
        default=5,
        ge=1,
        description="Maximum sequential tool-call rounds per chat turn"
    )
    ORCHESTRATOR_TEMPERATURE: float = Field(
        default=0.7,
        ge=0.0, le=2.0,
        description="Temperature of the primary conversational model"
    )

    # Tool configuration cache
    TOOL_CONFIG_CACHE_BACKEND: str = Field(
        default="memory",
        description="Tool configuration cache backend (memory|redis)"
    )
    TOOL_CONFIG_CACHE_TTL_SECONDS: int = Field(
        default=60,
        ge=0,
        description="Lifetime of cached agent configuration entries"
    )

    model_config = SettingsConfigDict(
        env_file=os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True
    )

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("DATABASE_URL")
    @classmethod
    def use_async_driver(cls, v):
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @field_validator("LLM_PROVIDER")
    @classmethod
    def validate_llm_provider(cls, v):
        if v:
            valid_providers = ["openai", "anthropic", "google", "fallback"]
            if v.lower() not in valid_providers:
                raise ValueError(f"Invalid LLM provider: {v}. Must be one of: {valid_providers}")
        return v

    @field_validator("TOOL_CONFIG_CACHE_BACKEND")
    @classmethod
    def validate_cache_backend(cls, v):
        if v not in ("memory", "redis"):
            raise ValueError("TOOL_CONFIG_CACHE_BACKEND must be 'memory' or 'redis'")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown LOG_LEVEL: {v}")
        return level


# Global settings instance
settings = Settings()
