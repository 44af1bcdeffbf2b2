from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import AliasChoices, AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .context import COMPANY_CONTEXT


class Settings(BaseSettings):
    """Central application configuration, built once per process."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Backend
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = Field(
        default="development",
        validation_alias=AliasChoices("ENVIRONMENT", "NODE_ENV"),
    )
    SHUTDOWN_GRACE_SECONDS: int = 10

    # URL used by the Streamlit frontend for chat requests
    BACKEND_API_URL: AnyHttpUrl = "http://localhost:8000/api/chat"

    # Upstream OpenAI-compatible API
    UPSTREAM_API_BASE: AnyHttpUrl = "https://api.groq.com/openai"
    UPSTREAM_API_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("UPSTREAM_API_KEY", "GROQ_API_KEY"),
    )
    UPSTREAM_TIMEOUT: float = 60.0
    DEFAULT_MODEL: str = "llama-3.3-70b-versatile"
    DEFAULT_TEMPERATURE: float = 0.7
    DEFAULT_MAX_TOKENS: int = 2048
    SYSTEM_PROMPT: str = COMPANY_CONTEXT

    # Persistence
    DATABASE_URL: str = "sqlite:///chat_history.db"
    MAX_CHAT_HISTORY: int = 100

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:8501"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def split_cors_origins(cls, value: object) -> List[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value  # type: ignore[return-value]

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, value: str) -> str:
        if not value.startswith("sqlite:///"):
            raise ValueError("Only sqlite:/// URLs are supported for DATABASE_URL")
        return value

    @field_validator("MAX_CHAT_HISTORY")
    @classmethod
    def validate_max_chat_history(cls, value: int) -> int:
        if value < 1:
            raise ValueError("MAX_CHAT_HISTORY must be at least 1")
        return value

    @property
    def api_configured(self) -> bool:
        return bool(self.UPSTREAM_API_KEY)

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def database_path(self) -> Path:
        return Path(self.DATABASE_URL.replace("sqlite:///", "")).expanduser().resolve()

    @property
    def upstream_base_url(self) -> str:
        return str(self.UPSTREAM_API_BASE).rstrip("/")

    @property
    def chat_completions_url(self) -> str:
        return f"{self.upstream_base_url}/v1/chat/completions"

    @property
    def models_url(self) -> str:
        return f"{self.upstream_base_url}/v1/models"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
