"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Redis (delivery dedup + status)
    REDIS_URL: str = "redis://localhost:6379/0"
    DEDUP_TTL_SECONDS: int = 24 * 60 * 60

    # Fathom webhook
    FATHOM_WEBHOOK_SECRET: str = ""

    # Document tree (the OS knowledge base repo)
    OS_PATH: str = "./ai-agency-development-os"
    TREE_ROOT_MARKER: str = "claude-code-os-implementation/"
    CONTEXT_TTL_SECONDS: int = 300

    # Git
    GIT_AUTHOR_NAME: str = "Fathom Bot"
    GIT_AUTHOR_EMAIL: str = "bot@example.com"
    GIT_AUTO_COMMIT: bool = True
    GIT_AUTO_PUSH: bool = False

    # Pipeline
    DEAD_LETTER_DIR: str = "./logs/failed-webhooks"
    WORKER_COUNT: int = 4
    QUEUE_MAX_SIZE: int = 100
    PROCESSOR_TIMEOUT_SECONDS: float = 120.0

    # LLM
    ANTHROPIC_API_KEY: str = ""
    LLM_MODEL: str = "anthropic/claude-sonnet-4-20250514"
    LLM_MAX_TOKENS: int = 8192
    LLM_MAX_RETRIES: int = 3

    # Slack (best-effort notification)
    SLACK_WEBHOOK_URL: str = ""
    SLACK_CHANNEL: str = "#meeting-summaries"

    # Gamma (best-effort presentation)
    GAMMA_API_KEY: str = ""
    GAMMA_THEME_ID: str = "Oasis"

    # Monitoring
    SENTRY_DSN: str = ""

    @property
    def document_root(self) -> Path:
        """Absolute path of the tree-root directory inside OS_PATH."""
        return (Path(self.OS_PATH) / self.TREE_ROOT_MARKER.strip("/")).resolve()


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
