from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"

    database_url: str = "sqlite:///./receipt_reader.db"
    local_storage_path: Path = Path(".local_storage")

    gemini_api_key: str | None = None
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    openrouter_api_key: str | None = None

    default_ocr_method: str = "gemini"
    ocr_template: str = "general"

    gemini_model: str = "gemini-1.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    openai_model: str = "gpt-4o"
    openai_base_url: str = "https://api.openai.com/v1"
    claude_model: str = "claude-3-haiku-20240307"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    anthropic_version: str = "2023-06-01"
    openrouter_model: str = "anthropic/claude-3-haiku"
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_referer: str = "https://expense-tracker-app.com"

    ocr_http_timeout_seconds: float = 60.0
    ocr_max_tokens: int = 2000


settings = Settings()
