"""
Service Settings

Pydantic settings for endpoints, keys and the HTTP server.
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings

from .env_loader import ensure_env_loaded, get_image_api_key, get_llm_api_key


class Settings(BaseSettings):
    """Service settings read from the environment and .env."""

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    debug: bool = Field(default=False)
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"]
    )
    render_rate_limit: str = Field(default="30/minute")

    # Text and image models (OpenAI-compatible)
    llm_base_url: str = Field(default="https://api.openai.com/v1")
    llm_api_key: str = Field(default="")
    image_base_url: str = Field(default="https://api.openai.com/v1")
    image_api_key: str = Field(default="")

    # Supabase
    supabase_url: str = Field(default="")
    supabase_anon_key: str = Field(default="")
    supabase_service_key: str = Field(default="")

    # "memory" or "supabase"
    record_backend: str = Field(default="memory")
    config_path: str = Field(default="config/previz_config.json")

    class Config:
        env_prefix = "PREVIZ_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def resolved_llm_api_key(self) -> str:
        return self.llm_api_key or get_llm_api_key() or ""

    def resolved_image_api_key(self) -> str:
        return self.image_api_key or get_image_api_key() or ""

    @property
    def functions_url(self) -> str:
        return f"{self.supabase_url.rstrip('/')}/functions/v1"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    ensure_env_loaded()
    return Settings()
