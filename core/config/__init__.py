# core/config/__init__.py
# Single source of truth for Khulark configuration.

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_save_path() -> str:
    return str(Path.home() / ".khulark" / "khulark-save.json")


class KhularkSettings(BaseSettings):
    """Global Khulark configuration, read from KHULARK_* env vars (and .env)."""

    model_config = SettingsConfigDict(env_prefix="KHULARK_", extra="ignore", populate_by_name=True)

    # --- Remote model host ---
    cloudflare_account_id: str = Field(
        default="",
        validation_alias=AliasChoices("KHULARK_CLOUDFLARE_ACCOUNT_ID", "CLOUDFLARE_ACCOUNT_ID"),
    )
    cloudflare_api_token: str = Field(
        default="",
        validation_alias=AliasChoices("KHULARK_CLOUDFLARE_API_TOKEN", "CLOUDFLARE_API_TOKEN"),
    )
    ai_base_url: str = "https://api.cloudflare.com/client/v4"
    detection_model: str = "@cf/facebook/detr-resnet-50"
    language_model: str = "@cf/meta/llama-4-scout-17b-16e-instruct"
    detection_threshold: float = 0.5
    http_timeout: float = 60.0

    # --- Client side ---
    feed_url: str = "http://localhost:8000/feed-photo"

    # --- Persistence ---
    storage_backend: Literal["file", "redis", "memory"] = "file"
    save_path: str = Field(default_factory=_default_save_path)
    redis_url: str = "redis://localhost:6379/0"
    save_key: str = "khulark-save"

    @field_validator("ai_base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


# --- Singleton Instance ---
settings = KhularkSettings()
