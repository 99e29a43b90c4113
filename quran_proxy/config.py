"""
Configuration management using Pydantic Settings.
Loads environment variables and provides centralized constants.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Quran Foundation endpoints per environment: (token URL, content API base URL)
_ENVIRONMENTS: dict[str, tuple[str, str]] = {
    "pre-production": (
        "https://prelive-oauth2.quran.foundation/oauth2/token",
        "https://apis-prelive.quran.foundation/content/api/v4",
    ),
    "production": (
        "https://oauth2.quran.foundation/oauth2/token",
        "https://apis.quran.foundation/content/api/v4",
    ),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Upstream credentials
    quran_client_id: str = Field(
        ...,
        description="OAuth2 client id issued by Quran Foundation (required)",
    )
    quran_client_secret: str = Field(
        ...,
        description="OAuth2 client secret issued by Quran Foundation (required)",
    )
    quran_env: Literal["pre-production", "production"] = Field(
        default="pre-production",
        description="Which Quran Foundation environment to talk to",
    )
    quran_auth_url: str = Field(
        default="",
        description="Override for the OAuth2 token endpoint",
    )
    quran_base_url: str = Field(
        default="",
        description="Override for the content API base URL",
    )

    # HTTP
    request_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout for upstream HTTP calls in seconds",
    )
    token_safety_margin: int = Field(
        default=300,
        ge=0,
        description="Seconds before expiry at which a token is considered stale",
    )
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Origin allowed by CORS",
    )
    host: str = Field(
        default="0.0.0.0",
        description="Interface the server binds to",
    )
    port: int = Field(
        default=5000,
        ge=1,
        le=65535,
        description="Port the server listens on",
    )

    # Cache TTL Settings (seconds)
    cache_ttl_all_chapters: int = Field(
        default=86400,
        ge=1,
        description="Cache TTL for the chapter list in seconds",
    )
    cache_ttl_chapter_detail: int = Field(
        default=43200,
        ge=1,
        description="Cache TTL for assembled chapter detail in seconds",
    )
    cache_ttl_juz_grouping: int = Field(
        default=21600,
        ge=1,
        description="Cache TTL for chapters-by-juz lists in seconds",
    )
    cache_ttl_verse_set: int = Field(
        default=21600,
        ge=1,
        description="Cache TTL for per-script verse lists in seconds",
    )
    cache_ttl_translation_set: int = Field(
        default=86400,
        ge=1,
        description="Cache TTL for chapter translations in seconds",
    )
    cache_sweep_interval: int = Field(
        default=3600,
        ge=1,
        description="Seconds between background sweeps of expired cache entries",
    )

    # Juz aggregation bounds
    juz_page_size: int = Field(default=50, ge=1, le=50)
    juz_max_pages: int = Field(default=5, ge=1)
    juz_max_stale_pages: int = Field(default=2, ge=1)
    juz_time_budget: float = Field(
        default=10.0,
        gt=0.0,
        description="Wall-clock budget for the juz page scan in seconds",
    )

    # Translation resources
    translation_resource_ids: list[int] = Field(
        default=[131, 85, 57, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10],
        description="Translation resources tried in order for chapter detail",
    )
    transliteration_resource_id: int = Field(default=57)
    chapter_translation_resource_id: int = Field(default=131)
    random_verse_translations: str = Field(default="85,131")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    @field_validator("quran_client_id", "quran_client_secret")
    @classmethod
    def validate_credentials(cls, v: str) -> str:
        """Ensure credentials are not empty."""
        if not v or v.strip() == "":
            raise ValueError("Quran API credentials must not be empty")
        return v.strip()

    @field_validator("quran_auth_url", "quran_base_url")
    @classmethod
    def validate_url_override(cls, v: str) -> str:
        """Ensure URL overrides are properly formatted."""
        v = v.strip().rstrip("/")
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("URL overrides must start with http:// or https://")
        return v

    @field_validator("translation_resource_ids")
    @classmethod
    def validate_resource_ids(cls, v: list[int]) -> list[int]:
        """Ensure at least one translation resource is configured."""
        if not v:
            raise ValueError("TRANSLATION_RESOURCE_IDS must not be empty")
        return v

    @property
    def auth_url(self) -> str:
        """Token endpoint for the selected environment."""
        return self.quran_auth_url or _ENVIRONMENTS[self.quran_env][0]

    @property
    def base_url(self) -> str:
        """Content API base URL for the selected environment."""
        return self.quran_base_url or _ENVIRONMENTS[self.quran_env][1]


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings singleton

    Raises:
        ValidationError: If required environment variables are missing or invalid
    """
    return Settings()
