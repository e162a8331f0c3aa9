"""
Configuration and settings for the blog backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="")

    # Database (any SQLAlchemy URL; Postgres expected in production)
    database_url: Optional[str] = Field(default=None)

    # Token signing
    jwt_secret: str = Field(default="change-me-in-production-please-32b")
    jwt_algorithm: str = Field(default="HS256")
    token_ttl_seconds: int = Field(default=3600)

    # Password hashing
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # HTTP server
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8080)
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Local image storage, served read-only under image_url_prefix
    image_dir: str = Field(default="images")
    image_url_prefix: str = Field(default="/images")

    # S3-compatible image storage (Tencent COS); used when cos_bucket is set
    cos_endpoint: Optional[str] = Field(default=None)
    cos_region: Optional[str] = Field(default=None)
    cos_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, validation_alias="GRAPHBLOG_USE_IN_MEMORY_BACKENDS"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
