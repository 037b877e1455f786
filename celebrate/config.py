"""
Configuration and settings for the celebration site backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings, built once and passed down explicitly."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # JSON document store and local file locations
    data_file: str = Field(default="data/db.json")
    uploads_dir: str = Field(default="public/uploads")
    backups_dir: str = Field(default="backups")
    # Empty keeps local upload URLs relative ("/uploads/<id>.<ext>").
    public_base_url: str = Field(default="")

    storage_type: Literal["local", "s3", "cloudinary"] = Field(default="local")

    # S3 (or any S3-compatible store)
    aws_s3_bucket_name: Optional[str] = Field(default=None)
    aws_s3_region: str = Field(default="us-east-1")
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    aws_s3_base_url: Optional[str] = Field(default=None)
    aws_s3_endpoint: Optional[str] = Field(default=None)

    # Cloudinary
    cloudinary_cloud_name: Optional[str] = Field(default=None)
    cloudinary_api_key: Optional[str] = Field(default=None)
    cloudinary_api_secret: Optional[str] = Field(default=None)
    cloudinary_upload_preset: Optional[str] = Field(default=None)

    # LLM / Gemini
    gemini_api_key: Optional[str] = Field(default=None)
    gemini_model: str = Field(default="gemini-2.5-flash")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Hosting detection, only used to emit warnings and status reports
    app_env: str = Field(default="development")
    vercel: Optional[str] = Field(default=None)
    netlify: Optional[str] = Field(default=None)
    railway_environment: Optional[str] = Field(default=None)

    # Cache invalidation webhook for the frontend
    revalidate_endpoint: Optional[str] = Field(default=None)
    revalidate_secret: Optional[str] = Field(default=None)

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @property
    def hosting_platform(self) -> Optional[str]:
        if self.vercel:
            return "Vercel"
        if self.netlify:
            return "Netlify"
        if self.railway_environment:
            return "Railway"
        return None

    @property
    def is_hosted(self) -> bool:
        return self.hosting_platform is not None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
