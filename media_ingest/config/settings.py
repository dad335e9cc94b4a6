from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    upload_dir: Path = Path("uploads")
    staging_dir: Path = Path("staging")
    public_url_prefix: str = "/uploads"

    max_upload_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    allowed_mime_types: list[str] = ["image/jpeg", "image/jpg", "image/png", "image/webp"]
    verify_signatures: bool = True
    read_chunk_bytes: int = Field(default=64 * 1024, gt=0)

    default_target_width: int = Field(default=1920, gt=0)
    default_target_height: int = Field(default=1080, gt=0)
    default_quality: int = Field(default=85, ge=1, le=100)
    default_output_format: Literal["jpeg", "png", "webp"] = "jpeg"
    thumbnail_size: int = Field(default=200, ge=0)

    max_image_pixels: int = Field(default=40_000_000, gt=0)
    transform_memory_budget_bytes: int = Field(default=1024 * 1024 * 1024, gt=0)
    max_concurrent_transforms: int = Field(default=0, ge=0)
    max_batch_files: int = Field(default=3, gt=0)

    transcode_engine: str = "pillow"

    @field_validator("allowed_mime_types")
    @classmethod
    def _check_allowed_mime_types(cls, value: list[str]) -> list[str]:
        normalized = [mime.strip().lower() for mime in value]
        if not normalized:
            raise ValueError("allowed_mime_types must not be empty")
        unsupported = sorted(set(normalized) - SUPPORTED_MIME_TYPES)
        if unsupported:
            raise ValueError(
                f"Unsupported MIME types {unsupported}. Choose from: {sorted(SUPPORTED_MIME_TYPES)}"
            )
        return normalized

    @field_validator("public_url_prefix")
    @classmethod
    def _check_url_prefix(cls, value: str) -> str:
        prefix = "/" + value.strip().strip("/")
        if prefix == "/":
            raise ValueError("public_url_prefix must name a path segment, e.g. '/uploads'")
        return prefix
