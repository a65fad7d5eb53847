"""Environment-based configuration for FaceFinder."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from FACEFINDER_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FACEFINDER_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080

    # Cascade model: a bundled OpenCV cascade name, or an explicit file path
    cascade_model: str = "haarcascade_frontalface_default"
    cascade_path: str | None = None

    # Cascade parameters
    min_size: int = Field(default=20, ge=1)
    max_size: int = Field(default=2000, ge=1)
    scale_factor: float = Field(default=1.1, gt=1.0)
    iou_threshold: float = Field(default=0.18, ge=0.0, le=1.0)

    # Annotation
    score_threshold: float = 5.0
    marker: Literal["rectangle", "circle"] = "rectangle"
    stroke_width: int = Field(default=2, ge=1)
    marker_color: tuple[int, int, int] = (255, 255, 0)
    jpeg_quality: int = Field(default=100, ge=1, le=100)
    include_image: bool = False

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)
    queue_timeout: float = Field(default=5.0, gt=0.0)

    # Input limits
    image_field: str = "image"
    max_body_size: int = Field(default=134_217_728, ge=1)
    tmp_dir: str | None = None


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
