"""Environment-based configuration for the dragonfly identifier."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from DRAGONFLYID_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DRAGONFLYID_",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    log_level: str = "INFO"

    # ML device (inference is skipped when the provider is missing)
    device: Literal["cpu", "cuda", "openvino"] = "cpu"
    inference_enabled: bool = True

    # Model and label resources
    models_dir: str = "models"
    model_filename: str = "model_unquant.onnx"
    model_repo_id: str | None = None
    labels_path: str = "models/labels.txt"

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=1, ge=1)

    # Input limits
    max_file_size: int = Field(default=10 * 1024 * 1024, ge=1)
    min_image_dimension: int = Field(default=50, ge=1)
    max_image_pixels: int = Field(default=16_777_216, ge=1)

    # Index selection for photos that match no reference image
    fallback_strategy: Literal["clock", "hash"] = "clock"

    @property
    def model_path(self) -> Path:
        return Path(self.models_dir) / self.model_filename


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
