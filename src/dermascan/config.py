"""Environment-based configuration for DermaScan."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from DERMASCAN_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DERMASCAN_",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Bundled model assets
    model_dir: str = "assets/models"
    topology_file: str = "model.onnx"
    weight_shards: tuple[str, str, str] = (
        "group1-shard1of3.bin",
        "group1-shard2of3.bin",
        "group1-shard3of3.bin",
    )

    # Optional Hugging Face repo to fetch missing assets from (None = bundled only)
    model_repo_id: str | None = None

    # Preprocessing
    input_size: int = Field(default=224, ge=1)
    jpeg_quality: int = Field(default=100, ge=1, le=100)

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # One active inference per session
    max_concurrent: int = Field(default=1, ge=1)

    # Seeds for the degraded paths (None = nondeterministic)
    fallback_seed: int | None = None
    degraded_seed: int | None = None

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
