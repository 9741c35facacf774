"""Configuration management for acrodetect."""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Model
    model_path: str = "FFDNet-S"
    model_cache_dir: Path = Path.home() / ".cache" / "acrodetect" / "models"
    onnx_providers: list[str] = Field(default_factory=lambda: ["CPUExecutionProvider"])

    # Detection
    confidence_threshold: float = 0.4
    iou_threshold: float = 0.45
    target_size: int = 1216

    # Synthesis
    strip_existing_acro_fields: bool = False

    # Processing
    use_worker: bool = True
    worker_timeout_seconds: float = 300.0
    render_previews: bool = True

    # Logging
    log_level: str = "INFO"

    @field_validator("confidence_threshold")
    @classmethod
    def _check_confidence(cls, value: float) -> float:
        if not 0.1 <= value <= 1.0:
            raise ValueError("confidence_threshold must be within [0.1, 1.0]")
        return value

    class Config:
        env_prefix = "ACRODETECT_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        protected_namespaces = ("settings_",)


settings = Settings()
