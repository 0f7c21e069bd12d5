"""
Configuration loader for the RMBG background-removal package.

Environment variables (prefixed with ``RMBG_``) are centralized here to keep
the rest of the code focused on the pipeline and to make operational tuning
clear.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL_URL = "https://huggingface.co/briaai/RMBG-1.4/resolve/main/onnx/model.onnx"
DEFAULT_MODEL_CACHE_KEY = "rmbg_model_v1.4"
DEFAULT_MODEL_VERSION = "1.4"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RMBG_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=("settings_",),
    )

    # Model source + cache
    model_url: str = Field(DEFAULT_MODEL_URL)
    model_cache_key: str = Field(DEFAULT_MODEL_CACHE_KEY)
    model_version: str = Field(DEFAULT_MODEL_VERSION)
    cache_enabled: bool = Field(True)
    cache_dir: Path = Field(default_factory=lambda: Path.home() / ".cache" / "rmbg_service")

    # Inference engine
    input_name: str = Field("input")
    output_name: str = Field("output")
    execution_providers: List[str] = Field(default_factory=list)

    # Download
    download_chunk_size: int = Field(1024 * 1024)
    download_timeout_seconds: Optional[float] = Field(None)

    # API
    default_return_mode: str = Field("image")
    request_timeout_seconds: int = Field(30)
    log_level: str = Field("INFO")

    @field_validator("default_return_mode")
    @classmethod
    def validate_return_mode(cls, v: str) -> str:
        if v not in {"image", "base64"}:
            raise ValueError("RMBG_DEFAULT_RETURN_MODE must be one of image|base64")
        return v

    @field_validator("download_chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("RMBG_DOWNLOAD_CHUNK_SIZE must be positive")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    return Settings()
