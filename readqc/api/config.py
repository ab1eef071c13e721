"""Settings for the HTTP ingress/query layer."""
from __future__ import annotations

from pydantic_settings import BaseSettings


class ApiSettings(BaseSettings):
    """Immutable settings loaded from environment / .env file."""

    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: str = "http://localhost:5173,http://localhost:8080"
    max_upload_bytes: int = 50 << 20  # 50 MiB

    model_config = {"env_prefix": "READQC_API_", "env_file": ".env", "extra": "ignore"}
