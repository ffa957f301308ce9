"""Environment-based configuration for pixgate."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ImageSource(BaseModel):
    """URL prefix served from a source bucket, cached in a cache bucket."""

    path: str = Field(min_length=1, pattern=r"^[^/]+$")
    bucket: str
    cache_bucket: str


class Settings(BaseSettings):
    """Application settings loaded from PIXGATE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PIXGATE_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    environment: Literal["local", "production"] = "local"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Image sources, e.g. '[{"path": "img", "bucket": "originals", "cache_bucket": "derived"}]'
    sources: list[ImageSource] = Field(default_factory=list)

    # Signed URLs (None = disabled)
    secret_salt: SecretStr | None = None
    require_signature: bool = False

    # AWS
    aws_region: str | None = None
    aws_endpoint_url: str | None = None

    # Concurrency
    max_concurrent: int = Field(default=4, ge=1)
    queue_timeout: float = Field(default=5.0, gt=0)

    # Source and output size limit
    max_image_pixels: int = Field(default=50_000_000, ge=1)

    # Error reporting (None = disabled)
    sentry_dsn: SecretStr | None = None

    def find_source(self, path: str) -> ImageSource | None:
        """Return the source mounted at ``path``, if any."""
        return next((source for source in self.sources if source.path == path), None)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
