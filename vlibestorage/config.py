"""Client configuration loaded from the environment."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://vlibe.app"


class StorageSettings(BaseSettings):
    """
    Vlibe Storage client settings.

    Uses Pydantic BaseSettings for automatic environment variable loading.
    Environment variables are prefixed with VLIBE_.

    Required environment variables:
        VLIBE_APP_ID: Application ID
        VLIBE_APP_SECRET: Application secret

    Optional environment variables:
        VLIBE_BASE_URL: API origin (default: https://vlibe.app)
        VLIBE_TIMEOUT: Request timeout in seconds (default: 30)
        VLIBE_UPLOAD_CHUNK_SIZE: Bytes per chunk for presigned uploads (default: 65536)
    """

    model_config = SettingsConfigDict(
        env_prefix="VLIBE_",
        extra="ignore",
    )

    # Application credentials - required, non-empty
    app_id: str = Field(min_length=1)
    app_secret: str = Field(min_length=1)

    # API origin; "/api" is appended per request
    base_url: str = DEFAULT_BASE_URL

    # Request timeout (seconds)
    timeout: float = Field(default=30.0, gt=0)

    # Chunk size for streamed presigned uploads; progress fires once per chunk
    upload_chunk_size: int = Field(default=64 * 1024, ge=1)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.removesuffix("/") or DEFAULT_BASE_URL
