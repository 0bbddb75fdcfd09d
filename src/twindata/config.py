"""Runtime configuration resolved once at startup.

Values come from environment variables prefixed with ``TWINDATA_`` (or a
``.env`` file) and are handed to ``create_services`` as a single object.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Connection parameters and tunables for every twindata component."""

    model_config = SettingsConfigDict(
        env_prefix="TWINDATA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///twindata.db",
        description="SQLAlchemy async URL of the document store",
    )
    chroma_path: str | None = Field(
        default=None,
        description="Directory for the persistent search collections; ephemeral when unset",
    )

    openai_api_key: str | None = None
    openai_base_url: str | None = None
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = Field(default=1536, gt=0)
    embedding_max_chars: int = Field(default=8000, gt=0)
    chat_model: str = "gpt-4o-mini"
    vision_model: str = "gpt-4o-mini"

    image_download_timeout_seconds: float = Field(default=30.0, gt=0)
    batch_upload_concurrency: int = Field(default=5, gt=0)
    outbox_max_attempts: int = Field(default=3, gt=0)
    outbox_retry_min_wait: float = Field(default=0.5, ge=0)
    outbox_retry_max_wait: float = Field(default=5.0, ge=0)

    log_level: str = "INFO"
    log_json: bool = False

    @property
    def embeddings_enabled(self) -> bool:
        return bool(self.openai_api_key)


def load_settings(**overrides: object) -> Settings:
    """Resolve settings from the environment, applying explicit overrides."""
    return Settings(**overrides)
