"""Unit tests for runtime settings."""

import pytest
from pydantic import ValidationError

from twindata.config import Settings, load_settings


class TestSettings:
    """Tests for Settings resolution."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TWINDATA_OPENAI_API_KEY", raising=False)

        settings = Settings(_env_file=None)

        assert settings.database_url == "sqlite+aiosqlite:///twindata.db"
        assert settings.chroma_path is None
        assert settings.embedding_dimensions == 1536
        assert settings.batch_upload_concurrency == 5
        assert settings.embeddings_enabled is False

    def test_environment_variables_use_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TWINDATA_CHROMA_PATH", "/var/lib/twindata/search")
        monkeypatch.setenv("TWINDATA_EMBEDDING_DIMENSIONS", "3072")
        monkeypatch.setenv("TWINDATA_OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("CHROMA_PATH", "/ignored")

        settings = Settings(_env_file=None)

        assert settings.chroma_path == "/var/lib/twindata/search"
        assert settings.embedding_dimensions == 3072
        assert settings.embeddings_enabled is True

    def test_load_settings_applies_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TWINDATA_LOG_LEVEL", "DEBUG")

        settings = load_settings(_env_file=None, log_level="WARNING", outbox_max_attempts=7)

        assert settings.log_level == "WARNING"
        assert settings.outbox_max_attempts == 7

    @pytest.mark.parametrize("field", ["embedding_dimensions", "batch_upload_concurrency", "outbox_max_attempts"])
    def test_counts_must_be_positive(self, field: str) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: 0})
