"""Unit tests for Settings and get_settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from steward.config import get_settings, reload_settings
from steward.config.models.workflow import WorkflowConfig, WriteMode
from steward.config.settings import Settings, set_toml_config


@pytest.fixture(autouse=True)
def reset_toml_source():
    set_toml_config({})
    yield
    set_toml_config({})


@pytest.fixture
def config_env(test_config_dir: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("STEWARD_CONFIG_DIR", str(test_config_dir))
    monkeypatch.setenv("STEWARD_ENV", "nonexistent")
    return test_config_dir


class TestSettings:
    """Tests for Settings model."""

    def test_default_values(self) -> None:
        """Settings has sensible defaults."""
        settings = Settings()

        assert settings.app_name == "steward"
        assert settings.log_level == "INFO"
        assert settings.workflow.write_mode is WriteMode.DEFERRED
        assert settings.storage.session.backend == "inmemory"
        assert settings.storage.session.ttl_seconds == 86400
        assert settings.concurrency.blocking_timeout_seconds == 10.0
        assert settings.observability.logging.redact_pii is True

    def test_concurrency_bounds(self) -> None:
        """Upload concurrency must stay within its bounds."""
        with pytest.raises(ValidationError):
            WorkflowConfig(media_upload_concurrency=0)


class TestGetSettings:
    """Tests for get_settings function."""

    def test_reads_toml(self, config_env, mock_toml_files) -> None:
        """Values come from default.toml."""
        mock_toml_files(
            {
                "default.toml": (
                    "app_name = 'test'\n"
                    "[workflow]\n"
                    "write_mode = 'immediate'\n"
                    "[storage.cache]\n"
                    "ttl_seconds = 60\n"
                )
            }
        )

        settings = get_settings()

        assert settings.app_name == "test"
        assert settings.workflow.write_mode is WriteMode.IMMEDIATE
        assert settings.storage.cache.ttl_seconds == 60
        assert settings.storage.cache.max_entries == 1024

    def test_env_overrides_toml(self, config_env, mock_toml_files, env_override) -> None:
        """STEWARD_* variables win over TOML, with __ for nesting."""
        mock_toml_files({"default.toml": "[workflow]\nwrite_mode = 'immediate'\n"})

        with env_override(
            {
                "STEWARD_WORKFLOW__WRITE_MODE": "deferred",
                "STEWARD_STORAGE__SESSION__TTL_SECONDS": "120",
            }
        ):
            settings = get_settings()

        assert settings.workflow.write_mode is WriteMode.DEFERRED
        assert settings.storage.session.ttl_seconds == 120

    def test_settings_cached(self, config_env, mock_toml_files) -> None:
        """get_settings returns the cached instance until reloaded."""
        mock_toml_files({"default.toml": "app_name = 'first'"})
        first = get_settings()

        mock_toml_files({"default.toml": "app_name = 'second'"})

        assert get_settings() is first
        assert reload_settings().app_name == "second"
