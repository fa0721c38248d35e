"""
Unit tests for configuration models.

Tests store conventions, vault configuration and environment settings.
"""

import pytest
from pathlib import Path
from pydantic import ValidationError

from core.models.config import CONFIG_DIR_NAME, CONFIG_FILE_NAME, StoreConfig, VaultConfig, GlobalSettings


class TestStoreConfig:
    """Test StoreConfig model"""

    def test_defaults(self):
        config = StoreConfig()

        assert config.folder == "Occurrences"
        assert config.extension == ".md"
        assert config.date_format == "YYYY-MM-DD HHmm"
        assert config.default_title == "Untitled Occurrence"
        assert config.default_limit == 100
        assert config.cache_poll_delay_seconds == 0.05

    def test_folder_normalized(self):
        assert StoreConfig(folder="/Journal/Meetings/").folder == "Journal/Meetings"

    def test_empty_folder_rejected(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            StoreConfig(folder="/")

    def test_extension_validation(self):
        assert StoreConfig(extension=".MD").extension == ".md"

        for extension in ["md", ".", ""]:
            with pytest.raises(ValueError):
                StoreConfig(extension=extension)

    def test_date_format_needs_tokens(self):
        with pytest.raises(ValueError, match="at least one"):
            StoreConfig(date_format="date")

    def test_limits(self):
        with pytest.raises(ValidationError):
            StoreConfig(default_limit=0)
        with pytest.raises(ValidationError):
            StoreConfig(cache_poll_attempts=0)

    def test_validate_assignment(self):
        config = StoreConfig()
        with pytest.raises(ValidationError):
            config.extension = "txt"

    def test_is_managed(self):
        config = StoreConfig(folder="Journal/Meetings")

        assert config.is_managed("Journal/Meetings/2024-01-01 0900 Standup.md")
        assert config.is_managed("Journal/Meetings/Nested/Note.MD")
        assert not config.is_managed("Journal/Standup.md")
        assert not config.is_managed("Journal/Meetings/diagram.png")

    def test_path_for(self):
        config = StoreConfig()

        assert config.path_for("2024-01-01 0900 Standup") == "Occurrences/2024-01-01 0900 Standup.md"
        assert config.path_for("Note", folder="") == "Note.md"


class TestVaultConfig:
    """Test VaultConfig model"""

    def test_valid_vault(self, tmp_path):
        config = VaultConfig(path=tmp_path)

        assert config.path == tmp_path.resolve()
        assert config.trash_folder == ".trash"
        assert config.watch is True
        assert isinstance(config.store, StoreConfig)
        assert config.get_config_file() == tmp_path.resolve() / ".occurrences" / "config.json"
        assert config.get_config_dir() == tmp_path.resolve() / CONFIG_DIR_NAME
        assert config.get_config_file().name == CONFIG_FILE_NAME

    def test_missing_path(self, tmp_path):
        with pytest.raises(ValueError, match="does not exist"):
            VaultConfig(path=tmp_path / "missing")

    def test_file_path(self, tmp_path):
        file_path = tmp_path / "note.md"
        file_path.write_text("x")

        with pytest.raises(ValueError, match="not a directory"):
            VaultConfig(path=file_path)

    def test_dict_round_trip(self, tmp_path):
        config = VaultConfig(path=tmp_path, store=StoreConfig(folder="Meetings"), watch=False)

        data = config.to_dict()
        assert data["path"] == str(tmp_path.resolve())
        assert data["store"]["folder"] == "Meetings"

        again = VaultConfig.from_dict(data)
        assert again == config


class TestGlobalSettings:
    """Test environment-driven settings"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("OCCURRENCES_VAULT_PATH", raising=False)
        monkeypatch.delenv("OCCURRENCES_LOG_LEVEL", raising=False)

        settings = GlobalSettings()

        assert settings.vault_path is None
        assert settings.log_level == "INFO"

    def test_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("OCCURRENCES_VAULT_PATH", str(tmp_path))
        monkeypatch.setenv("OCCURRENCES_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("OCCURRENCES_WATCH", "false")

        settings = GlobalSettings()

        assert settings.vault_path == Path(str(tmp_path))
        assert settings.log_level == "DEBUG"
        assert not hasattr(settings, "watch")

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            GlobalSettings(log_level="LOUD")
