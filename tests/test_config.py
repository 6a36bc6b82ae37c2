"""Tests for configuration."""

import logging

import pytest

from age_env import config
from age_env.errors import ConfigError, InvalidEnvironmentName
from age_env.log import resolve_level


class TestConfigDir:
    """Tests for store directory resolution."""

    def test_env_override(self, monkeypatch, tmp_path):
        """AGE_ENV_CONFIG_DIR overrides the default."""
        monkeypatch.setenv("AGE_ENV_CONFIG_DIR", str(tmp_path / "custom"))
        assert config.get_config_dir() == tmp_path / "custom"

    def test_default_in_home(self, monkeypatch, tmp_path):
        monkeypatch.delenv("AGE_ENV_CONFIG_DIR", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert config.get_config_dir() == tmp_path / ".age-env"

    def test_ensure_creates_layout(self, tmp_path):
        paths = config.StorePaths(tmp_path / "store")
        paths.ensure()
        assert paths.envs_dir.is_dir()
        assert paths.identities_file == tmp_path / "store" / "identities"


class TestNames:
    """Tests for environment name validation."""

    @pytest.mark.parametrize("name", ["svc", "my-app.prod", "_x", "9lives"])
    def test_valid(self, name):
        assert config.validate_name(name) == name

    @pytest.mark.parametrize("name", ["", "../up", "a/b", ".hidden", "a:b", "a;b", "a b"])
    def test_invalid(self, name):
        with pytest.raises(InvalidEnvironmentName):
            config.validate_name(name)


class TestSettings:
    """Tests for config.yaml."""

    def test_missing_file_defaults(self, tmp_path):
        settings = config.load_settings(tmp_path / "config.yaml")
        assert settings.age_binary == "age"
        assert settings.log_level == "WARNING"

    def test_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("age_binary: /opt/age/bin/age\nlog_level: debug\n")

        settings = config.load_settings(path)

        assert settings.age_binary == "/opt/age/bin/age"
        assert settings.log_level == "DEBUG"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert config.load_settings(path) == config.Settings()

    def test_unknown_key_warns(self, tmp_path, caplog, monkeypatch):
        # The CLI detaches the package logger from the root logger
        monkeypatch.setattr(logging.getLogger("age_env"), "propagate", True)
        path = tmp_path / "config.yaml"
        path.write_text("colour: blue\n")

        with caplog.at_level(logging.WARNING, logger="age_env"):
            assert config.load_settings(path) == config.Settings()

        assert "colour" in caplog.text

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("age_binary: [unclosed\n")
        with pytest.raises(ConfigError):
            config.load_settings(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- age\n")
        with pytest.raises(ConfigError):
            config.load_settings(path)


class TestLogLevel:
    """Tests for resolve_level."""

    def test_verbose_flag_wins(self):
        assert resolve_level(1, "ERROR") == logging.INFO
        assert resolve_level(5, "ERROR") == logging.DEBUG

    def test_configured_level(self):
        assert resolve_level(0, "error") == logging.ERROR

    def test_unknown_level(self):
        assert resolve_level(0, "LOUD") == logging.WARNING
