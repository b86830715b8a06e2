"""
Tests for environment-driven configuration.
"""

from pathlib import Path

import pytest

from sddl import __version__
from sddl.config import ConfigError, Settings


class TestDefaults:
    def test_empty_environment(self):
        settings = Settings.from_env({})

        assert settings == Settings()
        assert settings.base_url == "https://sddl.me"
        assert settings.timeout == 5.0
        assert settings.read_clipboard is True
        assert settings.clipboard_tries == 3
        assert settings.user_agent == f"SDDLSDK-Python/{__version__}"

    def test_durations_in_seconds(self):
        settings = Settings()
        assert settings.clipboard_interval == 0.15
        assert settings.referrer_timeout == 2.5
        assert settings.referrer_wait == 0.35

    def test_endpoint_urls(self):
        settings = Settings(base_url="https://links.example.com/")
        assert settings.details_url("abcd1234") == "https://links.example.com/api/abcd1234/details"
        assert settings.try_url() == "https://links.example.com/api/try/details"


class TestFromEnv:
    def test_all_variables(self):
        settings = Settings.from_env({
            "SDDL_BASE_URL": " https://links.example.com ",
            "SDDL_TIMEOUT": "2.5",
            "SDDL_READ_CLIPBOARD": "off",
            "SDDL_CLIPBOARD_TRIES": "5",
            "SDDL_CLIPBOARD_INTERVAL_MS": "200",
            "SDDL_REFERRER_TIMEOUT_MS": "1000",
            "SDDL_REFERRER_WAIT_MS": "0",
            "SDDL_STRICT_JSON": "Yes",
            "SDDL_APP_IDENTIFIER": "com.example.app",
            "SDDL_USER_AGENT": "MyApp/3.1",
            "SDDL_STATE_PATH": "/tmp/prefs.db",
            "SDDL_LOG_LEVEL": "debug",
            "SDDL_LOG_DIR": "/tmp/logs",
        })

        assert settings.base_url == "https://links.example.com"
        assert settings.timeout == 2.5
        assert settings.read_clipboard is False
        assert settings.clipboard_tries == 5
        assert settings.clipboard_interval == 0.2
        assert settings.referrer_timeout == 1.0
        assert settings.referrer_wait == 0.0
        assert settings.strict_json is True
        assert settings.app_identifier == "com.example.app"
        assert settings.user_agent == "MyApp/3.1"
        assert settings.state_path == Path("/tmp/prefs.db")
        assert settings.log_level == "DEBUG"
        assert settings.log_dir == Path("/tmp/logs")

    def test_blank_values_use_defaults(self):
        assert Settings.from_env({"SDDL_TIMEOUT": "", "SDDL_BASE_URL": ""}) == Settings()

    @pytest.mark.parametrize("name, value", [
        ("SDDL_TIMEOUT", "fast"),
        ("SDDL_TIMEOUT", "-1"),
        ("SDDL_CLIPBOARD_TRIES", "0"),
        ("SDDL_CLIPBOARD_TRIES", "2.5"),
        ("SDDL_REFERRER_WAIT_MS", "-10"),
        ("SDDL_READ_CLIPBOARD", "maybe"),
        ("SDDL_LOG_LEVEL", "LOUD"),
    ])
    def test_invalid_values(self, name, value):
        with pytest.raises(ConfigError, match=name):
            Settings.from_env({name: value})

    def test_reads_dotenv_file(self, tmp_path, monkeypatch):
        """Without an explicit mapping, a .env in the working directory is honoured."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("SDDL_BASE_URL", raising=False)
        (tmp_path / ".env").write_text("SDDL_BASE_URL=https://from-dotenv.example\n")

        assert Settings.from_env().base_url == "https://from-dotenv.example"

    def test_process_env_wins_over_dotenv(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("SDDL_BASE_URL", "https://from-env.example")
        (tmp_path / ".env").write_text("SDDL_BASE_URL=https://from-dotenv.example\n")

        assert Settings.from_env().base_url == "https://from-env.example"


class TestWithOverrides:
    def test_none_values_ignored(self):
        settings = Settings(timeout=3.0).with_overrides(timeout=None, base_url="https://x.example")
        assert settings.timeout == 3.0
        assert settings.base_url == "https://x.example"
