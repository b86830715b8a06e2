"""
Runtime configuration for the resolution engine.

Values come from the process environment (optionally seeded from a .env
file by ``load_env``). Every field has a default matching the mobile SDK,
so an empty environment yields a working configuration.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

from . import __version__
from .env import load_env

DEFAULT_BASE_URL = "https://sddl.me"
DEFAULT_STATE_PATH = Path("data") / "sddl_sdk_prefs.json"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""
    pass


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean (true/false), got {raw!r}")


def _parse_number(name: str, raw: str, kind: type, minimum: float = 0):
    try:
        value = kind(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be a {kind.__name__}, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 5.0
    read_clipboard: bool = True
    clipboard_tries: int = 3
    clipboard_interval_ms: int = 150
    referrer_timeout_ms: int = 2500
    referrer_wait_ms: int = 350
    strict_json: bool = False
    app_identifier: Optional[str] = None
    user_agent: str = f"SDDLSDK-Python/{__version__}"
    state_path: Path = DEFAULT_STATE_PATH
    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    @property
    def clipboard_interval(self) -> float:
        return self.clipboard_interval_ms / 1000.0

    @property
    def referrer_timeout(self) -> float:
        return self.referrer_timeout_ms / 1000.0

    @property
    def referrer_wait(self) -> float:
        return self.referrer_wait_ms / 1000.0

    def details_url(self, identifier: str) -> str:
        return f"{self.base_url.rstrip('/')}/api/{identifier}/details"

    def try_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/api/try/details"

    def with_overrides(self, **changes) -> "Settings":
        """Return a copy with the non-None keyword arguments applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ after load_env)

        Raises:
            ConfigError: If a variable cannot be parsed
        """
        if environ is None:
            load_env()
            environ = os.environ

        kwargs = {}
        if environ.get("SDDL_BASE_URL"):
            kwargs["base_url"] = environ["SDDL_BASE_URL"].strip()
        if environ.get("SDDL_TIMEOUT"):
            kwargs["timeout"] = _parse_number("SDDL_TIMEOUT", environ["SDDL_TIMEOUT"], float)
        if environ.get("SDDL_READ_CLIPBOARD"):
            kwargs["read_clipboard"] = _parse_bool("SDDL_READ_CLIPBOARD", environ["SDDL_READ_CLIPBOARD"])
        if environ.get("SDDL_CLIPBOARD_TRIES"):
            kwargs["clipboard_tries"] = _parse_number(
                "SDDL_CLIPBOARD_TRIES", environ["SDDL_CLIPBOARD_TRIES"], int, minimum=1
            )
        for name, field in (
            ("SDDL_CLIPBOARD_INTERVAL_MS", "clipboard_interval_ms"),
            ("SDDL_REFERRER_TIMEOUT_MS", "referrer_timeout_ms"),
            ("SDDL_REFERRER_WAIT_MS", "referrer_wait_ms"),
        ):
            if environ.get(name):
                kwargs[field] = _parse_number(name, environ[name], int)
        if environ.get("SDDL_STRICT_JSON"):
            kwargs["strict_json"] = _parse_bool("SDDL_STRICT_JSON", environ["SDDL_STRICT_JSON"])
        if environ.get("SDDL_APP_IDENTIFIER"):
            kwargs["app_identifier"] = environ["SDDL_APP_IDENTIFIER"].strip()
        if environ.get("SDDL_USER_AGENT"):
            kwargs["user_agent"] = environ["SDDL_USER_AGENT"].strip()
        if environ.get("SDDL_STATE_PATH"):
            kwargs["state_path"] = Path(environ["SDDL_STATE_PATH"])
        if environ.get("SDDL_LOG_LEVEL"):
            level = environ["SDDL_LOG_LEVEL"].strip().upper()
            if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
                raise ConfigError(f"SDDL_LOG_LEVEL is not a log level: {level!r}")
            kwargs["log_level"] = level
        if environ.get("SDDL_LOG_DIR"):
            kwargs["log_dir"] = Path(environ["SDDL_LOG_DIR"])
        return cls(**kwargs)
