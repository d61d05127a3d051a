from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping
import logging
import os

from firemock.firestore.errors import InvalidPath
from firemock.firestore.paths import DEFAULT_DATABASE_ID, DatabaseId, validate_segment


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3333
DEFAULT_AUTH_PORT = 9099
DEFAULT_PROJECT_ID = "demo-project"
DEFAULT_LOG_LEVEL = "INFO"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class SettingsError(ValueError):
    """Raised when settings values are invalid."""


@dataclass(frozen=True)
class AppSettings:
    app_env: str
    host: str
    port: int
    auth_port: int
    project_id: str
    database_id: str
    log_level: str
    verbose_request_logs: bool

    @property
    def database(self) -> DatabaseId:
        return DatabaseId(self.project_id, self.database_id)


def _read_dotenv(dotenv_path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    if not dotenv_path.exists():
        return values

    for raw_line in dotenv_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip("'").strip('"')
        if key:
            values[key] = value
    return values


def _get_str(values: Mapping[str, str], key: str, default: str) -> str:
    value = values.get(key, default).strip()
    if not value:
        raise SettingsError(f"{key} must not be empty.")
    return value


def _get_port(values: Mapping[str, str], key: str, default: int) -> int:
    raw_value = values.get(key)
    if raw_value is None or raw_value.strip() == "":
        return default
    try:
        value = int(raw_value)
    except ValueError as exc:
        raise SettingsError(f"{key} must be integer: {raw_value}") from exc
    if not 0 < value < 65536:
        raise SettingsError(f"{key} must be within 1-65535: {value}")
    return value


def _get_bool(values: Mapping[str, str], key: str, default: bool) -> bool:
    raw_value = values.get(key)
    if raw_value is None or raw_value.strip() == "":
        return default
    lowered = raw_value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise SettingsError(f"{key} must be boolean: {raw_value}")


def _get_segment(values: Mapping[str, str], key: str, default: str) -> str:
    value = _get_str(values, key, default)
    try:
        return validate_segment(value)
    except InvalidPath as exc:
        raise SettingsError(f"{key} is not a valid resource id: {value}") from exc


def _get_log_level(values: Mapping[str, str]) -> str:
    value = _get_str(values, "LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
    if not isinstance(logging.getLevelName(value), int):
        raise SettingsError(f"LOG_LEVEL is not a logging level: {value}")
    return value


def load_settings(
    *,
    env: Mapping[str, str] | None = None,
    dotenv_path: str | Path = ".env",
) -> AppSettings:
    """Load settings from .env and environment variables.

    Priority: OS environment > .env > default.
    """

    env_values = dict(env) if env is not None else dict(os.environ)
    dotenv_values = _read_dotenv(Path(dotenv_path))
    merged: dict[str, str] = {**dotenv_values, **env_values}

    settings = AppSettings(
        app_env=_get_str(merged, "APP_ENV", "development"),
        host=_get_str(merged, "HOST", DEFAULT_HOST),
        port=_get_port(merged, "PORT", DEFAULT_PORT),
        auth_port=_get_port(merged, "AUTH_PORT", DEFAULT_AUTH_PORT),
        project_id=_get_segment(merged, "PROJECT_ID", DEFAULT_PROJECT_ID),
        database_id=_get_segment(merged, "DATABASE_ID", DEFAULT_DATABASE_ID),
        log_level=_get_log_level(merged),
        verbose_request_logs=_get_bool(merged, "VERBOSE_REQUEST_LOGS", False),
    )
    if settings.port == settings.auth_port:
        raise SettingsError(f"PORT and AUTH_PORT must differ: {settings.port}")
    return settings
