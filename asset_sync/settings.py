"""Runtime configuration for the asset sync client.

Resolution order (later wins): built-in defaults, the YAML settings file,
environment variables. The manual API override is the one setting users
change at runtime; it is written back to the settings file.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

from core.cli_errors import ConfigError
from core.constants import (
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_STORAGE_QUOTA,
    default_cache_dir,
    settings_yaml_paths,
)
from core.yamlio import load_config, update_config

__all__ = ["Settings", "load_settings", "save_manual_override", "default_settings_path"]

_ENV_KEYS = {
    "api_base": "ASSET_API_BASE",
    "manual_override": "ASSET_API_OVERRIDE",
    "client_host": "ASSET_CLIENT_HOST",
    "origin": "ASSET_CLIENT_ORIGIN",
    "cache_dir": "ASSET_CACHE_DIR",
    "auth_token": "ASSET_API_TOKEN",
}

_YAML_KEYS = {
    "api_base": "api_base",
    "manual_override": "api_override",
    "client_host": "client_host",
    "origin": "origin",
    "cache_dir": "cache_dir",
    "auth_token": "token",
}


@dataclass
class Settings:
    api_base: str = ""
    manual_override: str = ""
    client_host: str = ""
    origin: str = ""
    cache_dir: str = field(default_factory=default_cache_dir)
    storage_quota: Optional[int] = DEFAULT_STORAGE_QUOTA
    timeout: Tuple[float, float] = DEFAULT_REQUEST_TIMEOUT
    auth_token: str = ""
    config_path: str = ""


def default_settings_path() -> str:
    return settings_yaml_paths()[0]


def _find_settings_file(explicit: Optional[str]) -> str:
    if explicit:
        return os.path.expanduser(explicit)
    for p in settings_yaml_paths():
        if os.path.exists(p):
            return p
    return default_settings_path()


def _parse_timeout(value: Any) -> Tuple[float, float]:
    try:
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return float(value[0]), float(value[1])
        t = float(value)
        return t, t
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid timeout: {value!r}", hint="Use seconds or [connect, read]") from exc


def _parse_quota(value: Any) -> Optional[int]:
    if value in (None, "", "none", "unlimited"):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid storage_quota: {value!r}") from exc


def load_settings(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    cfg_path = _find_settings_file(path or env.get("ASSET_SYNC_CONFIG"))
    data = load_config(cfg_path)
    settings = Settings(config_path=cfg_path)

    for attr, key in _YAML_KEYS.items():
        if data.get(key):
            setattr(settings, attr, str(data[key]).strip())
    if "storage_quota" in data:
        settings.storage_quota = _parse_quota(data["storage_quota"])
    if data.get("timeout") is not None:
        settings.timeout = _parse_timeout(data["timeout"])

    for attr, key in _ENV_KEYS.items():
        value = (env.get(key) or "").strip()
        if value:
            setattr(settings, attr, value)
    if env.get("ASSET_STORAGE_QUOTA"):
        settings.storage_quota = _parse_quota(env["ASSET_STORAGE_QUOTA"])

    settings.cache_dir = os.path.expanduser(settings.cache_dir)
    return settings


def save_manual_override(settings: Settings, url: Optional[str]) -> Settings:
    """Persist (or clear, with None/'') the manual API override."""
    value = (url or "").strip().rstrip("/")
    if value and not (value.startswith("http://") or value.startswith("https://")):
        raise ConfigError(f"Not an http(s) URL: {value}")
    path = settings.config_path or default_settings_path()
    update_config(path, {"api_override": value or None})
    settings.manual_override = value
    settings.config_path = path
    return settings
