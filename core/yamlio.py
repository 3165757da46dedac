"""YAML read/write helpers for the settings file."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .cli_errors import ConfigError

__all__ = ["load_config", "dump_config", "update_config"]


def _require_yaml():
    try:
        import yaml  # type: ignore

        return yaml
    except ImportError as exc:  # pragma: no cover - runtime guard
        raise ConfigError("PyYAML not installed", hint="pip install pyyaml") from exc


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load a YAML mapping; returns {} if missing, empty or not a mapping."""
    if not path:
        return {}
    yaml = _require_yaml()
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    return data if isinstance(data, dict) else {}


def dump_config(path: str, data: Mapping[str, Any]) -> None:
    """Write a mapping to YAML with stable ordering for humans."""
    yaml = _require_yaml()
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        yaml.safe_dump(dict(data), sort_keys=False, allow_unicode=True), encoding="utf-8"
    )


def update_config(path: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Apply changes to the YAML file at path; a None value removes the key."""
    data = load_config(path)
    for key, value in changes.items():
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
    dump_config(path, data)
    return data
