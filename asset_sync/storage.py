"""Bounded key-value storage for the local cache.

Values are strings (serialized JSON). Both backends enforce a byte quota
over all stored keys and values and raise ``QuotaExceededError`` instead of
writing when a value does not fit; a rejected write leaves the previous
value untouched.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from typing import Dict, List, Optional, Protocol

from core.cli_errors import QuotaExceededError
from core.constants import DEFAULT_STORAGE_QUOTA

LOG = logging.getLogger(__name__)

__all__ = ["KeyValueStorage", "MemoryStorage", "FileStorage", "QuotaExceededError"]


def _size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStorage:
    """In-process storage; ``quota_bytes=None`` means unbounded."""

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(_size(k, v) for k, v in self._data.items() if k != key)
            if used + _size(key, value) > self.quota_bytes:
                raise QuotaExceededError(f"Storage quota exceeded writing {key}")
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class FileStorage:
    """One file per key under ``root``, with the same quota rules as MemoryStorage."""

    def __init__(self, root: str, quota_bytes: Optional[int] = DEFAULT_STORAGE_QUOTA) -> None:
        self.root = root
        self.quota_bytes = quota_bytes

    def _path(self, key: str) -> str:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", (key or "").strip())
        return os.path.join(self.root, f"{safe}.json")

    def _used_bytes(self, exclude: str) -> int:
        if not os.path.isdir(self.root):
            return 0
        total = 0
        for name in os.listdir(self.root):
            path = os.path.join(self.root, name)
            if path == exclude or not name.endswith(".json"):
                continue
            try:
                total += os.path.getsize(path) + len(name[: -len(".json")].encode("utf-8"))
            except OSError:
                continue
        return total

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return fh.read()
        except (OSError, UnicodeDecodeError) as exc:
            LOG.warning("Unreadable cache file %s: %s", path, exc)
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        if self.quota_bytes is not None:
            if self._used_bytes(path) + _size(key, value) > self.quota_bytes:
                raise QuotaExceededError(f"Storage quota exceeded writing {key}")
        os.makedirs(self.root, exist_ok=True)
        # Write to a temp file first so a failed write never truncates the old value
        fd, tmp = tempfile.mkstemp(dir=self.root, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def remove(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)

    def keys(self) -> List[str]:
        if not os.path.isdir(self.root):
            return []
        return sorted(n[: -len(".json")] for n in os.listdir(self.root) if n.endswith(".json"))
