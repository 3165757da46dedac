"""Tiered local cache for asset records and the other client-side blobs.

The asset snapshot is written at the richest tier that fits the storage
quota:

  0. full records
  1. history entries without their embedded images
  2. compact: gallery capped at 2, specs/notes blanked, history lists
     trimmed to the newest entries, long entry texts truncated

When even the compact form does not fit, nothing is written and the
previous snapshot stays as it was. Cache writes never raise.
"""

from __future__ import annotations

import datetime as _dt
import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.cli_errors import QuotaExceededError
from core import constants as C

from .models import HISTORY_FIELDS, IMAGE_HISTORY_FIELDS, AssetRecord
from .storage import KeyValueStorage

LOG = logging.getLogger(__name__)

__all__ = ["LocalCache", "TIER_SKIPPED", "compact_tiers"]

TIER_SKIPPED = 3

_HISTORY_CAPS = {
    "maintenanceHistory": C.COMPACT_MAINTENANCE_HISTORY_LIMIT,
    "verificationHistory": C.COMPACT_MAINTENANCE_HISTORY_LIMIT,
    "transferHistory": C.COMPACT_STATUS_HISTORY_LIMIT,
    "statusHistory": C.COMPACT_STATUS_HISTORY_LIMIT,
}

WireRecords = List[Dict[str, Any]]


def _full(records: Sequence[AssetRecord]) -> WireRecords:
    return [r.to_wire() for r in records]


def _drop_history_images(records: Sequence[AssetRecord]) -> WireRecords:
    out = _full(records)
    for rec in out:
        for list_name in IMAGE_HISTORY_FIELDS:
            entries = rec.get(list_name)
            if isinstance(entries, list):
                rec[list_name] = [{**e, "photo": ""} for e in entries]
    return out


def _compact(records: Sequence[AssetRecord]) -> WireRecords:
    out = _drop_history_images(records)
    for rec in out:
        photos = list(rec.get("photos") or [])[: C.COMPACT_PHOTO_LIMIT]
        rec["photos"] = photos
        rec["photo"] = photos[0] if photos else ""
        rec["specs"] = ""
        rec["notes"] = ""
        for list_name in HISTORY_FIELDS:
            entries = rec.get(list_name)
            if not isinstance(entries, list):
                continue
            # Lists are stored newest first
            kept = entries[: _HISTORY_CAPS[list_name]]
            rec[list_name] = [_truncate_entry(e) for e in kept]
    return out


def _truncate_entry(entry: Mapping[str, Any]) -> Dict[str, Any]:
    out = dict(entry)
    if isinstance(out.get("note"), str):
        out["note"] = out["note"][: C.COMPACT_NOTE_CHARS]
    if isinstance(out.get("condition"), str):
        out["condition"] = out["condition"][: C.COMPACT_CONDITION_CHARS]
    return out


def compact_tiers() -> Tuple[Tuple[int, str, Callable[[Sequence[AssetRecord]], WireRecords]], ...]:
    return (
        (0, "full", _full),
        (1, "without history images", _drop_history_images),
        (2, "compact", _compact),
    )


def _default_clock() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


class LocalCache:
    """Client-side store over a bounded key-value storage.

    Holds the asset snapshot plus the small lists/maps the client keeps
    between sessions. Passed explicitly to whatever reads or writes it.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Callable[[], _dt.datetime] = _default_clock,
    ) -> None:
        self.storage = storage
        self.clock = clock

    # -------------------- Asset snapshot --------------------
    def load_assets(self) -> List[AssetRecord]:
        """Cached records; [] when the snapshot is missing or corrupt."""
        data = self._read_json(C.KEY_ASSETS)
        if not isinstance(data, list):
            if data is not None:
                LOG.warning("Ignoring malformed asset cache (%s)", type(data).__name__)
            return []
        out: List[AssetRecord] = []
        for item in data:
            if not isinstance(item, Mapping):
                continue
            try:
                out.append(AssetRecord.from_wire(item))
            except (TypeError, ValueError, OverflowError, AttributeError) as exc:
                LOG.warning("Skipping malformed cached asset: %s", exc)
        return out

    def save_assets(self, records: Iterable[AssetRecord]) -> int:
        """Persist records at the richest tier that fits.

        Returns the tier written (0..2), or TIER_SKIPPED when nothing was
        written.
        """
        items = list(records)
        for tier, label, build in compact_tiers():
            if self._write_json(C.KEY_ASSETS, build(items)):
                if tier:
                    LOG.info("Asset cache stored %s (tier %d)", label, tier)
                return tier
        LOG.warning(
            "Asset cache not updated: %d records do not fit local storage; previous copy kept",
            len(items),
        )
        return TIER_SKIPPED

    # -------------------- Plain blobs --------------------
    def load_blob(self, key: str, default: Any = None) -> Any:
        data = self._read_json(key)
        return default if data is None else data

    def save_blob(self, key: str, value: Any) -> bool:
        """Write a plain list/map; on failure skip and warn."""
        if self._write_json(key, value):
            return True
        LOG.warning("Local cache write skipped for %s", key)
        return False

    def prepend_capped(self, key: str, entry: Mapping[str, Any], limit: int) -> bool:
        """Ring buffer: newest entry first, oldest dropped beyond limit."""
        current = self.load_blob(key, [])
        if not isinstance(current, list):
            current = []
        return self.save_blob(key, [dict(entry)] + current[: max(limit - 1, 0)])

    def load_locations(self) -> List[Any]:
        return self._list_blob(C.KEY_LOCATIONS)

    def save_locations(self, locations: List[Any]) -> bool:
        return self.save_blob(C.KEY_LOCATIONS, locations)

    def load_staff_users(self) -> List[Any]:
        return self._list_blob(C.KEY_STAFF_USERS)

    def save_staff_users(self, users: List[Any]) -> bool:
        return self.save_blob(C.KEY_STAFF_USERS, users)

    def load_campus_names(self) -> Dict[str, str]:
        return self._map_blob(C.KEY_CAMPUS_NAMES)

    def save_campus_names(self, names: Mapping[str, str]) -> bool:
        return self.save_blob(C.KEY_CAMPUS_NAMES, dict(names))

    def load_item_types(self) -> Dict[str, Any]:
        return self._map_blob(C.KEY_ITEM_TYPES)

    def save_item_types(self, types: Mapping[str, Any]) -> bool:
        return self.save_blob(C.KEY_ITEM_TYPES, dict(types))

    def load_auth_session(self) -> Dict[str, Any]:
        return self._map_blob(C.KEY_AUTH_SESSION)

    def save_auth_session(self, token: str, user: Mapping[str, Any]) -> bool:
        return self.save_blob(C.KEY_AUTH_SESSION, {"token": token, "user": dict(user)})

    def clear_auth_session(self) -> None:
        self.storage.remove(C.KEY_AUTH_SESSION)

    # -------------------- Audit log and inventory --------------------
    def append_audit(
        self,
        action: str,
        entity: str,
        entity_id: str,
        summary: str = "",
        actor: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        now = self.clock()
        entry = {
            "id": int(now.timestamp() * 1000),
            "date": now.isoformat(),
            "action": action,
            "entity": entity,
            "entityId": entity_id,
            "summary": summary,
            "actor": dict(actor) if actor else {"id": 0, "username": "local", "displayName": "Local", "role": "System"},
        }
        self.prepend_capped(C.KEY_AUDIT_LOG, entry, C.AUDIT_LOG_LIMIT)
        return entry

    def load_audit_log(self) -> List[Dict[str, Any]]:
        return self._list_blob(C.KEY_AUDIT_LOG)

    def load_inventory_items(self) -> List[Any]:
        return self._list_blob(C.KEY_INVENTORY_ITEMS)

    def save_inventory_items(self, items: List[Any]) -> bool:
        return self.save_blob(C.KEY_INVENTORY_ITEMS, items)

    def append_inventory_txn(self, txn: Mapping[str, Any]) -> bool:
        return self.prepend_capped(C.KEY_INVENTORY_TXNS, txn, C.INVENTORY_TXN_LIMIT)

    def load_inventory_txns(self) -> List[Dict[str, Any]]:
        return self._list_blob(C.KEY_INVENTORY_TXNS)

    # -------------------- Internal helpers --------------------
    def _list_blob(self, key: str) -> List[Any]:
        data = self._read_json(key)
        return data if isinstance(data, list) else []

    def _map_blob(self, key: str) -> Dict[str, Any]:
        data = self._read_json(key)
        return data if isinstance(data, dict) else {}

    def _read_json(self, key: str) -> Any:
        raw = self.storage.get(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            LOG.warning("Ignoring corrupt cache entry %s", key)
            return None

    def _write_json(self, key: str, value: Any) -> bool:
        try:
            payload = json.dumps(value, ensure_ascii=False)
            self.storage.set(key, payload)
            return True
        except QuotaExceededError as exc:
            LOG.debug("Quota exceeded for %s: %s", key, exc)
            return False
        except (OSError, TypeError, ValueError) as exc:
            LOG.warning("Cache write failed for %s: %s", key, exc)
            return False
