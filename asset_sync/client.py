"""Asset API client with reconciliation and local-only fallback writes.

Every operation tries the backend first. Reads that get no usable answer
return the cached collection instead. Writes fall back to the local cache
only when the backend was unreachable or does not serve the route yet; an
answer from the application itself (validation, permission) is raised to
the caller and nothing is written locally.

The cache is re-read immediately before every modification.
"""

from __future__ import annotations

import dataclasses
import datetime as _dt
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from core.cli_errors import (
    NetworkError,
    NotFoundError,
    RouteMissingError,
    ServerUnreachableError,
    ValidationError,
)
from core.constants import API_ASSETS

from .cache import TIER_SKIPPED, LocalCache
from .catalog import (
    build_asset_id,
    clean_transfer_entries,
    is_replacement_done,
    next_asset_seq,
    normalize_completion,
    validate_asset,
)
from .endpoints import EndpointResolver
from .models import (
    MAINTENANCE_HISTORY,
    STATUS_HISTORY,
    TRANSFER_HISTORY,
    AssetRecord,
    HistoryField,
    normalize_entry,
    to_int,
    to_text,
)
from .photos import normalize_photo_set
from .reconcile import fold_record, reconcile_assets

LOG = logging.getLogger(__name__)

__all__ = ["AssetSyncClient", "FetchResult", "allows_local_fallback"]

STATUS_RETIRED = "Retired"

# Failures that mean "no backend handled this", as opposed to "the backend said no"
_FALLBACK_ERRORS = (ServerUnreachableError, RouteMissingError)


def allows_local_fallback(exc: BaseException) -> bool:
    return isinstance(exc, _FALLBACK_ERRORS)


def _default_clock() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


def _records_from_body(body: Any) -> List[AssetRecord]:
    items = body.get("assets") if isinstance(body, dict) else body
    if not isinstance(items, list):
        LOG.warning("Unexpected asset list response: %s", type(body).__name__)
        return []
    return [AssetRecord.from_wire(i) for i in items if isinstance(i, Mapping)]


def _record_from_body(body: Any) -> Optional[AssetRecord]:
    if not isinstance(body, dict):
        return None
    data = body.get("asset") if isinstance(body.get("asset"), dict) else body
    if "id" not in data and "assetId" not in data:
        return None
    return AssetRecord.from_wire(data)


@dataclass
class FetchResult:
    records: List[AssetRecord]
    offline: bool = False
    tier: int = TIER_SKIPPED
    error: Optional[str] = None


class AssetSyncClient:
    """Asset CRUD against the backend, reconciled into the local cache."""

    def __init__(
        self,
        resolver: EndpointResolver,
        cache: LocalCache,
        clock: Callable[[], _dt.datetime] = _default_clock,
        actor: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.resolver = resolver
        self.cache = cache
        self.clock = clock
        self.actor = dict(actor) if actor else None

    # -------------------- Reads --------------------
    def fetch_assets(self) -> FetchResult:
        """Fetch, reconcile with the cache, store, and return the merged set."""
        try:
            body = self.resolver.get(API_ASSETS)
        except NetworkError as exc:
            LOG.warning("Working offline: %s", exc)
            return FetchResult(self.cache.load_assets(), offline=True, error=str(exc))

        fresh = _records_from_body(body)
        merged = reconcile_assets(fresh, self.cache.load_assets())
        tier = self.cache.save_assets(merged)
        LOG.info("Fetched %d assets (%d after merge)", len(fresh), len(merged))
        return FetchResult(merged, offline=False, tier=tier)

    def cached_assets(self) -> List[AssetRecord]:
        return self.cache.load_assets()

    def find_cached(self, record_id: int) -> AssetRecord:
        for rec in self.cache.load_assets():
            if rec.id == record_id:
                return rec
        raise NotFoundError(f"Asset {record_id} not found in local cache")

    # -------------------- Asset writes --------------------
    def create_asset(self, payload: Mapping[str, Any]) -> AssetRecord:
        try:
            body = self.resolver.post(API_ASSETS, dict(payload))
        except NetworkError as exc:
            if not allows_local_fallback(exc):
                raise
            return self._create_local(payload, exc)
        record = _record_from_body(body) or AssetRecord.from_wire(payload)
        self._fold(record)
        return record

    def update_asset(self, record_id: int, changes: Mapping[str, Any]) -> AssetRecord:
        try:
            body = self.resolver.patch(f"{API_ASSETS}/{record_id}", dict(changes))
        except NetworkError as exc:
            if not allows_local_fallback(exc):
                raise
            return self._update_local(record_id, changes, exc)
        return self._fold_echo(body, record_id, frozenset(changes))

    def delete_asset(self, record_id: int) -> None:
        local_reason: Optional[NetworkError] = None
        try:
            self.resolver.delete(f"{API_ASSETS}/{record_id}")
        except NetworkError as exc:
            if not allows_local_fallback(exc):
                raise
            local_reason = exc

        records = self.cache.load_assets()
        removed = [r for r in records if r.id == record_id]
        self.cache.save_assets([r for r in records if r.id != record_id])
        if local_reason is not None:
            if not removed:
                raise NotFoundError(f"Asset {record_id} not found in local cache")
            LOG.warning("Backend unavailable (%s); asset %s removed locally only", local_reason, record_id)
            self._audit("DELETE", "asset", removed[0].asset_id, f"{removed[0].name} (local only)")

    # -------------------- Maintenance history --------------------
    def add_history(self, record_id: int, entry: Mapping[str, Any]) -> AssetRecord:
        try:
            body = self.resolver.post(f"{API_ASSETS}/{record_id}/history", dict(entry))
        except NetworkError as exc:
            if not allows_local_fallback(exc):
                raise
            return self._add_history_local(record_id, entry, exc)
        return self._fold_echo(body, record_id, frozenset([MAINTENANCE_HISTORY, STATUS_HISTORY]))

    def update_history(self, record_id: int, entry_id: int, changes: Mapping[str, Any]) -> AssetRecord:
        path = f"{API_ASSETS}/{record_id}/history/{entry_id}"
        try:
            body = self.resolver.patch(path, dict(changes))
        except NetworkError as exc:
            if not allows_local_fallback(exc):
                raise
            return self._update_history_local(record_id, entry_id, changes, exc)
        return self._fold_echo(body, record_id, frozenset([MAINTENANCE_HISTORY, STATUS_HISTORY]))

    def delete_history(self, record_id: int, entry_id: int) -> AssetRecord:
        try:
            body = self.resolver.delete(f"{API_ASSETS}/{record_id}/history/{entry_id}")
        except NetworkError as exc:
            if not allows_local_fallback(exc):
                raise
            return self._delete_history_local(record_id, entry_id, exc)
        return self._fold_echo(body, record_id, frozenset([MAINTENANCE_HISTORY]))

    # -------------------- Status --------------------
    def update_status(self, record_id: int, status: str, reason: str = "", by: str = "") -> AssetRecord:
        status = to_text(status)
        if not status:
            raise ValidationError("Status is required")
        current = self._cached_or_none(record_id)
        from_status = current.status if current else ""
        entry = {
            "id": self._mint_id(current.status_history if current else ()),
            "date": self.clock().isoformat(),
            "fromStatus": from_status or "Unknown",
            "toStatus": status,
            "reason": to_text(reason),
            "by": to_text(by),
        }
        previous = list(current.status_history) if current else []
        payload = {
            "status": status,
            "reason": entry["reason"],
            "by": entry["by"],
            "fromStatus": entry["fromStatus"],
            STATUS_HISTORY: [entry] + previous,
        }
        try:
            body = self.resolver.patch(f"{API_ASSETS}/{record_id}/status", payload)
        except NetworkError as exc:
            if not allows_local_fallback(exc):
                raise
            if current is None:
                raise NotFoundError(f"Asset {record_id} not found in local cache") from exc
            record = dataclasses.replace(
                current,
                status=status,
                status_history=HistoryField.of(payload[STATUS_HISTORY]),
                explicit_fields=frozenset([STATUS_HISTORY]),
            )
            self._replace(record)
            LOG.warning("Backend unavailable (%s); status of %s changed locally only", exc, current.asset_id)
            self._audit("STATUS", "asset", current.asset_id, f"{entry['fromStatus']} -> {status} (local only)")
            return record
        return self._fold_echo(body, record_id, frozenset([STATUS_HISTORY]))

    # -------------------- Local fallback paths --------------------
    def _create_local(self, payload: Mapping[str, Any], reason: NetworkError) -> AssetRecord:
        records = self.cache.load_assets()
        campus_names = self.cache.load_campus_names()
        cleaned = validate_asset(payload, campus_names)
        seq = next_asset_seq(records, cleaned["campus"], cleaned["category"], cleaned["type"])
        asset_id = build_asset_id(cleaned["campus"], cleaned["category"], cleaned["type"], seq, campus_names)
        record_id = self._mint_id({"id": r.id} for r in records)

        wire: Dict[str, Any] = dict(payload)
        wire.update(cleaned)
        wire.update(
            id=record_id,
            seq=seq,
            assetId=asset_id,
            name=to_text(payload.get("name")) or asset_id,
            created=self.clock().isoformat(),
            localOnly=True,
        )
        wire.update(normalize_photo_set(payload.get("photo"), payload.get("photos")).to_wire())
        wire[MAINTENANCE_HISTORY] = [
            {**e, "completion": normalize_completion(e.get("completion"))}
            for e in (payload.get(MAINTENANCE_HISTORY) or [])
            if isinstance(e, Mapping)
        ]
        wire[TRANSFER_HISTORY] = clean_transfer_entries(payload.get(TRANSFER_HISTORY), campus_names, record_id)
        wire.setdefault(STATUS_HISTORY, [])
        record = AssetRecord.from_wire(wire)

        self.cache.save_assets(fold_record(records, record))
        LOG.warning("Backend unavailable (%s); asset %s saved locally only", reason, asset_id)
        self._audit("CREATE", "asset", asset_id, f"{cleaned['campus']} | {cleaned['location']} (local only)")
        return record

    def _update_local(self, record_id: int, changes: Mapping[str, Any], reason: NetworkError) -> AssetRecord:
        current = self.find_cached(record_id)
        wire = current.to_wire()
        wire.update(changes)
        wire.update(validate_asset(wire, self.cache.load_campus_names()))
        if "photo" in changes or "photos" in changes:
            primary = changes.get("photo", current.photos.primary)
            gallery = changes.get("photos", list(current.photos))
            wire.update(normalize_photo_set(primary, gallery).to_wire())
        # Identity is never changed by an edit
        wire.update(id=current.id, assetId=current.asset_id, seq=current.seq)
        record = AssetRecord.from_wire(wire)
        self._replace(record)
        LOG.warning("Backend unavailable (%s); asset %s updated locally only", reason, current.asset_id)
        self._audit("UPDATE", "asset", current.asset_id, "fields: " + ", ".join(sorted(changes)) + " (local only)")
        return record

    def _add_history_local(self, record_id: int, entry: Mapping[str, Any], reason: NetworkError) -> AssetRecord:
        current = self.find_cached(record_id)
        fields = _maintenance_fields(entry)
        if not fields["date"] or not fields["type"] or not fields["note"]:
            raise ValidationError("Date, type, and note are required")
        fields["id"] = self._mint_id(current.maintenance_history)
        history = [normalize_entry(MAINTENANCE_HISTORY, fields)] + list(current.maintenance_history)
        record = current.with_history(MAINTENANCE_HISTORY, HistoryField.of(history))
        if is_replacement_done(fields["type"], fields["completion"]):
            record = self._retire(record, "Auto retired after replacement maintenance", fields["by"])
        self._replace(record)
        LOG.warning("Backend unavailable (%s); history for %s saved locally only", reason, current.asset_id)
        self._audit("CREATE", "maintenance", current.asset_id, f"{fields['type']} (local only)")
        return record

    def _update_history_local(self, record_id: int, entry_id: int, changes: Mapping[str, Any],
                              reason: NetworkError) -> AssetRecord:
        current = self.find_cached(record_id)
        entries = list(current.maintenance_history)
        index = next((i for i, e in enumerate(entries) if e.get("id") == entry_id), None)
        if index is None:
            raise NotFoundError("History record not found")
        old = entries[index]
        incoming = _maintenance_fields(changes)
        updated = dict(old)
        for key in ("date", "type", "note"):
            updated[key] = incoming[key] or to_text(old.get(key))
        updated["completion"] = normalize_completion(changes.get("completion", old.get("completion")))
        for key in ("condition", "cost", "by", "photo"):
            if key in changes:
                updated[key] = incoming[key]
        if not updated["date"] or not updated["type"] or not updated["note"]:
            raise ValidationError("Date, type, and note are required")
        entries[index] = normalize_entry(MAINTENANCE_HISTORY, updated)

        record = current.with_history(MAINTENANCE_HISTORY, HistoryField.of(entries))
        if is_replacement_done(updated["type"], updated["completion"]):
            record = self._retire(record, "Auto retired after replacement maintenance", updated["by"])
        self._replace(record)
        LOG.warning("Backend unavailable (%s); history %s of %s updated locally only", reason, entry_id, current.asset_id)
        self._audit("UPDATE", "maintenance", current.asset_id, f"entry {entry_id} (local only)")
        return record

    def _delete_history_local(self, record_id: int, entry_id: int, reason: NetworkError) -> AssetRecord:
        current = self.find_cached(record_id)
        entries = [e for e in current.maintenance_history if e.get("id") != entry_id]
        if len(entries) == len(current.maintenance_history):
            raise NotFoundError("History record not found")
        record = current.with_history(MAINTENANCE_HISTORY, HistoryField.of(entries))
        self._replace(record)
        LOG.warning("Backend unavailable (%s); history %s of %s removed locally only", reason, entry_id, current.asset_id)
        self._audit("DELETE", "maintenance", current.asset_id, f"entry {entry_id} (local only)")
        return record

    # -------------------- Internal helpers --------------------
    def _retire(self, record: AssetRecord, reason: str, by: str) -> AssetRecord:
        if record.status == STATUS_RETIRED:
            return record
        entry = {
            "id": self._mint_id(record.status_history),
            "date": self.clock().isoformat(),
            "fromStatus": record.status or "Unknown",
            "toStatus": STATUS_RETIRED,
            "reason": reason,
            "by": by or "System",
        }
        history = HistoryField.of([entry] + list(record.status_history))
        return dataclasses.replace(record, status=STATUS_RETIRED, status_history=history)

    def _mint_id(self, existing: Any) -> int:
        """Millisecond timestamp, bumped past any id already in use."""
        minted = int(self.clock().timestamp() * 1000)
        used = [to_int(e.get("id")) or 0 for e in existing]
        if used and minted <= max(used):
            minted = max(used) + 1
        return minted

    def _cached_or_none(self, record_id: int) -> Optional[AssetRecord]:
        try:
            return self.find_cached(record_id)
        except NotFoundError:
            return None

    def _fold(self, record: AssetRecord) -> None:
        self.cache.save_assets(fold_record(self.cache.load_assets(), record))

    def _fold_echo(self, body: Any, record_id: int, explicit: frozenset) -> AssetRecord:
        echoed = _record_from_body(body)
        if echoed is None:
            LOG.debug("Response for asset %s carried no record; cache left as is", record_id)
            return self._cached_or_none(record_id) or AssetRecord(id=record_id)
        records = fold_record(
            self.cache.load_assets(),
            dataclasses.replace(echoed, explicit_fields=explicit),
        )
        self.cache.save_assets(records)
        return next((r for r in records if r.key == echoed.key), echoed)

    def _replace(self, record: AssetRecord) -> None:
        records = self.cache.load_assets()
        out = [record if r.key == record.key else r for r in records]
        if record.key not in {r.key for r in records}:
            out.insert(0, record)
        self.cache.save_assets(out)

    def _audit(self, action: str, entity: str, entity_id: str, summary: str) -> None:
        self.cache.append_audit(action, entity, entity_id, summary, self.actor)


def _maintenance_fields(entry: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "date": to_text(entry.get("date")),
        "type": to_text(entry.get("type")),
        "note": to_text(entry.get("note")),
        "completion": normalize_completion(entry.get("completion")),
        "condition": to_text(entry.get("condition")),
        "cost": to_text(entry.get("cost")),
        "by": to_text(entry.get("by")),
        "photo": to_text(entry.get("photo")),
    }
