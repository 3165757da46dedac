"""Reconciliation of a freshly fetched record set with the cached copy.

Records are matched on ``(assetId, id)``. The authoritative side wins
field by field, except that:

- empty descriptive fields are healed from the cache,
- photo galleries are unioned (cache first) and the authoritative primary
  photo is promoted back to the front,
- a history list the payload did not mention at all keeps the cached list,
- entries present on both sides get their image healed from the cache,
- a status/transfer list that shrank without being explicitly written keeps
  the longer cached list.

Everything here is total and deterministic: bad input is passed through,
never raised on.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .models import HEALABLE_FIELDS, HISTORY_FIELDS, AssetRecord, HistoryField
from .photos import normalize_photo_set

LOG = logging.getLogger(__name__)

__all__ = ["reconcile_assets", "heal_record", "merge_history", "fold_record"]

# Lists where a shorter payload is more likely truncation than deletion
TRUNCATION_GUARDED = ("statusHistory", "transferHistory")

RecordLike = Union[AssetRecord, Mapping[str, Any]]


def _coerce(item: Any) -> Optional[AssetRecord]:
    if isinstance(item, AssetRecord):
        return item
    if isinstance(item, Mapping):
        try:
            return AssetRecord.from_wire(item)
        except (TypeError, ValueError, OverflowError, AttributeError) as exc:
            LOG.warning("Ignoring malformed record in reconcile input: %s", exc)
            return None
    LOG.debug("Ignoring non-record value in reconcile input: %r", type(item).__name__)
    return None


def merge_history(
    list_name: str,
    authoritative: HistoryField,
    cached: HistoryField,
    explicit: bool = False,
) -> HistoryField:
    """Merge one history list by entry id."""
    if not authoritative.present:
        return cached
    if (
        list_name in TRUNCATION_GUARDED
        and not explicit
        and len(authoritative) < len(cached)
    ):
        return cached

    cached_by_id: Dict[int, Dict[str, Any]] = {}
    for entry in cached:
        entry_id = entry.get("id")
        if entry_id and entry_id not in cached_by_id:
            cached_by_id[entry_id] = entry

    merged: List[Dict[str, Any]] = []
    for entry in authoritative:
        entry_id = entry.get("id")
        previous = cached_by_id.get(entry_id) if entry_id else None
        if previous and not entry.get("photo") and previous.get("photo"):
            entry = {**entry, "photo": previous["photo"]}
        merged.append(entry)
    return HistoryField.of(merged)


def heal_record(authoritative: AssetRecord, cached: AssetRecord) -> AssetRecord:
    """Authoritative record with gaps filled from the cached one."""
    explicit = authoritative.explicit_fields
    healed = {
        key: cached.text(key)
        for key in HEALABLE_FIELDS
        if key not in explicit and not authoritative.text(key) and cached.text(key)
    }
    record = authoritative.with_text(**healed) if healed else authoritative

    if explicit & {"photo", "photos"}:
        # A write that set the gallery replaces it outright
        gallery = authoritative.photos
    else:
        gallery = normalize_photo_set(None, list(cached.photos) + list(authoritative.photos))
        if authoritative.photos.primary:
            gallery = normalize_photo_set(authoritative.photos.primary, gallery)

    histories = {
        list_name: merge_history(
            list_name,
            authoritative.history(list_name),
            cached.history(list_name),
            explicit=list_name in explicit,
        )
        for list_name in HISTORY_FIELDS
    }
    record = dataclasses.replace(record, photos=gallery, explicit_fields=frozenset())
    for list_name, value in histories.items():
        record = record.with_history(list_name, value)
    return record


def reconcile_assets(
    authoritative: Iterable[RecordLike],
    cached: Iterable[RecordLike],
) -> List[AssetRecord]:
    """Merge a fetched record set into the cached one.

    Output order is the authoritative order followed by records only the
    cache knows about. Records with neither an assetId nor an id cannot be
    matched and are passed through as they are.
    """
    slots: List[Union[Tuple[str, str], AssetRecord]] = []
    by_key: Dict[Tuple[str, str], AssetRecord] = {}
    unkeyed: List[AssetRecord] = []

    for source in (authoritative, cached):
        for item in source:
            record = _coerce(item)
            if record is None:
                continue
            if not record.has_identity:
                if record not in unkeyed:
                    unkeyed.append(record)
                    slots.append(record)
                continue
            key = record.key
            prior = by_key.get(key)
            if prior is None:
                by_key[key] = record
                slots.append(key)
                continue
            try:
                by_key[key] = heal_record(prior, record)
            except (TypeError, ValueError, KeyError, AttributeError) as exc:
                LOG.warning("Keeping unmerged record %s: %s", key, exc)

    return [by_key[s] if isinstance(s, tuple) else s for s in slots]


def fold_record(records: Iterable[AssetRecord], incoming: AssetRecord) -> List[AssetRecord]:
    """Insert or replace one record in a collection.

    A record with the same key is healed in place; a new one goes to the
    front (newest first).
    """
    out: List[AssetRecord] = []
    placed = False
    for rec in records:
        if not placed and rec.has_identity and rec.key == incoming.key:
            out.append(heal_record(incoming, rec))
            placed = True
        else:
            out.append(rec)
    if not placed:
        out.insert(0, dataclasses.replace(incoming, explicit_fields=frozenset()))
    return out
