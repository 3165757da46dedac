"""Asset record model and wire conversion.

Records travel as camelCase JSON objects. ``AssetRecord.from_wire`` parses
them leniently (it never raises on odd shapes) and ``to_wire`` writes them
back, carrying unknown keys through untouched.

History lists are wrapped in ``HistoryField`` so that "the payload did not
mention this list" and "the payload says the list is empty" stay distinct
after parsing.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple

from core.date_utils import parse_weekday

from .photos import PhotoSet, normalize_photo_set

__all__ = [
    "AssetRecord",
    "HistoryField",
    "HistoryState",
    "RepeatMode",
    "ScheduleRule",
    "VerificationSchedule",
    "HISTORY_FIELDS",
    "IMAGE_HISTORY_FIELDS",
    "HEALABLE_FIELDS",
    "normalize_entry",
    "to_int",
    "to_text",
]

MAINTENANCE_HISTORY = "maintenanceHistory"
VERIFICATION_HISTORY = "verificationHistory"
TRANSFER_HISTORY = "transferHistory"
STATUS_HISTORY = "statusHistory"

HISTORY_FIELDS = (MAINTENANCE_HISTORY, VERIFICATION_HISTORY, TRANSFER_HISTORY, STATUS_HISTORY)

# Lists whose entries may embed an image reference
IMAGE_HISTORY_FIELDS = (MAINTENANCE_HISTORY, VERIFICATION_HISTORY)

# Wire names of the scalar fields the reconciler may fill from the cache
HEALABLE_FIELDS = (
    "specs",
    "notes",
    "brand",
    "model",
    "serialNumber",
    "purchaseDate",
    "warrantyUntil",
    "vendor",
)

# Text fields per history list; missing ones are written as ""
_ENTRY_TEXT_FIELDS: Dict[str, Tuple[str, ...]] = {
    MAINTENANCE_HISTORY: ("date", "type", "note", "completion", "condition", "cost", "by", "photo"),
    VERIFICATION_HISTORY: ("date", "result", "note", "condition", "by", "photo"),
    TRANSFER_HISTORY: (
        "date",
        "fromCampus",
        "fromLocation",
        "toCampus",
        "toLocation",
        "reason",
        "by",
        "note",
    ),
    STATUS_HISTORY: ("date", "fromStatus", "toStatus", "reason", "by"),
}

# (attribute, wire key) for plain text fields
_TEXT_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("asset_id", "assetId"),
    ("campus", "campus"),
    ("category", "category"),
    ("type", "type"),
    ("pc_type", "pcType"),
    ("name", "name"),
    ("location", "location"),
    ("set_code", "setCode"),
    ("parent_asset_id", "parentAssetId"),
    ("assigned_to", "assignedTo"),
    ("brand", "brand"),
    ("model", "model"),
    ("serial_number", "serialNumber"),
    ("specs", "specs"),
    ("purchase_date", "purchaseDate"),
    ("warranty_until", "warrantyUntil"),
    ("vendor", "vendor"),
    ("notes", "notes"),
    ("created", "created"),
)

_HISTORY_ATTRS = {
    MAINTENANCE_HISTORY: "maintenance_history",
    VERIFICATION_HISTORY: "verification_history",
    TRANSFER_HISTORY: "transfer_history",
    STATUS_HISTORY: "status_history",
}

_SCHEDULE_KEYS = ("nextMaintenanceDate", "repeatMode", "repeatWeekOfMonth", "repeatWeekday", "scheduleNote")
_VERIFICATION_KEYS = ("nextVerificationDate", "verificationFrequency")

_KNOWN_KEYS = frozenset(
    [wire for _, wire in _TEXT_FIELDS]
    + list(HISTORY_FIELDS)
    + list(_SCHEDULE_KEYS)
    + list(_VERIFICATION_KEYS)
    + ["id", "seq", "status", "photo", "photos"]
)


def to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def to_int(value: Any) -> Optional[int]:
    """Lenient integer conversion; None when the value is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return None


def normalize_entry(list_name: str, entry: Mapping[str, Any]) -> Dict[str, Any]:
    """Coerce one history entry to its canonical shape, keeping extra keys."""
    out: Dict[str, Any] = dict(entry)
    out["id"] = to_int(entry.get("id")) or 0
    for key in _ENTRY_TEXT_FIELDS.get(list_name, ()):
        out[key] = to_text(entry.get(key))
    return out


class HistoryState(str, Enum):
    OMITTED = "omitted"
    EMPTY = "empty"
    PRESENT = "present"


@dataclass(frozen=True)
class HistoryField:
    """A history list plus whether the payload included it at all."""

    entries: Tuple[Dict[str, Any], ...] = ()
    present: bool = False

    @classmethod
    def omitted(cls) -> "HistoryField":
        return cls((), False)

    @classmethod
    def of(cls, entries: Iterable[Mapping[str, Any]]) -> "HistoryField":
        return cls(tuple(dict(e) for e in entries), True)

    @classmethod
    def from_wire(cls, list_name: str, value: Any) -> "HistoryField":
        if not isinstance(value, list):
            return cls.omitted()
        return cls(
            tuple(normalize_entry(list_name, e) for e in value if isinstance(e, Mapping)),
            True,
        )

    @property
    def state(self) -> HistoryState:
        if not self.present:
            return HistoryState.OMITTED
        return HistoryState.PRESENT if self.entries else HistoryState.EMPTY

    def to_wire(self) -> Optional[List[Dict[str, Any]]]:
        if not self.present:
            return None
        return [dict(e) for e in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.entries)


class RepeatMode(str, Enum):
    NONE = "NONE"
    MONTHLY_WEEKDAY = "MONTHLY_WEEKDAY"


@dataclass(frozen=True)
class ScheduleRule:
    """Maintenance schedule: a literal next date or a K-th weekday of every month.

    ``weekday`` uses 0 = Sunday .. 6 = Saturday.
    """

    mode: RepeatMode = RepeatMode.NONE
    next_date: str = ""
    week_of_month: int = 0
    weekday: int = 0
    note: str = ""

    @classmethod
    def monthly_weekday(cls, week_of_month: int, weekday: int, note: str = "") -> "ScheduleRule":
        return cls(RepeatMode.MONTHLY_WEEKDAY, "", week_of_month, weekday, note)

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> "ScheduleRule":
        raw_mode = to_text(data.get("repeatMode")).upper()
        try:
            mode = RepeatMode(raw_mode or RepeatMode.NONE.value)
        except ValueError:
            mode = RepeatMode.NONE
        raw_weekday = data.get("repeatWeekday")
        weekday = parse_weekday(raw_weekday)
        if weekday is None:
            # Out-of-range numbers are kept so validation can report them
            weekday = to_int(raw_weekday) or 0
        return cls(
            mode=mode,
            next_date=to_text(data.get("nextMaintenanceDate")),
            week_of_month=to_int(data.get("repeatWeekOfMonth")) or 0,
            weekday=weekday,
            note=to_text(data.get("scheduleNote")),
        )

    def validation_error(self) -> Optional[str]:
        if self.mode != RepeatMode.MONTHLY_WEEKDAY:
            return None
        if not 1 <= self.week_of_month <= 5:
            return "repeatWeekOfMonth must be between 1 and 5"
        if not 0 <= self.weekday <= 6:
            return "repeatWeekday must be between 0 and 6"
        return None

    def to_wire(self) -> Dict[str, Any]:
        return {
            "nextMaintenanceDate": self.next_date,
            "repeatMode": self.mode.value,
            "repeatWeekOfMonth": self.week_of_month,
            "repeatWeekday": self.weekday,
            "scheduleNote": self.note,
        }


@dataclass(frozen=True)
class VerificationSchedule:
    next_date: str = ""
    frequency: str = ""

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> "VerificationSchedule":
        return cls(
            next_date=to_text(data.get("nextVerificationDate")),
            frequency=to_text(data.get("verificationFrequency")),
        )

    def to_wire(self) -> Dict[str, Any]:
        return {"nextVerificationDate": self.next_date, "verificationFrequency": self.frequency}


@dataclass
class AssetRecord:
    """One tracked item. ``(asset_id, id)`` is its merge key."""

    id: Optional[int] = None
    asset_id: str = ""
    seq: Optional[int] = None
    campus: str = ""
    category: str = ""
    type: str = ""
    pc_type: str = ""
    name: str = ""
    location: str = ""
    set_code: str = ""
    parent_asset_id: str = ""
    assigned_to: str = ""
    status: str = "Active"
    brand: str = ""
    model: str = ""
    serial_number: str = ""
    specs: str = ""
    purchase_date: str = ""
    warranty_until: str = ""
    vendor: str = ""
    notes: str = ""
    created: str = ""
    schedule: ScheduleRule = field(default_factory=ScheduleRule)
    verification: VerificationSchedule = field(default_factory=VerificationSchedule)
    photos: PhotoSet = field(default_factory=PhotoSet)
    maintenance_history: HistoryField = field(default_factory=HistoryField.omitted)
    verification_history: HistoryField = field(default_factory=HistoryField.omitted)
    transfer_history: HistoryField = field(default_factory=HistoryField.omitted)
    status_history: HistoryField = field(default_factory=HistoryField.omitted)
    extra: Dict[str, Any] = field(default_factory=dict)
    # Wire fields the write that produced this record set on purpose; not serialized
    explicit_fields: FrozenSet[str] = field(default=frozenset(), compare=False)

    # -------------------- Identity --------------------
    @property
    def key(self) -> Tuple[str, str]:
        return (self.asset_id, "" if self.id is None else str(self.id))

    @property
    def has_identity(self) -> bool:
        return bool(self.asset_id) or self.id is not None

    # -------------------- Field access by wire name --------------------
    def history(self, list_name: str) -> HistoryField:
        return getattr(self, _HISTORY_ATTRS[list_name])

    def with_history(self, list_name: str, value: HistoryField) -> "AssetRecord":
        return dataclasses.replace(self, **{_HISTORY_ATTRS[list_name]: value})

    def text(self, wire_key: str) -> str:
        for attr, wire in _TEXT_FIELDS:
            if wire == wire_key:
                return getattr(self, attr)
        raise KeyError(wire_key)

    def with_text(self, **wire_values: str) -> "AssetRecord":
        attrs = {wire: attr for attr, wire in _TEXT_FIELDS}
        return dataclasses.replace(self, **{attrs[k]: v for k, v in wire_values.items()})

    # -------------------- Wire conversion --------------------
    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> "AssetRecord":
        values: Dict[str, Any] = {attr: to_text(data.get(wire)) for attr, wire in _TEXT_FIELDS}
        return cls(
            id=to_int(data.get("id")),
            seq=to_int(data.get("seq")),
            status=to_text(data.get("status")) or "Active",
            schedule=ScheduleRule.from_wire(data),
            verification=VerificationSchedule.from_wire(data),
            photos=normalize_photo_set(data.get("photo"), data.get("photos")),
            maintenance_history=HistoryField.from_wire(MAINTENANCE_HISTORY, data.get(MAINTENANCE_HISTORY)),
            verification_history=HistoryField.from_wire(VERIFICATION_HISTORY, data.get(VERIFICATION_HISTORY)),
            transfer_history=HistoryField.from_wire(TRANSFER_HISTORY, data.get(TRANSFER_HISTORY)),
            status_history=HistoryField.from_wire(STATUS_HISTORY, data.get(STATUS_HISTORY)),
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
            **values,
        )

    def to_wire(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(self.extra)
        if self.id is not None:
            out["id"] = self.id
        if self.seq is not None:
            out["seq"] = self.seq
        for attr, wire in _TEXT_FIELDS:
            out[wire] = getattr(self, attr)
        out["status"] = self.status
        out.update(self.schedule.to_wire())
        out.update(self.verification.to_wire())
        out.update(self.photos.to_wire())
        for list_name in HISTORY_FIELDS:
            entries = self.history(list_name).to_wire()
            if entries is not None:
                out[list_name] = entries
        return out
