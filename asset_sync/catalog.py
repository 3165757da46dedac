"""Campus, category and type codes; business identifiers; local validation.

Used when the backend cannot be reached and the client has to mint a
local-only record itself. The rules mirror what the backend enforces so a
record accepted offline is also acceptable once it syncs.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from core.cli_errors import ValidationError

from .models import AssetRecord, RepeatMode, ScheduleRule, to_int, to_text

CAMPUS_MAP: Dict[str, str] = {
    "C1": "Samdach Pan Campus",
    "C2.1": "Chaktomuk Campus",
    "C2.2": "Chaktomuk Campus (C2.2)",
    "C3": "Boeung Snor Campus",
    "C4": "Veng Sreng Campus",
}

TYPE_CODES: Dict[str, List[str]] = {
    "IT": ["PC", "LAP", "TAB", "MON", "KBD", "MSE", "TV", "SPK", "PRN", "SW", "AP", "CAM"],
    "SAFETY": ["FE", "SD", "EL", "FB", "FCP"],
    "FACILITY": ["AC", "TBL", "CHR"],
}

CATEGORY_CODE = {"IT": "IT", "SAFETY": "SF", "FACILITY": "FC"}

# Types that must be assigned to a person unless kept in a shared room
USER_REQUIRED_TYPES = ("PC", "TAB", "SPK")

SHARED_LOCATION_KEYWORDS = (
    "teacher office",
    "itc room",
    "computer lab",
    "compuer lab",
    "compuer lap",
)

_CATEGORY_ALIASES = {"FC": "FACILITY", "FACILITIES": "FACILITY", "FACITY": "FACILITY"}

COMPLETION_DONE = "Done"
COMPLETION_PENDING = "Not Yet"


def normalize_category(value: Any) -> str:
    raw = to_text(value).upper()
    return _CATEGORY_ALIASES.get(raw, raw)


def normalize_campus(value: Any, campus_map: Optional[Mapping[str, str]] = None) -> str:
    """Campus display name from a code or a (case-insensitive) name; '' if unknown."""
    names = dict(CAMPUS_MAP, **(campus_map or {}))
    raw = to_text(value)
    if not raw:
        return ""
    upper = raw.upper()
    if upper in names:
        return names[upper]
    for name in names.values():
        if name.upper() == upper:
            return name
    return ""


def campus_code(name: str, campus_map: Optional[Mapping[str, str]] = None) -> str:
    names = dict(CAMPUS_MAP, **(campus_map or {}))
    for code, full in names.items():
        if full == name:
            return code
    return "CX"


def next_asset_seq(records: Iterable[AssetRecord], campus: str, category: str, type_code: str) -> int:
    seqs = [
        r.seq or 0
        for r in records
        if r.campus == campus and r.category == category and r.type == type_code
    ]
    return max(seqs, default=0) + 1


def build_asset_id(campus: str, category: str, type_code: str, seq: int,
                   campus_map: Optional[Mapping[str, str]] = None) -> str:
    """Business identifier such as ``C2.2-IT-PC-0007``."""
    return f"{campus_code(campus, campus_map)}-{CATEGORY_CODE.get(category, category)}-{type_code}-{seq:04d}"


def is_shared_location(location: str) -> bool:
    loc = (location or "").lower()
    return any(k in loc for k in SHARED_LOCATION_KEYWORDS)


def validate_asset(body: Mapping[str, Any], campus_map: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Return the cleaned classification fields of an asset payload.

    Raises:
        ValidationError: with the same message the backend would send.
    """
    campus = normalize_campus(body.get("campus"), campus_map)
    category = normalize_category(body.get("category"))
    type_code = to_text(body.get("type")).upper()
    location = to_text(body.get("location"))
    assigned_to = to_text(body.get("assignedTo"))

    if not campus:
        raise ValidationError("Campus is required")
    if not category:
        raise ValidationError("Category is required")
    if category not in TYPE_CODES:
        raise ValidationError("Category must be IT, SAFETY, or FACILITY")
    if not type_code:
        raise ValidationError("Type code is required")
    if type_code not in TYPE_CODES[category]:
        raise ValidationError(f"Type code '{type_code}' is not allowed for {category}")
    if type_code in USER_REQUIRED_TYPES and not is_shared_location(location) and not assigned_to:
        raise ValidationError(f"User is required for type {type_code}")

    raw_mode = to_text(body.get("repeatMode")).upper() or RepeatMode.NONE.value
    if raw_mode not in (RepeatMode.NONE.value, RepeatMode.MONTHLY_WEEKDAY.value):
        raise ValidationError("repeatMode must be NONE or MONTHLY_WEEKDAY")
    problem = ScheduleRule.from_wire(body).validation_error()
    if problem:
        raise ValidationError(problem)

    return {
        "campus": campus,
        "category": category,
        "type": type_code,
        "pcType": (to_text(body.get("pcType")) or "Desktop") if type_code == "PC" else "",
        "location": location,
        "assignedTo": assigned_to,
        "parentAssetId": to_text(body.get("parentAssetId")).upper(),
        "status": to_text(body.get("status")) or "Active",
    }


def normalize_completion(value: Any) -> str:
    text = to_text(value)
    return text if text in (COMPLETION_DONE, COMPLETION_PENDING) else COMPLETION_PENDING


def is_replacement_done(type_value: Any, completion: Any) -> bool:
    if normalize_completion(completion) != COMPLETION_DONE:
        return False
    return to_text(type_value).lower() in ("replacement", "replacment")


def clean_transfer_entries(entries: Any, campus_map: Optional[Mapping[str, str]] = None,
                           fallback_id: int = 0) -> List[Dict[str, Any]]:
    """Drop transfer entries without a date or destination; normalize the rest."""
    if not isinstance(entries, list):
        return []
    out: List[Dict[str, Any]] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        date = to_text(entry.get("date"))
        to_campus = normalize_campus(entry.get("toCampus"), campus_map)
        to_location = to_text(entry.get("toLocation"))
        if not date or not to_campus or not to_location:
            continue
        out.append({
            "id": to_int(entry.get("id")) or fallback_id,
            "date": date,
            "fromCampus": normalize_campus(entry.get("fromCampus"), campus_map),
            "fromLocation": to_text(entry.get("fromLocation")),
            "toCampus": to_campus,
            "toLocation": to_location,
            "reason": to_text(entry.get("reason")),
            "by": to_text(entry.get("by")),
            "note": to_text(entry.get("note")),
        })
    return out
