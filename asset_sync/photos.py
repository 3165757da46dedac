"""Photo-set normalization.

Records created before the gallery existed only carry a single ``photo``;
newer ones carry a ``photos`` gallery as well. Both are folded into one
bounded, deduplicated PhotoSet whose first entry is the primary photo.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple
from urllib.parse import urlparse

from core.collections import dedupe
from core.constants import PHOTO_LIMIT

__all__ = ["PhotoSet", "normalize_photo_value", "normalize_photo_set"]

_UPLOADS_PREFIX = "/uploads/"


@dataclass(frozen=True)
class PhotoSet:
    """Ordered image references; index 0 is the primary photo."""

    photos: Tuple[str, ...] = ()

    @property
    def primary(self) -> str:
        return self.photos[0] if self.photos else ""

    def __len__(self) -> int:
        return len(self.photos)

    def __iter__(self):
        return iter(self.photos)

    def to_wire(self) -> Dict[str, Any]:
        return {"photo": self.primary, "photos": list(self.photos)}


def normalize_photo_value(value: Any) -> str:
    """Normalize one image reference.

    Absolute URLs pointing at the backend's uploads folder are reduced to
    their path so the same photo matches across environments. Anything else
    (data URLs, relative paths, foreign URLs) is kept as-is.
    """
    if value is None:
        return ""
    raw = str(value).strip()
    if not raw or raw.startswith(_UPLOADS_PREFIX):
        return raw
    if raw.startswith("http://") or raw.startswith("https://"):
        try:
            path = urlparse(raw).path
        except ValueError:
            return raw
        if path.startswith(_UPLOADS_PREFIX):
            return path
    return raw


def _gallery_values(gallery: Any) -> Iterable[Any]:
    if isinstance(gallery, PhotoSet):
        return gallery.photos
    if isinstance(gallery, (list, tuple)):
        return gallery
    return ()


def normalize_photo_set(
    primary: Any = None,
    gallery: Any = None,
    limit: int = PHOTO_LIMIT,
) -> PhotoSet:
    """Build a PhotoSet from a legacy single photo plus a gallery.

    The primary reference goes first, then gallery entries in order;
    duplicates and empty values are dropped and the result is capped at
    ``limit`` entries.
    """
    first: Optional[str] = normalize_photo_value(primary) or None
    values = [normalize_photo_value(v) for v in _gallery_values(gallery)]
    ordered = ([first] if first else []) + [v for v in values if v]
    return PhotoSet(tuple(dedupe(ordered, limit=limit)))
