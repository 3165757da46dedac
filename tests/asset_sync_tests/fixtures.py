"""Shared test fixtures for asset_sync tests."""

from __future__ import annotations

import datetime as _dt
from typing import Any, Dict, Optional

from asset_sync.cache import LocalCache
from asset_sync.client import AssetSyncClient
from asset_sync.endpoints import EndpointResolver
from asset_sync.storage import MemoryStorage
from tests.fakes.http import FakeSession

API = "https://api.example.test"
FIXED_NOW = _dt.datetime(2024, 3, 1, 8, 30, tzinfo=_dt.timezone.utc)


def fixed_clock() -> _dt.datetime:
    return FIXED_NOW


def make_asset(**overrides: Any) -> Dict[str, Any]:
    """Wire-format asset with sensible defaults."""
    data: Dict[str, Any] = {
        "id": 101,
        "assetId": "C1-IT-PC-0001",
        "seq": 1,
        "campus": "Samdach Pan Campus",
        "category": "IT",
        "type": "PC",
        "pcType": "Desktop",
        "name": "C1-IT-PC-0001",
        "location": "Computer Lab 1",
        "assignedTo": "",
        "status": "Active",
        "brand": "Dell",
        "model": "OptiPlex 7010",
        "serialNumber": "SN-001",
        "specs": "i5 / 16GB",
        "notes": "",
        "photo": "/uploads/a.jpg",
        "photos": ["/uploads/a.jpg"],
    }
    data.update(overrides)
    return data


def make_client(
    session: Optional[FakeSession] = None,
    storage: Optional[MemoryStorage] = None,
) -> AssetSyncClient:
    """Client against API with an in-memory cache and a fixed clock."""
    resolver = EndpointResolver(default_base=API, client_host="assets.example.test",
                                session=session or FakeSession())
    cache = LocalCache(storage or MemoryStorage(), clock=fixed_clock)
    return AssetSyncClient(resolver, cache, clock=fixed_clock)
