"""Shared constants for the asset sync client.

Consolidates backend addresses, HTTP defaults, local storage keys and the
size limits applied when caching records.
"""

from __future__ import annotations

import os
from typing import Tuple

# -----------------------------------------------------------------------------
# Config paths
# -----------------------------------------------------------------------------

APP_DIR_NAME = "asset-sync"


def _config_roots() -> list[str]:
    """Return ordered list of config root directories."""
    roots: list[str] = []
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        roots.append(os.path.expanduser(xdg))
    roots.append(os.path.expanduser("~/.config"))
    return roots


def settings_yaml_paths() -> list[str]:
    """Return ordered list of settings.yaml paths to search.

    The first entry is also where new settings are written.
    """
    paths: list[str] = []

    env_cfg = os.environ.get("ASSET_SYNC_CONFIG")
    if env_cfg:
        paths.append(os.path.expanduser(env_cfg))

    for root in _config_roots():
        paths.append(os.path.join(root, APP_DIR_NAME, "settings.yaml"))

    # Dedupe while preserving order
    seen: set[str] = set()
    unique: list[str] = []
    for p in paths:
        if p and p not in seen:
            seen.add(p)
            unique.append(p)
    return unique


def default_cache_dir() -> str:
    xdg = os.environ.get("XDG_CACHE_HOME")
    root = os.path.expanduser(xdg) if xdg else os.path.expanduser("~/.cache")
    return os.path.join(root, APP_DIR_NAME)


# -----------------------------------------------------------------------------
# Backend
# -----------------------------------------------------------------------------

# Remote address substituted when the client runs on a developer machine
DEFAULT_REMOTE_API_BASE = os.environ.get("ASSET_REMOTE_API_BASE", "https://assets.example.com")

LOOPBACK_HOSTS = ("localhost", "127.0.0.1", "0.0.0.0", "::1", "[::1]")

API_ASSETS = "/api/assets"


# -----------------------------------------------------------------------------
# HTTP and timeouts
# -----------------------------------------------------------------------------

# Default timeout for HTTP requests: (connect_seconds, read_seconds)
DEFAULT_REQUEST_TIMEOUT: Tuple[int, int] = (10, 30)


# -----------------------------------------------------------------------------
# Local storage keys
# -----------------------------------------------------------------------------

KEY_ASSETS = "it_assets_cache_v1"
KEY_LOCATIONS = "it_locations_cache_v1"
KEY_STAFF_USERS = "it_staff_users_v1"
KEY_CAMPUS_NAMES = "it_campus_names_v1"
KEY_ITEM_TYPES = "it_custom_item_types_v1"
KEY_AUTH_SESSION = "it_auth_session_v1"
KEY_AUDIT_LOG = "it_audit_log_v1"
KEY_INVENTORY_ITEMS = "it_inventory_items_v1"
KEY_INVENTORY_TXNS = "it_inventory_txns_v1"

AUDIT_LOG_LIMIT = 500
INVENTORY_TXN_LIMIT = 5000

# Default storage budget for the file backend, in bytes
DEFAULT_STORAGE_QUOTA = 5 * 1024 * 1024


# -----------------------------------------------------------------------------
# Record limits
# -----------------------------------------------------------------------------

PHOTO_LIMIT = 5
COMPACT_PHOTO_LIMIT = 2
COMPACT_STATUS_HISTORY_LIMIT = 30
COMPACT_MAINTENANCE_HISTORY_LIMIT = 80
COMPACT_NOTE_CHARS = 500
COMPACT_CONDITION_CHARS = 250

# Months scanned when resolving a MONTHLY_WEEKDAY rule
RECURRENCE_HORIZON_MONTHS = 24

# Look-ahead for "due soon" alerts
DEFAULT_DUE_WINDOW_DAYS = 7
