"""Shared fake/mock objects for testing.

Centralized location for fake clients and mock objects used across test suites.

Modules:
    http - FakeSession, FakeResponse for requests-based API testing
"""

from __future__ import annotations

from tests.fakes.http import FakeResponse, FakeSession

__all__ = [
    "FakeResponse",
    "FakeSession",
]
