"""Backend address resolution with ordered fallback.

Candidates are tried strictly one after another:

- transport failure (DNS, refused connection, timeout): try the next one
- 2xx: done, return the parsed body
- 404 or 5xx: this server lacks the route; remember it and try the next one
- any other status: definitive answer from the application; raise it now

If every candidate fails, the last 404/5xx is raised when there was one,
otherwise ``ServerUnreachableError``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import requests

from core.cli_errors import (
    ApiError,
    AuthError,
    RouteMissingError,
    ServerError,
    ServerUnreachableError,
)
from core.collections import dedupe
from core.constants import DEFAULT_REMOTE_API_BASE, DEFAULT_REQUEST_TIMEOUT, LOOPBACK_HOSTS

from .settings import Settings

LOG = logging.getLogger(__name__)

__all__ = ["EndpointResolver", "is_loopback_host"]


def is_loopback_host(host: str) -> bool:
    """True for localhost-style hosts, with or without scheme/port."""
    value = (host or "").strip().lower()
    if not value:
        return False
    if "://" in value:
        value = urlparse(value).hostname or ""
    elif value.startswith("["):
        value = value.split("]", 1)[0] + "]"
    elif value.count(":") == 1:
        value = value.split(":", 1)[0]
    return value in LOOPBACK_HOSTS or value.startswith("127.")


def _join(base: str, path: str) -> str:
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def _parse_body(resp: Any) -> Any:
    text = getattr(resp, "text", "") or ""
    if not text.strip():
        return {}
    try:
        return resp.json()
    except ValueError:
        return {}


def _error_message(body: Any, status: int) -> str:
    if isinstance(body, dict):
        msg = body.get("error")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return f"Request failed ({status})"


class EndpointResolver:
    """Sends API requests to the first backend address that serves them."""

    def __init__(
        self,
        manual_override: str = "",
        default_base: str = "",
        client_host: str = "",
        origin: str = "",
        remote_default: str = DEFAULT_REMOTE_API_BASE,
        session: Optional[requests.Session] = None,
        timeout: Tuple[float, float] = DEFAULT_REQUEST_TIMEOUT,
        auth_token: str = "",
    ) -> None:
        self.manual_override = (manual_override or "").strip()
        self.default_base = (default_base or "").strip()
        self.client_host = (client_host or "").strip()
        self.origin = (origin or "").strip()
        self.remote_default = (remote_default or "").strip()
        self.session = session or requests.Session()
        self.timeout = timeout
        self.auth_token = auth_token
        self.active_base: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings, session: Optional[requests.Session] = None) -> "EndpointResolver":
        return cls(
            manual_override=settings.manual_override,
            default_base=settings.api_base,
            client_host=settings.client_host,
            origin=settings.origin,
            session=session,
            timeout=settings.timeout,
            auth_token=settings.auth_token,
        )

    @property
    def on_loopback(self) -> bool:
        return is_loopback_host(self.client_host)

    def candidate_bases(self) -> List[str]:
        """Base addresses in priority order, duplicates removed."""
        bases: List[str] = []
        if self.manual_override:
            bases.append(self.manual_override)
        if self.default_base:
            bases.append(self.default_base)
        if self.on_loopback:
            # A local dev server has no backend; talk to the known remote one
            if self.remote_default:
                bases.append(self.remote_default)
        elif self.origin:
            bases.append(self.origin)
        return dedupe(b.rstrip("/") for b in bases)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    def request(self, method: str, path: str, json_body: Any = None) -> Any:
        method = method.upper()
        last_failure: Optional[Tuple[int, str]] = None
        for base in self.candidate_bases():
            url = _join(base, path)
            LOG.debug("%s %s", method, url)
            try:
                resp = self.session.request(
                    method, url, json=json_body, headers=self._headers(), timeout=self.timeout
                )
            except requests.RequestException as exc:
                LOG.info("No response from %s: %s", base, exc)
                continue

            status = int(resp.status_code)
            body = _parse_body(resp)
            if 200 <= status < 300:
                if self.active_base != base:
                    LOG.info("Using API at %s", base)
                self.active_base = base
                return body

            message = _error_message(body, status)
            if status == 404 or status >= 500:
                LOG.warning("%s %s answered %d; trying next address", method, url, status)
                last_failure = (status, message)
                continue

            if status in (401, 403):
                raise AuthError(message, status)
            raise ApiError(message, status)

        if last_failure is not None:
            status, message = last_failure
            if status == 404:
                raise RouteMissingError(f"API route not found: {method} {path} ({message})")
            raise ServerError(message, status)
        raise ServerUnreachableError()

    def get(self, path: str) -> Any:
        return self.request("GET", path)

    def post(self, path: str, json_body: Any = None) -> Any:
        return self.request("POST", path, json_body)

    def patch(self, path: str, json_body: Any = None) -> Any:
        return self.request("PATCH", path, json_body)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)
