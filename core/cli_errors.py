"""Error taxonomy and exit codes for the asset sync client.

Network failures are split by whether a response was obtained at all, so
callers can decide between retrying another endpoint, writing a local-only
record, or surfacing the server's message verbatim.
"""
from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class ExitCode(IntEnum):
    """Standard CLI exit codes."""
    SUCCESS = 0
    ERROR = 1
    USAGE = 2
    CONFIG_ERROR = 3
    AUTH_ERROR = 4
    NETWORK_ERROR = 5
    NOT_FOUND = 6
    PERMISSION_DENIED = 7
    INTERRUPTED = 130  # Standard for Ctrl+C


@dataclass
class CLIError(Exception):
    """Error with exit code and message."""
    message: str
    code: ExitCode = ExitCode.ERROR
    hint: Optional[str] = None

    def __str__(self) -> str:
        return self.message


class ConfigError(CLIError):
    """Configuration-related error."""
    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message, ExitCode.CONFIG_ERROR, hint)


class ValidationError(CLIError):
    """Record rejected by local validation before any write."""
    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message, ExitCode.USAGE, hint)


class NotFoundError(CLIError):
    """Resource not found error."""
    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message, ExitCode.NOT_FOUND, hint)


class NetworkError(CLIError):
    """No usable response from any backend candidate.

    Subclasses are the failure classes that allow a local-only fallback write.
    """
    status: Optional[int] = None

    def __init__(self, message: str, hint: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message, ExitCode.NETWORK_ERROR, hint)
        self.status = status


class ServerUnreachableError(NetworkError):
    """Every candidate failed at the transport level."""
    def __init__(self, message: str = "Cannot connect to server", hint: Optional[str] = None):
        super().__init__(
            message,
            hint or "Check the network connection or the configured API address.",
        )


class RouteMissingError(NetworkError):
    """The backend answered 404: it does not know this route yet."""
    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(
            message,
            hint or "Redeploy or restart the backend so it serves this API route.",
            status=404,
        )


class ServerError(NetworkError):
    """The backend answered with a 5xx status."""
    def __init__(self, message: str, status: int = 500, hint: Optional[str] = None):
        super().__init__(message, hint, status=status)


class ApiError(CLIError):
    """Definitive application-level rejection (validation, permission).

    Never retried against another endpoint and never demoted to a local write.
    """
    status: int = 400

    def __init__(self, message: str, status: int = 400, hint: Optional[str] = None):
        super().__init__(message, ExitCode.ERROR, hint)
        self.status = status


class AuthError(ApiError):
    """401/403 from the backend."""
    def __init__(self, message: str, status: int = 401, hint: Optional[str] = None):
        super().__init__(message, status, hint)
        self.code = ExitCode.AUTH_ERROR if status == 401 else ExitCode.PERMISSION_DENIED


class QuotaExceededError(Exception):
    """Raised by storage backends when a write does not fit the quota."""


def handle_error(error: Exception, verbose: bool = False) -> int:
    """Handle an exception and return appropriate exit code.

    Args:
        error: The exception to handle.
        verbose: If True, print stack trace for unexpected errors.

    Returns:
        Exit code to use.
    """
    if isinstance(error, CLIError):
        print(f"Error: {error.message}", file=sys.stderr)
        if error.hint:
            print(f"Hint: {error.hint}", file=sys.stderr)
        return error.code

    if isinstance(error, KeyboardInterrupt):
        print("\nInterrupted.", file=sys.stderr)
        return ExitCode.INTERRUPTED

    # Unexpected error
    print(f"Error: {error}", file=sys.stderr)
    if verbose:
        import traceback
        traceback.print_exc()
    return ExitCode.ERROR

