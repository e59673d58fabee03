"""
Exception hierarchy for sentrylog.

Only construction can fail in a way this package reports itself. Failures raised
by a sink while handling a record (for example an ``OSError`` from the output
stream) propagate to the emitting caller unchanged.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import urlsplit


class SentrylogError(Exception):
    """Base class for all sentrylog errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class RemoteInitError(SentrylogError):
    """The remote error-tracking client rejected its configuration.

    The DSN key is never stored on the exception, only its host.
    """

    def __init__(self, *, dsn: str, reason: str) -> None:
        host = urlsplit(dsn).hostname if dsn else None
        super().__init__(
            f"sentry init failed: {reason}",
            code="remote_init_failed",
            details={"dsn_host": host, "reason": reason},
        )
