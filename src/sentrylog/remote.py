"""
Sentry sink and the process-wide Sentry client lifecycle.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping

import sentry_sdk

from .exceptions import RemoteInitError
from .levels import Level, to_sentry_level
from .sinks import Record, Sink, merge_at

_log = logging.getLogger(__name__)

# =============================================================================
# Client Lifecycle
# =============================================================================

_init_lock = threading.Lock()
_initialized_dsn: str | None = None


def init_remote_client(
    dsn: str,
    *,
    traces_sample_rate: float = 0.05,
    environment: str | None = None,
    release: str | None = None,
    shutdown_timeout: float = 2.0,
) -> bool:
    """Initialize the Sentry client once per DSN.

    Returns True when ``sentry_sdk.init`` actually ran. A different DSN replaces
    the active client.

    Raises:
        RemoteInitError: if Sentry rejects the configuration (e.g. malformed DSN).
    """
    global _initialized_dsn

    with _init_lock:
        if _initialized_dsn == dsn:
            _log.debug("sentry client already initialized, skipping")
            return False
        try:
            sentry_sdk.init(
                dsn=dsn,
                traces_sample_rate=traces_sample_rate,
                environment=environment,
                release=release,
                shutdown_timeout=shutdown_timeout,
            )
        except Exception as exc:
            raise RemoteInitError(dsn=dsn, reason=str(exc)) from exc
        _initialized_dsn = dsn
        _log.debug("sentry client initialized (traces_sample_rate=%s)", traces_sample_rate)
        return True


def flush_remote_client(timeout: float = 2.0) -> None:
    """Wait up to ``timeout`` seconds for buffered events. Best effort."""
    sentry_sdk.flush(timeout=timeout)


def reset_remote_client() -> None:
    """Forget which DSN was initialized so the next init runs again."""
    global _initialized_dsn

    with _init_lock:
        _initialized_dsn = None


# =============================================================================
# Sink
# =============================================================================


class SentrySink(Sink):
    """Sends records at or above ``level`` to Sentry as message events.

    Each event gets its own forked scope carrying the attributes as extras.
    Records are passed on to ``next`` whether or not they were sent.
    """

    def __init__(
        self,
        *,
        level: Level = Level.WARN,
        next: Sink | None = None,
        attrs: Mapping[str, Any] | None = None,
        groups: tuple[str, ...] = (),
    ):
        self._level = level
        self._next = next
        self._attrs: Mapping[str, Any] = attrs or {}
        self._groups = groups

    @property
    def level(self) -> Level:
        return self._level

    @property
    def next(self) -> Sink | None:
        return self._next

    def enabled(self, level: int) -> bool:
        return level >= self._level

    def with_attrs(self, attrs: Mapping[str, Any]) -> SentrySink:
        if not attrs:
            return self
        return SentrySink(
            level=self._level,
            next=self._next,
            attrs=merge_at(self._attrs, self._groups, attrs),
            groups=self._groups,
        )

    def with_group(self, name: str) -> SentrySink:
        if not name:
            return self
        return SentrySink(
            level=self._level,
            next=self._next,
            attrs=self._attrs,
            groups=(*self._groups, name),
        )

    def extras(self, record: Record) -> dict[str, Any]:
        """Flatten derived and record attributes into dotted Sentry extras."""
        nested = merge_at(self._attrs, self._groups, record.attr_dict()) if record.attrs else self._attrs
        flat: dict[str, Any] = {}
        _flatten(nested, "", flat)
        if record.exception:
            flat["exception"] = record.exception
        return flat

    def handle(self, record: Record) -> None:
        if record.level < self._level:
            if self._next is not None:
                self._next.handle(record)
            return

        extras = self.extras(record)
        with sentry_sdk.new_scope() as scope:
            for key, value in extras.items():
                scope.set_extra(key, value)
            scope.set_level(to_sentry_level(record.level))
            sentry_sdk.capture_message(record.message)

        if self._next is not None:
            self._next.handle(record)


def _flatten(values: Mapping[str, Any], prefix: str, out: dict[str, Any]) -> None:
    for key, value in values.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            _flatten(value, f"{name}.", out)
        else:
            out[name] = value
