"""
Log sink abstractions and concrete implementations.
"""

from __future__ import annotations

import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import IO, Any, Mapping

import orjson

from .levels import Level

Attrs = tuple[tuple[str, Any], ...]

_write_lock = threading.Lock()


_OPTIONS = orjson.OPT_UTC_Z | orjson.OPT_NAIVE_UTC | orjson.OPT_NON_STR_KEYS

# orjson rejects ints outside this range without consulting ``default``.
_INT_MIN = -(2**63)
_INT_MAX = 2**64 - 1


def _sanitize(v: Any) -> Any:
    """Rewrite values orjson cannot encode: huge ints to str, lone surrogates escaped."""
    if isinstance(v, str):
        return v.encode("utf-8", "backslashreplace").decode("utf-8")
    if isinstance(v, bool) or v is None:
        return v
    if isinstance(v, int):
        return v if _INT_MIN <= v <= _INT_MAX else str(v)
    if isinstance(v, Mapping):
        return {_sanitize(k) if isinstance(k, str) else k: _sanitize(val) for k, val in v.items()}
    if isinstance(v, (list, tuple)):
        return [_sanitize(item) for item in v]
    return v


def orjson_dumps(v: Any, *, default: Any = None) -> str:
    """Fast JSON serialization using orjson.

    Payloads orjson rejects outright (ints beyond 64 bits, strings with lone
    surrogates) are sanitized and encoded a second time.
    """
    try:
        return orjson.dumps(v, default=default, option=_OPTIONS).decode()
    except orjson.JSONEncodeError:
        fallback = None if default is None else (lambda o: _sanitize(default(o)))
        return orjson.dumps(_sanitize(v), default=fallback, option=_OPTIONS).decode()


def merge_at(base: Mapping[str, Any], path: tuple[str, ...], values: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``base`` with ``values`` merged into the nested group ``path``.

    Only the dicts along ``path`` are copied; ``base`` itself is never mutated.
    """
    merged = dict(base)
    if not path:
        merged.update(values)
        return merged
    head, rest = path[0], path[1:]
    child = merged.get(head)
    merged[head] = merge_at(child if isinstance(child, Mapping) else {}, rest, values)
    return merged


@dataclass(frozen=True, slots=True)
class Record:
    """A single log record, built once per emission call."""

    level: Level
    message: str
    attrs: Attrs = ()
    timestamp: str | None = None
    source: Mapping[str, Any] | None = None
    exception: str | None = None

    def attr_dict(self) -> dict[str, Any]:
        """Attributes as a flat dict; the last value wins on duplicate keys."""
        return dict(self.attrs)


# =============================================================================
# Sink Abstraction (Strategy Pattern)
# =============================================================================


class Sink(ABC):
    """Abstract base class for log sinks.

    Sinks are values: ``with_attrs`` and ``with_group`` return new sinks and
    leave the receiver untouched.
    """

    @abstractmethod
    def handle(self, record: Record) -> None:
        """Deliver a record. Exceptions propagate to the emitting caller."""
        ...

    @abstractmethod
    def enabled(self, level: int) -> bool:
        """Whether this sink wants records at ``level``."""
        ...

    @abstractmethod
    def with_attrs(self, attrs: Mapping[str, Any]) -> Sink:
        """Derive a sink that adds ``attrs`` to every record."""
        ...

    @abstractmethod
    def with_group(self, name: str) -> Sink:
        """Derive a sink that nests subsequent attributes under ``name``."""
        ...

    def close(self) -> None:
        """Close the sink and release resources."""
        pass


class JsonSink(Sink):
    """One JSON object per record, one record per line.

    Args:
        stream: Output stream (default: ``sys.stdout``, resolved at write time)
        level: Minimum level written
        add_source: Include the ``source`` call-site object
    """

    RESERVED_KEYS = frozenset({"timestamp", "level", "message", "source", "exception"})

    def __init__(
        self,
        stream: IO[str] | None = None,
        *,
        level: Level = Level.INFO,
        add_source: bool = True,
        _attrs: Mapping[str, Any] | None = None,
        _groups: tuple[str, ...] = (),
    ):
        self._stream = stream
        self._level = level
        self._add_source = add_source
        self._attrs: Mapping[str, Any] = _attrs or {}
        self._groups = _groups

    @property
    def level(self) -> Level:
        return self._level

    def _derive(self, attrs: Mapping[str, Any], groups: tuple[str, ...]) -> JsonSink:
        return JsonSink(
            self._stream,
            level=self._level,
            add_source=self._add_source,
            _attrs=attrs,
            _groups=groups,
        )

    def enabled(self, level: int) -> bool:
        return level >= self._level

    def with_attrs(self, attrs: Mapping[str, Any]) -> JsonSink:
        if not attrs:
            return self
        return self._derive(merge_at(self._attrs, self._groups, attrs), self._groups)

    def with_group(self, name: str) -> JsonSink:
        if not name:
            return self
        return self._derive(self._attrs, (*self._groups, name))

    def render(self, record: Record) -> dict[str, Any]:
        """Build the JSON object for ``record``."""
        payload: dict[str, Any] = {
            "timestamp": record.timestamp,
            "level": record.level.label,
            "message": record.message,
        }
        if self._add_source and record.source:
            payload["source"] = dict(record.source)

        body = merge_at(self._attrs, self._groups, record.attr_dict()) if record.attrs else self._attrs
        for key, value in body.items():
            # Attributes never shadow the record's own fields.
            payload[f"_{key}" if key in self.RESERVED_KEYS else key] = value

        if record.exception:
            payload["exception"] = record.exception
        return payload

    def handle(self, record: Record) -> None:
        if not self.enabled(record.level):
            return
        line = orjson_dumps(self.render(record), default=str)
        stream = self._stream or sys.stdout
        with _write_lock:
            stream.write(line + "\n")
            stream.flush()


class FanoutSink(Sink):
    """Offers every record to ``primary`` then ``secondary``.

    A failure in ``primary`` propagates before ``secondary`` sees the record.
    """

    def __init__(self, primary: Sink, secondary: Sink):
        self._primary = primary
        self._secondary = secondary

    @property
    def branches(self) -> tuple[Sink, Sink]:
        return self._primary, self._secondary

    def handle(self, record: Record) -> None:
        self._primary.handle(record)
        self._secondary.handle(record)

    def enabled(self, level: int) -> bool:
        return self._primary.enabled(level) or self._secondary.enabled(level)

    def with_attrs(self, attrs: Mapping[str, Any]) -> FanoutSink:
        return FanoutSink(self._primary.with_attrs(attrs), self._secondary.with_attrs(attrs))

    def with_group(self, name: str) -> FanoutSink:
        return FanoutSink(self._primary.with_group(name), self._secondary.with_group(name))

    def close(self) -> None:
        try:
            self._primary.close()
        finally:
            self._secondary.close()
