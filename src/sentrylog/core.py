"""
Core logger construction: structlog processor chain, the Logger wrapper and the factory.
"""

from __future__ import annotations

from typing import IO, Any

import structlog
from structlog import BoundLoggerBase, DropEvent
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.typing import EventDict

from .config import LoggerSettings
from .levels import Level, level_for_method, parse_level
from .remote import SentrySink, flush_remote_client, init_remote_client
from .sinks import FanoutSink, JsonSink, Record, Sink

_METHOD_FOR_LEVEL = {
    Level.DEBUG: "debug",
    Level.INFO: "info",
    Level.WARN: "warning",
    Level.ERROR: "error",
}


class SinkLogger:
    """Wrapped logger at the end of the processor chain: hands the Record to a sink."""

    def __init__(self, sink: Sink):
        self.sink = sink

    def __repr__(self) -> str:
        return f"<SinkLogger(sink={self.sink!r})>"

    def msg(self, record: Record) -> None:
        self.sink.handle(record)

    debug = info = warn = warning = error = exception = critical = fatal = msg


# =============================================================================
# Structlog Processors
# =============================================================================


def drop_disabled(logger: SinkLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Drop the event early when no sink wants its level."""
    if not logger.sink.enabled(level_for_method(method_name)):
        raise DropEvent
    return event_dict


def to_record(logger: SinkLogger, method_name: str, event_dict: EventDict) -> tuple[tuple[Record], dict]:
    """Turn the processed event dict into a Record for the wrapped SinkLogger."""
    source = None
    if "pathname" in event_dict:
        source = {
            "function": event_dict.pop("func_name", None),
            "file": event_dict.pop("pathname"),
            "line": event_dict.pop("lineno", None),
        }
    event = event_dict.pop("event", None)
    record = Record(
        level=level_for_method(method_name),
        message="" if event is None else str(event),
        timestamp=event_dict.pop("timestamp", None),
        source=source,
        exception=event_dict.pop("exception", None),
        attrs=tuple(event_dict.items()),
    )
    return (record,), {}


PROCESSORS = [
    drop_disabled,
    structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    CallsiteParameterAdder(
        {CallsiteParameter.PATHNAME, CallsiteParameter.FUNC_NAME, CallsiteParameter.LINENO},
        additional_ignores=[__package__ or "sentrylog"],
    ),
    structlog.processors.format_exc_info,
    to_record,
]


# =============================================================================
# Logger
# =============================================================================


class Logger(BoundLoggerBase):
    """Structured logger backed by a single :class:`Sink`.

    ``bind``/``unbind``/``new`` manage structlog context, which is emitted as
    record attributes. ``with_attrs``/``with_group`` derive a new sink instead.
    """

    @property
    def sink(self) -> Sink:
        return self._logger.sink

    def enabled(self, level: int) -> bool:
        return self.sink.enabled(level)

    def _emit(self, method_name: str, event: str | None, args: tuple[Any, ...], kw: dict[str, Any]) -> Any:
        if args and event is not None:
            event = event % args
        return self._proxy_to_logger(method_name, event, **kw)

    def debug(self, event: str | None = None, *args: Any, **kw: Any) -> Any:
        return self._emit("debug", event, args, kw)

    def info(self, event: str | None = None, *args: Any, **kw: Any) -> Any:
        return self._emit("info", event, args, kw)

    def warning(self, event: str | None = None, *args: Any, **kw: Any) -> Any:
        return self._emit("warning", event, args, kw)

    warn = warning

    def error(self, event: str | None = None, *args: Any, **kw: Any) -> Any:
        return self._emit("error", event, args, kw)

    def exception(self, event: str | None = None, *args: Any, **kw: Any) -> Any:
        kw.setdefault("exc_info", True)
        return self._emit("exception", event, args, kw)

    def log(self, level: int, event: str | None = None, *args: Any, **kw: Any) -> Any:
        method_name = _METHOD_FOR_LEVEL.get(level)
        if method_name is None:
            # Between known levels: round down to the nearest one.
            known = [lvl for lvl in Level if lvl <= level]
            method_name = _METHOD_FOR_LEVEL[max(known)] if known else "debug"
        return self._emit(method_name, event, args, kw)

    def _with_sink(self, sink: Sink) -> Logger:
        return self.__class__(SinkLogger(sink), self._processors, self._context.__class__(self._context))

    def with_attrs(self, **attrs: Any) -> Logger:
        """Return a logger whose sink carries ``attrs`` on every record."""
        return self._with_sink(self.sink.with_attrs(attrs))

    def with_group(self, name: str) -> Logger:
        """Return a logger whose subsequent attributes nest under ``name``."""
        return self._with_sink(self.sink.with_group(name))


def wrap_sink(sink: Sink) -> Logger:
    """Build a Logger over an arbitrary sink."""
    return Logger(SinkLogger(sink), PROCESSORS, {})


# =============================================================================
# Factory
# =============================================================================


def create(config: LoggerSettings | None = None, *, stream: IO[str] | None = None) -> Logger:
    """
    Build a logger from ``config``.

    Records go to a JSON sink on ``stream`` (stdout by default). When Sentry is
    enabled and a DSN is set, records at ``config.remote_level`` or above are
    also sent to Sentry, after the JSON sink has written them.

    Raises:
        RemoteInitError: if the Sentry client cannot be initialized.
    """
    config = config or LoggerSettings()

    json_sink = JsonSink(stream, level=parse_level(config.level), add_source=True)
    sentry_sink = SentrySink(level=parse_level(config.remote_level))

    if not config.remote_active:
        return wrap_sink(json_sink)

    init_remote_client(
        config.remote_dsn,
        traces_sample_rate=config.traces_sample_rate,
        environment=config.environment,
        release=config.release,
        shutdown_timeout=config.flush_timeout,
    )
    try:
        return wrap_sink(FanoutSink(json_sink, sentry_sink))
    finally:
        flush_remote_client(config.flush_timeout)


def create_tagged(config: LoggerSettings | None, tag: str, *, stream: IO[str] | None = None) -> Logger:
    """Like :func:`create`, with a fixed ``tag`` attribute on every record."""
    return create(config, stream=stream).with_attrs(tag=tag)
