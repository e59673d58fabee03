"""
Structured logging with optional Sentry fan-out.

Records are written as JSON lines to stdout. When Sentry is enabled, records at
warn or above are also captured as Sentry message events, after the JSON line
has been written.

Design Pattern: Strategy Pattern for sinks, Decorator for the fan-out.
Library: structlog + orjson for the local sink, sentry-sdk for the remote one.
"""

from .config import LoggerSettings
from .core import Logger, create, create_tagged, wrap_sink
from .exceptions import RemoteInitError, SentrylogError
from .levels import Level, parse_level, to_sentry_level
from .remote import SentrySink, flush_remote_client, init_remote_client, reset_remote_client
from .sinks import FanoutSink, JsonSink, Record, Sink

__all__ = [
    "FanoutSink",
    "JsonSink",
    "Level",
    "Logger",
    "LoggerSettings",
    "Record",
    "RemoteInitError",
    "SentrySink",
    "SentrylogError",
    "Sink",
    "create",
    "create_tagged",
    "flush_remote_client",
    "init_remote_client",
    "parse_level",
    "reset_remote_client",
    "to_sentry_level",
    "wrap_sink",
]
