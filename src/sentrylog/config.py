"""
Logger Configuration.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggerSettings(BaseSettings):
    """
    Settings consumed by :func:`sentrylog.create`.
    Prefix: SENTRYLOG_

    Values passed as keyword arguments win over the environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="SENTRYLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Free text on purpose: unknown names resolve to "info" in parse_level().
    level: str = Field(default="info", description="Log level (debug, info, warn, error)")

    # Sentry
    remote_dsn: str = Field(default="", description="Sentry DSN")
    remote_enabled: bool = Field(default=False, description="Send warn+ records to Sentry")
    remote_level: str = Field(default="warn", description="Minimum level forwarded to Sentry")
    traces_sample_rate: float = Field(default=0.05, ge=0.0, le=1.0, description="Sentry trace sampling")
    flush_timeout: float = Field(default=2.0, ge=0.0, description="Seconds to wait for buffered events")
    environment: Optional[str] = Field(default=None, description="Sentry environment tag")
    release: Optional[str] = Field(default=None, description="Sentry release tag")

    @property
    def remote_active(self) -> bool:
        return self.remote_enabled and bool(self.remote_dsn)
