import io
import os
from unittest.mock import MagicMock, patch

import pytest

from sentrylog import remote


@pytest.fixture(autouse=True)
def isolate_remote_client(monkeypatch, tmp_path):
    """
    Resets the Sentry init guard, strips every SENTRYLOG_* variable and runs the
    test from an empty directory, so LoggerSettings() never picks up a developer's
    environment or .env file.
    """
    for name in [key for key in os.environ if key.upper().startswith("SENTRYLOG_")]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    remote.reset_remote_client()
    yield
    remote.reset_remote_client()


@pytest.fixture
def fake_sentry():
    """Replaces the sentry_sdk module seen by sentrylog.remote."""
    with patch("sentrylog.remote.sentry_sdk") as sdk:
        sdk.scope = MagicMock(name="scope")
        sdk.new_scope.return_value.__enter__.return_value = sdk.scope
        yield sdk


@pytest.fixture
def stream():
    return io.StringIO()
