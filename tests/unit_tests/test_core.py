"""
Logger factory and end-to-end emission tests.
"""

from __future__ import annotations

import io
import json
import threading

import pytest

from sentrylog import Level, LoggerSettings, RemoteInitError, create, create_tagged
from sentrylog.sinks import FanoutSink, JsonSink

DSN = "https://public@o1.ingest.sentry.io/42"


def _lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def _remote_config(**overrides) -> LoggerSettings:
    return LoggerSettings(remote_dsn=DSN, remote_enabled=True, **overrides)


class TestCreateLevels:
    @pytest.mark.parametrize(
        ("name", "threshold"),
        [("debug", Level.DEBUG), ("info", Level.INFO), ("warn", Level.WARN), ("error", Level.ERROR)],
    )
    def test_threshold_boundary(self, name, threshold, stream):
        logger = create(LoggerSettings(level=name), stream=stream)
        for level in Level:
            assert logger.enabled(level) is (level >= threshold)

    @pytest.mark.parametrize("name", ["", "verbose", "TRACE"])
    def test_unknown_level_is_info(self, name, stream):
        logger = create(LoggerSettings(level=name), stream=stream)
        assert logger.sink.level is Level.INFO

    def test_disabled_levels_are_dropped(self, stream):
        logger = create(LoggerSettings(level="warn"), stream=stream)
        logger.debug("nope")
        logger.info("nope")
        logger.warning("yes")
        assert [line["message"] for line in _lines(stream)] == ["yes"]

    def test_default_config(self, stream):
        logger = create(stream=stream)
        assert isinstance(logger.sink, JsonSink)
        assert logger.sink.level is Level.INFO


class TestJsonOutput:
    def test_line_shape(self, stream):
        logger = create(LoggerSettings(level="debug"), stream=stream)
        logger.info("hello", user="ada", n=2)

        (line,) = _lines(stream)
        assert line["message"] == "hello"
        assert line["level"] == "info"
        assert line["user"] == "ada"
        assert line["n"] == 2
        assert line["timestamp"].endswith("Z")
        assert line["source"]["file"].endswith("test_core.py")
        assert line["source"]["function"] == "test_line_shape"
        assert isinstance(line["source"]["line"], int)

    def test_warn_alias(self, stream):
        create(stream=stream).warn("careful")
        assert _lines(stream)[0]["level"] == "warn"

    def test_positional_args_are_interpolated(self, stream):
        create(stream=stream).info("%s items", 3)
        assert _lines(stream)[0]["message"] == "3 items"

    def test_log_with_numeric_level(self, stream):
        logger = create(stream=stream)
        logger.log(Level.ERROR, "bad")
        logger.log(35, "between")
        assert [line["level"] for line in _lines(stream)] == ["error", "warn"]

    def test_exception_includes_traceback(self, stream):
        logger = create(stream=stream)
        try:
            raise ValueError("broken")
        except ValueError:
            logger.exception("failed")

        line = _lines(stream)[0]
        assert line["level"] == "error"
        assert "ValueError: broken" in line["exception"]
        assert "exc_info" not in line

    def test_bind_adds_context(self, stream):
        logger = create(stream=stream).bind(request_id="r1")
        logger.info("x")
        assert _lines(stream)[0]["request_id"] == "r1"

    def test_with_group_nests_attributes(self, stream):
        logger = create(stream=stream).with_attrs(svc="api").with_group("req")
        logger.info("x", path="/a")
        line = _lines(stream)[0]
        assert line["svc"] == "api"
        assert line["req"] == {"path": "/a"}

    def test_derivation_does_not_touch_original(self, stream):
        base = create(stream=stream)
        base.with_attrs(tag="X")
        base.info("plain")
        assert "tag" not in _lines(stream)[0]

    def test_stream_errors_reach_the_caller(self):
        stream = io.StringIO()
        logger = create(stream=stream)
        stream.close()
        with pytest.raises(ValueError):
            logger.info("lost")


class TestRemoteDisabled:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"remote_dsn": DSN, "remote_enabled": False},
            {"remote_dsn": "", "remote_enabled": True},
        ],
    )
    def test_error_goes_to_json_only(self, fake_sentry, stream, overrides):
        logger = create(LoggerSettings(**overrides), stream=stream)
        logger.error("db down")

        assert _lines(stream)[0]["message"] == "db down"
        assert isinstance(logger.sink, JsonSink)
        fake_sentry.init.assert_not_called()
        fake_sentry.capture_message.assert_not_called()


class TestRemoteEnabled:
    def test_builds_fanout_and_initializes_client(self, fake_sentry, stream):
        logger = create(_remote_config(), stream=stream)

        assert isinstance(logger.sink, FanoutSink)
        fake_sentry.init.assert_called_once_with(
            dsn=DSN,
            traces_sample_rate=0.05,
            environment=None,
            release=None,
            shutdown_timeout=2.0,
        )
        fake_sentry.flush.assert_called_once_with(timeout=2.0)

    def test_below_warn_reaches_json_only(self, fake_sentry, stream):
        logger = create(_remote_config(), stream=stream)
        logger.info("routine")

        assert _lines(stream)[0]["message"] == "routine"
        fake_sentry.capture_message.assert_not_called()

    def test_warn_reaches_both_json_first(self, fake_sentry, stream):
        seen_in_json_at_capture = []
        fake_sentry.capture_message.side_effect = lambda msg: seen_in_json_at_capture.append(stream.getvalue())

        logger = create(_remote_config(), stream=stream)
        logger.warning("disk at 91%", pct=91)

        fake_sentry.capture_message.assert_called_once_with("disk at 91%")
        fake_sentry.scope.set_level.assert_called_once_with("warning")
        fake_sentry.scope.set_extra.assert_called_once_with("pct", 91)
        assert "disk at 91%" in seen_in_json_at_capture[0]

    def test_json_threshold_above_remote_still_reaches_sentry(self, fake_sentry, stream):
        logger = create(_remote_config(level="error"), stream=stream)
        assert logger.enabled(Level.WARN)

        logger.warning("remote only")

        assert stream.getvalue() == ""
        fake_sentry.capture_message.assert_called_once_with("remote only")

    def test_custom_remote_level(self, fake_sentry, stream):
        logger = create(_remote_config(remote_level="error"), stream=stream)
        logger.warning("json only")
        fake_sentry.capture_message.assert_not_called()

    def test_init_failure_surfaces(self, fake_sentry, stream):
        fake_sentry.init.side_effect = ValueError("Unsupported scheme")
        with pytest.raises(RemoteInitError):
            create(_remote_config(), stream=stream)

    def test_repeated_create_initializes_once(self, fake_sentry, stream):
        create(_remote_config(), stream=stream)
        create(_remote_config(), stream=stream)
        assert fake_sentry.init.call_count == 1


class TestCreateTagged:
    def test_every_line_carries_tag(self, stream):
        logger = create_tagged(LoggerSettings(level="debug"), "X", stream=stream)
        logger.debug("a")
        logger.info("b", k=1)
        logger.error("c")

        assert [line["tag"] for line in _lines(stream)] == ["X", "X", "X"]

    def test_tag_reaches_sentry(self, fake_sentry, stream):
        create_tagged(_remote_config(), "billing", stream=stream).error("charge failed")
        fake_sentry.scope.set_extra.assert_called_once_with("tag", "billing")

    def test_init_failure_surfaces(self, fake_sentry, stream):
        fake_sentry.init.side_effect = ValueError("bad")
        with pytest.raises(RemoteInitError):
            create_tagged(_remote_config(), "X", stream=stream)


def test_concurrent_loggers_do_not_mix():
    shared = io.StringIO()
    separate = {"a": io.StringIO(), "b": io.StringIO()}
    count = 200

    def worker(tag: str) -> None:
        to_shared = create_tagged(LoggerSettings(), tag, stream=shared)
        to_own = create_tagged(LoggerSettings(), tag, stream=separate[tag])
        for i in range(count):
            to_shared.info(f"{tag}-{i}", i=i)
            to_own.info(f"{tag}-{i}", i=i)

    threads = [threading.Thread(target=worker, args=(tag,)) for tag in ("a", "b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    shared_lines = _lines(shared)
    assert len(shared_lines) == 2 * count
    for line in shared_lines:
        assert line["message"].startswith(f"{line['tag']}-")

    for tag, stream in separate.items():
        lines = _lines(stream)
        assert [line["message"] for line in lines] == [f"{tag}-{i}" for i in range(count)]
        assert {line["tag"] for line in lines} == {tag}
