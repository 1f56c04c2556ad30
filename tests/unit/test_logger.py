"""Unit tests for solrgate.utils.logger: structlog configuration and
request-scoped context."""

from __future__ import annotations

import json
from typing import Any, Iterator

import pytest
import structlog

from solrgate.utils.logger import configure_logging, get_logger, json_logs_enabled


@pytest.fixture
def restore_structlog() -> Iterator[None]:
    saved = structlog.get_config()
    yield
    structlog.configure(**saved)
    structlog.contextvars.clear_contextvars()


def _lines(capsys: pytest.CaptureFixture) -> list[dict[str, Any]]:
    return [json.loads(line) for line in capsys.readouterr().out.splitlines() if line]


def test_json_line_per_event(restore_structlog: None, capsys: pytest.CaptureFixture) -> None:
    configure_logging("INFO", json_output=True)
    get_logger("solrgate.test").info("request_proxied", status_code=200)
    (event,) = _lines(capsys)
    assert event["event"] == "request_proxied"
    assert event["status_code"] == 200
    assert event["level"] == "info"
    assert event["logger"] == "solrgate.test"
    assert "timestamp" in event


def test_bound_request_id_is_merged(restore_structlog: None, capsys: pytest.CaptureFixture) -> None:
    configure_logging("INFO", json_output=True)
    log = get_logger("solrgate.test")
    structlog.contextvars.bind_contextvars(request_id="01KJ0JRVHYA7KX32VPN5ZSCTMV")
    log.info("request_rejected")
    structlog.contextvars.unbind_contextvars("request_id")
    log.info("after")
    first, second = _lines(capsys)
    assert first["request_id"] == "01KJ0JRVHYA7KX32VPN5ZSCTMV"
    assert "request_id" not in second


def test_level_filtering(restore_structlog: None, capsys: pytest.CaptureFixture) -> None:
    configure_logging("warning", json_output=True)
    log = get_logger("solrgate.test")
    log.info("dropped")
    log.warning("upstream_unavailable")
    assert [e["event"] for e in _lines(capsys)] == ["upstream_unavailable"]


def test_unknown_level_rejected() -> None:
    with pytest.raises(ValueError, match="unknown log level"):
        configure_logging("LOUD")


@pytest.mark.parametrize("value,expected", [(None, True), ("true", True), ("TRUE", True), ("false", False)])
def test_json_logs_env(monkeypatch: pytest.MonkeyPatch, value: str | None, expected: bool) -> None:
    if value is None:
        monkeypatch.delenv("JSON_LOGS", raising=False)
    else:
        monkeypatch.setenv("JSON_LOGS", value)
    assert json_logs_enabled() is expected
