"""Unit tests for solrgate.run: command-line parsing and the foreground entry point."""

from __future__ import annotations

from typing import Any

import pytest

from solrgate import run
from solrgate.config import Config
from solrgate.run import (
    UVICORN_BACKLOG,
    UVICORN_LIMIT_CONCURRENCY,
    UVICORN_TIMEOUT_KEEP_ALIVE,
    build_parser,
    config_from_args,
)


def _config(*argv: str) -> Config:
    args = build_parser().parse_args(list(argv))
    return config_from_args(args, Config.defaults())


class TestParser:
    def test_no_flags_gives_defaults(self) -> None:
        config = _config()
        assert config.proxy.port == 8008
        assert config.upstream.port == 8080
        assert config.policy.valid_paths == ["/solr/select"]

    def test_port_and_backend(self) -> None:
        config = _config("--port", "9000", "--backend-host", "solr", "--backend-port", "8983")
        assert config.proxy.port == 9000
        assert config.upstream.host == "solr"
        assert config.upstream.port == 8983

    def test_repeated_valid_path(self) -> None:
        config = _config("--valid-path", "/solr/a/select", "--valid-path", "/solr/b/select")
        assert config.policy.valid_paths == ["/solr/a/select", "/solr/b/select"]

    def test_invalid_params_extend(self) -> None:
        config = _config("--invalid-param", "shards")
        assert config.build_policy().blocked_query_params == frozenset({"qt", "stream.url", "shards"})

    def test_valid_method(self) -> None:
        config = _config("--valid-method", "get", "--valid-method", "HEAD")
        assert config.build_policy().allowed_methods == frozenset({"GET", "HEAD"})

    def test_host(self) -> None:
        assert _config("--host", "127.0.0.1").proxy.host == "127.0.0.1"

    def test_log_level_upper_cased(self) -> None:
        assert build_parser().parse_args(["--log-level", "debug"]).log_level == "DEBUG"

    def test_bad_log_level_exits(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--log-level", "loud"])

    def test_flags_win_over_file(self) -> None:
        base = Config.from_options(port=7000, options={"backend": {"port": 8983}})
        args = build_parser().parse_args(["--port", "9000"])
        config = config_from_args(args, base)
        assert config.proxy.port == 9000
        assert config.upstream.port == 8983


class TestMain:
    def test_main_starts_uvicorn(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[tuple[Any, dict[str, Any]]] = []
        monkeypatch.setattr(run.uvicorn, "run", lambda app, **kw: calls.append((app, kw)))

        run.main(["--port", "9001", "--host", "127.0.0.1"])

        assert len(calls) == 1
        application, kwargs = calls[0]
        assert application.state.config.proxy.port == 9001
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9001
        assert kwargs["limit_concurrency"] == UVICORN_LIMIT_CONCURRENCY
        assert kwargs["backlog"] == UVICORN_BACKLOG
        assert kwargs["timeout_keep_alive"] == UVICORN_TIMEOUT_KEEP_ALIVE

    def test_invalid_policy_exits(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(run.uvicorn, "run", lambda app, **kw: None)
        with pytest.raises(SystemExit) as exc_info:
            run.main(["--valid-path", "relative/path"])
        assert exc_info.value.code == 1
