"""Unit tests for solrgate.main: create_app() isolation and the lifespan
startup/shutdown sequence."""

from __future__ import annotations

import httpx
import pytest
from starlette.testclient import TestClient

from solrgate.config import Config
from solrgate.main import create_app
from solrgate.policy.policy import Policy
from solrgate.proxy.forwarder import Forwarder, UpstreamTarget


class TestCreateApp:
    def test_not_ready_before_startup(self) -> None:
        application = create_app(Config.defaults())
        assert application.state.ready is False

    def test_policy_built_eagerly(self) -> None:
        application = create_app(Config.from_options(options={"validPaths": "/come/on"}))
        assert application.state.policy.allowed_path_prefixes == frozenset({"/come/on"})

    def test_invalid_policy_raises(self) -> None:
        with pytest.raises(ValueError):
            create_app(Config.from_options(options={"validPaths": []}))

    def test_instances_are_isolated(self) -> None:
        a = create_app(Config.from_options(options={"validPaths": "/a"}))
        b = create_app(Config.from_options(options={"validPaths": "/b"}))
        assert a.state.policy != b.state.policy
        assert a is not b

    def test_no_docs_routes(self) -> None:
        application = create_app(Config.defaults())
        assert application.docs_url is None
        assert application.openapi_url is None


class TestLifespan:
    def test_startup_wires_state(self) -> None:
        config = Config.from_options(options={"backend": {"host": "127.0.0.1", "port": 8983}})
        application = create_app(config)
        with TestClient(application):
            assert application.state.ready is True
            assert isinstance(application.state.http_client, httpx.AsyncClient)
            assert isinstance(application.state.forwarder, Forwarder)
            assert application.state.forwarder.target == UpstreamTarget("127.0.0.1", 8983)
        assert application.state.ready is False

    def test_client_closed_on_shutdown(self) -> None:
        application = create_app(Config.defaults())
        with TestClient(application):
            client = application.state.http_client
        assert client.is_closed

    def test_config_loaded_at_startup_when_not_given(self, monkeypatch: pytest.MonkeyPatch) -> None:
        loaded = Config.from_options(options={"validPaths": "/loaded"})
        monkeypatch.setattr("solrgate.main.load_config", lambda: loaded)
        application = create_app()
        assert application.state.policy is None
        with TestClient(application):
            assert application.state.config is loaded
            assert application.state.policy == Policy.from_options(valid_paths="/loaded")

    def test_timeout_passed_to_client(self, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: list[float] = []

        def fake_client(timeout: float = 30.0) -> httpx.AsyncClient:
            seen.append(timeout)
            return httpx.AsyncClient()

        monkeypatch.setattr("solrgate.main.create_http_client", fake_client)
        config = Config.from_options(options={"backend": {"timeout": 2.5}})
        with TestClient(create_app(config)):
            pass
        assert seen == [2.5]
