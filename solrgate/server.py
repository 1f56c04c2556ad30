"""In-process server lifecycle for solrgate.

start() binds a listener, builds the validate→forward pipeline from the given
options and serves it with uvicorn on a background thread. The returned
ProxyServer handle owns everything it started, so several isolated proxies can
run in one process (each with its own policy, upstream and port)::

    proxy = start(9999, {"validPaths": "/come/on"})
    ...
    proxy.close()

For a foreground process use the ``solrgate`` command (solrgate.run).
"""

from __future__ import annotations

import threading
import time
from typing import Any, Mapping, Optional

import uvicorn

from solrgate.config import Config
from solrgate.main import create_app
from solrgate.utils.logger import get_logger

logger = get_logger(__name__)

# How long start() waits for the listener to come up before giving up.
STARTUP_TIMEOUT: float = 10.0

# How long close() waits for in-flight requests before forcing exit.
SHUTDOWN_TIMEOUT: float = 10.0

_POLL_INTERVAL: float = 0.01


class ProxyServer:
    """Handle on a running solrgate listener.

    Attributes:
        config: The effective configuration being served.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self.app = create_app(config)
        self._server = uvicorn.Server(
            uvicorn.Config(
                self.app,
                host=config.proxy.host,
                port=config.proxy.port,
                log_level="warning",
                access_log=False,
                lifespan="on",
            )
        )
        self._thread = threading.Thread(
            target=self._server.run,
            name=f"solrgate-{config.proxy.port}",
            daemon=True,
        )

    def start(self) -> "ProxyServer":
        """Start serving; returns once the listener accepts connections.

        Raises:
            RuntimeError: If the listener fails to start (e.g. port in use).
        """
        self._thread.start()
        deadline = time.monotonic() + STARTUP_TIMEOUT
        while not self._server.started:
            if not self._thread.is_alive():
                raise RuntimeError(
                    f"solrgate failed to start on {self.config.proxy.host}:{self.config.proxy.port}"
                )
            if time.monotonic() > deadline:
                self._server.should_exit = True
                raise RuntimeError("solrgate did not start within %.0fs" % STARTUP_TIMEOUT)
            time.sleep(_POLL_INTERVAL)
        logger.info("Proxy listening", host=self.config.proxy.host, port=self.port)
        return self

    @property
    def port(self) -> int:
        """Port actually bound; differs from config when started with port 0."""
        for server in getattr(self._server, "servers", []) or []:
            for sock in server.sockets:
                return sock.getsockname()[1]
        return self.config.proxy.port

    @property
    def running(self) -> bool:
        return self._thread.is_alive() and self._server.started

    def close(self) -> None:
        """Stop accepting connections and shut the server down.

        Blocks until the listener is closed. Safe to call more than once.
        """
        if not self._thread.is_alive():
            return
        self._server.should_exit = True
        self._thread.join(SHUTDOWN_TIMEOUT)
        if self._thread.is_alive():
            # In-flight requests did not finish in time.
            self._server.force_exit = True
            self._thread.join()
        logger.info("Proxy closed", port=self.config.proxy.port)

    def __enter__(self) -> "ProxyServer":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def start(
    port: Optional[int] = None,
    options: Optional[Mapping[str, Any]] = None,
) -> ProxyServer:
    """Start a proxy and return its handle.

    Args:
        port:    Listen port; None means 8008. 0 picks a free port
                 (read it back from ``ProxyServer.port``).
        options: Policy and upstream overrides, e.g.
                 ``{"validPaths": ["/solr/select"], "backend": {"port": 8983}}``.
                 See :meth:`solrgate.config.Config.from_options`.

    Returns:
        A started ProxyServer. Call ``close()`` (or use it as a context
        manager) to stop it.

    Raises:
        ValueError:   Invalid policy options.
        RuntimeError: The listener could not be started.
    """
    config = Config.from_options(port=port, options=options)
    return ProxyServer(config).start()
