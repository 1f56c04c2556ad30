"""solrgate FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app(config) — application factory; each call returns an isolated
                         app with its own Policy, upstream client and Forwarder
  - lifespan           — @asynccontextmanager startup/shutdown sequence
  - exception handlers — UpstreamUnavailable → 502, anything else → 500

Startup sequence:
  1. config: the one passed to create_app(), else load_config()
  2. config.build_policy()      → app.state.policy
  3. create_http_client()       → app.state.http_client
  4. Forwarder(client, target)  → app.state.forwarder
  5. app.state.ready = True

Shutdown (reverse):
  app.state.ready = False → close shared HTTP client

There is no module-level app instance; uvicorn uses the factory:
  uvicorn solrgate.main:create_app --factory --port 8008
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from solrgate.config import Config, load_config
from solrgate.errors import UpstreamUnavailable
from solrgate.models.responses import build_upstream_unavailable_response
from solrgate.proxy.engine import build_proxy_route
from solrgate.proxy.forwarder import Forwarder, create_http_client
from solrgate.utils.logger import get_logger

logger = get_logger(__name__)


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — startup and shutdown sequence."""
    logger.info("solrgate starting up...")

    # ── Step 1: configuration ─────────────────────────────────────────────────
    # load_config() raises SystemExit on an invalid file, before ready=True.
    config: Optional[Config] = getattr(app.state, "config", None)
    if config is None:
        config = load_config()
        app.state.config = config

    # ── Step 2: immutable admission policy ────────────────────────────────────
    if getattr(app.state, "policy", None) is None:
        app.state.policy = config.build_policy()
    logger.info(
        "Admission policy",
        valid_paths=sorted(app.state.policy.allowed_path_prefixes),
        invalid_params=sorted(app.state.policy.blocked_query_params),
        valid_methods=sorted(app.state.policy.allowed_methods),
    )

    # ── Step 3: shared pooled HTTP client ─────────────────────────────────────
    # One client per application; never instantiated per-request.
    http_client: httpx.AsyncClient = create_http_client(timeout=config.upstream.timeout)
    app.state.http_client = http_client

    # ── Step 4: forwarder bound to the upstream target ────────────────────────
    target = config.upstream_target()
    app.state.forwarder = Forwarder(http_client, target)
    logger.info("Upstream configured", upstream=target.base_url, timeout_s=config.upstream.timeout)

    # ── Step 5: ready ─────────────────────────────────────────────────────────
    app.state.ready = True
    logger.info("solrgate ready", host=config.proxy.host, port=config.proxy.port)

    yield

    # ── Shutdown (reverse order) ──────────────────────────────────────────────
    logger.info("solrgate shutting down...")
    app.state.ready = False

    try:
        await http_client.aclose()
        logger.info("HTTP proxy client closed")
    except Exception as exc:
        logger.warning("HTTP proxy client close error (non-fatal)", error=str(exc))

    logger.info("solrgate shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Create and configure a solrgate application.

    Call this directly in tests to get an isolated app instance:
        app = create_app(Config.from_options(options={"validPaths": "/come/on"}))

    Args:
        config: Configuration to serve. When None, the lifespan calls
                load_config() at startup.

    Returns:
        FastAPI application with lifespan, catch-all proxy route and
        exception handlers.

    Raises:
        ValueError: If ``config`` describes an invalid policy (empty path list,
                    path prefix not starting with ``/``).
    """
    application = FastAPI(
        title="solrgate",
        description="Filtering reverse proxy for a search-index backend",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    # ready=False until the lifespan finishes startup.
    application.state.ready = False
    application.state.config = config
    application.state.policy = config.build_policy() if config is not None else None

    # Every path and method belongs to the proxy; no other routes are exposed
    # so that nothing but the admission policy decides what is reachable.
    application.router.routes.append(build_proxy_route())

    @application.exception_handler(UpstreamUnavailable)
    async def upstream_unavailable_handler(
        request: Request, exc: UpstreamUnavailable
    ) -> JSONResponse:
        return build_upstream_unavailable_response(reason=exc.reason)

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.scope["path"],
        )
        return JSONResponse(
            status_code=500, content={"error": "Internal server error"}
        )

    return application
