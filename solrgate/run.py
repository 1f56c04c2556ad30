"""Command-line entry point for solrgate.

Loads the config file, applies command-line overrides, and starts uvicorn in
the foreground with hardened defaults:

  --limit-concurrency 100  Max concurrent connections; HTTP 503 when exceeded
  --backlog 50             OS connection queue depth
  --timeout-keep-alive 5   Short keep-alive window for idle clients

Usage:
    solrgate                                  # defaults: :8008 → localhost:8080
    solrgate --port 9000 --backend-port 8983 --valid-path /solr/core1/select
    python -m solrgate.run --config /etc/solrgate/config.yaml
"""

from __future__ import annotations

import argparse
import os
from typing import Any, Optional, Sequence

import uvicorn

from solrgate.config import Config, load_config
from solrgate.main import create_app
from solrgate.utils.logger import LOG_LEVELS, configure_logging, get_logger, json_logs_enabled

# Must match the httpx pool size (POOL_MAX_CONNECTIONS in constants.py).
UVICORN_LIMIT_CONCURRENCY: int = 100

UVICORN_BACKLOG: int = 50

UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solrgate",
        description="Filtering reverse proxy for a search-index backend.",
    )
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--host", help="Interface to listen on (default 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port to listen on (default 8008)")
    parser.add_argument("--backend-host", help="Upstream host (default localhost)")
    parser.add_argument("--backend-port", type=int, help="Upstream port (default 8080)")
    parser.add_argument(
        "--valid-path",
        action="append",
        dest="valid_paths",
        metavar="PREFIX",
        help="Admitted path prefix; repeat for several (default /solr/select)",
    )
    parser.add_argument(
        "--invalid-param",
        action="append",
        dest="invalid_params",
        metavar="NAME",
        help="Extra blocked query parameter; qt and stream.url are always blocked",
    )
    parser.add_argument(
        "--valid-method",
        action="append",
        dest="valid_methods",
        metavar="METHOD",
        help="Admitted HTTP method; repeat for several (default GET)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=LOG_LEVELS,
        type=str.upper,
    )
    return parser


def config_from_args(args: argparse.Namespace, base: Config) -> Config:
    """Layer command-line flags over ``base`` (flags win)."""
    options: dict[str, Any] = {}
    if args.host:
        options["host"] = args.host
    backend: dict[str, Any] = {}
    if args.backend_host:
        backend["host"] = args.backend_host
    if args.backend_port is not None:
        backend["port"] = args.backend_port
    if backend:
        options["backend"] = backend
    if args.valid_paths:
        options["valid_paths"] = args.valid_paths
    if args.invalid_params:
        options["invalid_params"] = args.invalid_params
    if args.valid_methods:
        options["valid_methods"] = args.valid_methods
    return Config.from_options(port=args.port, options=options, base=base)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Start the solrgate proxy in the foreground.

    Raises:
        SystemExit: On config errors or an invalid policy.
    """
    args = build_parser().parse_args(argv)

    configure_logging(log_level=args.log_level, json_output=json_logs_enabled())
    logger = get_logger(__name__)

    config = config_from_args(args, load_config(args.config))
    try:
        application = create_app(config)
    except ValueError as exc:
        logger.error("Invalid policy configuration", error=str(exc))
        raise SystemExit(1)

    logger.info(
        "Starting solrgate",
        host=config.proxy.host,
        port=config.proxy.port,
        upstream=config.upstream_target().base_url,
    )
    uvicorn.run(
        application,
        host=config.proxy.host,
        port=config.proxy.port,
        log_level=args.log_level.lower(),
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
