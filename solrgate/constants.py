"""Shared constants for solrgate.

Defaults for the listener, the upstream target and the admission policy, plus
the connection pool sizing used by the forwarder. Import from here instead of
repeating literals in other modules.
"""

# ─── Listener ────────────────────────────────────────────────────────────────

DEFAULT_LISTEN_HOST: str = "0.0.0.0"
DEFAULT_LISTEN_PORT: int = 8008

# ─── Upstream search service ─────────────────────────────────────────────────

DEFAULT_UPSTREAM_HOST: str = "localhost"
DEFAULT_UPSTREAM_PORT: int = 8080

# Total per-request upstream timeout (seconds). Expiry is reported as a 502.
DEFAULT_UPSTREAM_TIMEOUT: float = 30.0

# ─── Admission policy ────────────────────────────────────────────────────────

# The search-select endpoint is the only path admitted out of the box.
DEFAULT_VALID_PATHS: tuple[str, ...] = ("/solr/select",)

DEFAULT_VALID_METHODS: tuple[str, ...] = ("GET",)

# qt can route a request to any handler (including /update); stream.url makes
# the search service fetch an arbitrary URL. Always blocked.
ALWAYS_BLOCKED_PARAMS: tuple[str, ...] = ("qt", "stream.url")

# Status code for every admission rejection (method, path and query alike).
REJECTION_STATUS_CODE: int = 403

# Status code for upstream connectivity or protocol failure.
GATEWAY_ERROR_STATUS_CODE: int = 502

# ─── Connection pool ─────────────────────────────────────────────────────────

# Matches the uvicorn --limit-concurrency value in run.py so every in-flight
# request can hold an upstream connection.
POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 100
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds
