"""Config loading for solrgate.

Reads `.solrgate/config.yaml` (or `~/.solrgate/config.yaml`).
Raises SystemExit on parse errors or a missing/unsupported `version` field.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (explicit override, tests)
  2. SOLRGATE_CONFIG environment variable (if set)
  3. `.solrgate/config.yaml` (working directory)
  4. `~/.solrgate/config.yaml` (home directory)

Environment variable overrides:
  SOLRGATE_PORT   — overrides proxy.port (takes precedence over the file value)
  SOLRGATE_CONFIG — sets an explicit config file path to try first

Example file::

    version: 1
    proxy:
      host: 0.0.0.0
      port: 8008
    upstream:
      host: localhost
      port: 8080
      timeout: 30
    policy:
      valid_paths: [/solr/select]
      invalid_params: [shards]
      valid_methods: [GET]
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import yaml

from solrgate.constants import (
    DEFAULT_LISTEN_HOST,
    DEFAULT_LISTEN_PORT,
    DEFAULT_UPSTREAM_HOST,
    DEFAULT_UPSTREAM_PORT,
    DEFAULT_UPSTREAM_TIMEOUT,
    DEFAULT_VALID_METHODS,
    DEFAULT_VALID_PATHS,
)
from solrgate.policy.policy import Policy
from solrgate.proxy.forwarder import UpstreamTarget
from solrgate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_CONFIG_PATHS = [
    ".solrgate/config.yaml",
    os.path.expanduser("~/.solrgate/config.yaml"),
]

# ─── start() option aliases ───────────────────────────────────────────────────

# Each policy field accepts its snake_case name, a camelCase name and the
# descriptive name.
_VALID_PATHS_KEYS = ("valid_paths", "validPaths", "allowed_path_prefixes", "allowedPathPrefixes")
_INVALID_PARAMS_KEYS = ("invalid_params", "invalidParams", "blocked_query_params", "blockedQueryParams")
_VALID_METHODS_KEYS = ("valid_methods", "validHttpMethods", "allowed_methods", "allowedMethods")
_UPSTREAM_KEYS = ("upstream", "backend")


def _config_error(message: str) -> SystemExit:
    print(f"CONFIG ERROR: {message}", file=sys.stderr)
    return SystemExit(1)


def _first_present(options: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if options.get(key) is not None:
            return options[key]
    return None


def _as_list(value: Any) -> Optional[list[str]]:
    if value is None:
        return None
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(v) for v in value]
    # A bare scalar is one entry.
    return [str(value)]


def _as_port(value: Any, source: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise _config_error(f"{source} is not a valid integer port: {value!r}")
    if not 0 <= port <= 65535:
        raise _config_error(f"{source} is out of range (0-65535): {port}")
    return port


def _as_timeout(value: Any, source: str) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise _config_error(f"{source} is not a number of seconds: {value!r}")
    if timeout <= 0:
        raise _config_error(f"{source} must be greater than 0: {timeout}")
    return timeout


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise _config_error(f"'{name}' must be a mapping, got {type(value).__name__}")
    return value


def _required_list(section: Mapping[str, Any], key: str, default: tuple[str, ...], source: str) -> list[str]:
    """List value from a config section; absent means ``default``, empty is an error."""
    values = _as_list(section.get(key))
    if values is None:
        return list(default)
    if not values:
        raise _config_error(f"{source} must name at least one entry")
    return values


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ProxyConfig:
    """Listener binding configuration."""

    host: str = DEFAULT_LISTEN_HOST
    port: int = DEFAULT_LISTEN_PORT


@dataclass
class UpstreamConfig:
    """Upstream search service location."""

    host: str = DEFAULT_UPSTREAM_HOST
    port: int = DEFAULT_UPSTREAM_PORT
    timeout: float = DEFAULT_UPSTREAM_TIMEOUT  # seconds; expiry → 502


@dataclass
class PolicyConfig:
    """Admission policy settings (see solrgate.policy.Policy)."""

    valid_paths: list[str] = field(default_factory=lambda: list(DEFAULT_VALID_PATHS))
    invalid_params: list[str] = field(default_factory=list)  # added to qt, stream.url
    valid_methods: list[str] = field(default_factory=lambda: list(DEFAULT_VALID_METHODS))


@dataclass
class Config:
    """Root configuration object.

    All fields have safe defaults — solrgate can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    upstream: UpstreamConfig = field(default_factory=UpstreamConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    path: Optional[str] = None  # Path to the loaded config file, if any

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On a non-integer port, a non-numeric timeout, a
                           section that is not a mapping, or an empty
                           ``valid_paths`` / ``valid_methods`` list.
        """
        proxy_raw = _section(raw, "proxy")
        proxy = ProxyConfig(
            host=proxy_raw.get("host", DEFAULT_LISTEN_HOST),
            port=_as_port(proxy_raw.get("port", DEFAULT_LISTEN_PORT), "proxy.port"),
        )

        upstream_raw = _section(raw, "upstream")
        upstream = UpstreamConfig(
            host=upstream_raw.get("host", DEFAULT_UPSTREAM_HOST),
            port=_as_port(upstream_raw.get("port", DEFAULT_UPSTREAM_PORT), "upstream.port"),
            timeout=_as_timeout(upstream_raw.get("timeout", DEFAULT_UPSTREAM_TIMEOUT), "upstream.timeout"),
        )

        policy_raw = _section(raw, "policy")
        invalid_params = _as_list(policy_raw.get("invalid_params"))
        policy = PolicyConfig(
            valid_paths=_required_list(policy_raw, "valid_paths", DEFAULT_VALID_PATHS, "policy.valid_paths"),
            invalid_params=invalid_params if invalid_params is not None else [],
            valid_methods=_required_list(policy_raw, "valid_methods", DEFAULT_VALID_METHODS, "policy.valid_methods"),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            proxy=proxy,
            upstream=upstream,
            policy=policy,
            path=path,
        )

    @classmethod
    def from_options(
        cls,
        port: Optional[int] = None,
        options: Optional[Mapping[str, Any]] = None,
        base: Optional["Config"] = None,
    ) -> "Config":
        """Build a Config from ``start()`` arguments merged over ``base``.

        Args:
            port:    Listen port; None keeps the base value (8008 by default).
            options: Mapping with any of ``validPaths``/``allowedPathPrefixes``,
                     ``invalidParams``/``blockedQueryParams``,
                     ``validHttpMethods``/``allowedMethods`` (snake_case
                     spellings accepted too), ``backend``/``upstream``
                     (``host``, ``port``, ``timeout``) and ``host``.
            base:    Config to start from; defaults to ``Config.defaults()``.

        Returns:
            A new Config; ``base`` is not modified.

        Raises:
            ValueError:    ``backend``/``upstream`` is not a mapping.
            SystemExit(1): Invalid port or timeout.
        """
        base = base or cls.defaults()
        options = options or {}

        proxy = ProxyConfig(
            host=options.get("host") or base.proxy.host,
            port=base.proxy.port if port is None else _as_port(port, "port"),
        )

        upstream_raw = _first_present(options, _UPSTREAM_KEYS)
        if upstream_raw is None:
            upstream_raw = {}
        elif not isinstance(upstream_raw, Mapping):
            raise ValueError(
                "backend/upstream option must be a mapping with host, port and "
                f"timeout keys, got {type(upstream_raw).__name__}: {upstream_raw!r}"
            )
        upstream = UpstreamConfig(
            host=upstream_raw.get("host", base.upstream.host),
            port=_as_port(upstream_raw.get("port", base.upstream.port), "upstream port"),
            timeout=_as_timeout(upstream_raw.get("timeout", base.upstream.timeout), "upstream timeout"),
        )

        valid_paths = _as_list(_first_present(options, _VALID_PATHS_KEYS))
        invalid_params = _as_list(_first_present(options, _INVALID_PARAMS_KEYS))
        valid_methods = _as_list(_first_present(options, _VALID_METHODS_KEYS))
        policy = PolicyConfig(
            valid_paths=valid_paths if valid_paths is not None else list(base.policy.valid_paths),
            invalid_params=list(base.policy.invalid_params) + (invalid_params or []),
            valid_methods=valid_methods if valid_methods is not None else list(base.policy.valid_methods),
        )

        return cls(
            version=base.version,
            proxy=proxy,
            upstream=upstream,
            policy=policy,
            path=base.path,
        )

    def build_policy(self) -> Policy:
        """Immutable admission Policy for this configuration."""
        return Policy.from_options(
            valid_paths=self.policy.valid_paths,
            invalid_params=self.policy.invalid_params,
            valid_methods=self.policy.valid_methods,
        )

    def upstream_target(self) -> UpstreamTarget:
        return UpstreamTarget(host=self.upstream.host, port=self.upstream.port)


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate solrgate configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes error to stderr and raises SystemExit(1).

    ``SOLRGATE_PORT`` is applied after loading (or defaulting) and always wins.

    Returns:
        Config object with all values populated (file values merged onto defaults).

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, or an invalid port.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("SOLRGATE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found: defaults ────────────────────────────────────────
    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise _config_error(
            f"Failed to parse {found_path}: {exc}\n"
            "solrgate refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        raise _config_error(f"Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            raise _config_error(
                f"{found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        raise _config_error(
            f"{found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        raise _config_error(
            f"{found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        raise _config_error(
            f"Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        upstream=config.upstream_target().base_url,
        valid_paths=config.policy.valid_paths,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If SOLRGATE_PORT is set but not a valid port.
    """
    env_port = os.environ.get("SOLRGATE_PORT")
    if env_port is not None:
        config.proxy.port = _as_port(env_port, "SOLRGATE_PORT environment variable")
