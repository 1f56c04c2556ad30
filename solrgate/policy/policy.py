"""Immutable admission policy.

A Policy is built once per server from caller options merged over the built-in
defaults and is never mutated afterwards, so concurrent requests read it
without locking.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from solrgate.constants import (
    ALWAYS_BLOCKED_PARAMS,
    DEFAULT_VALID_METHODS,
    DEFAULT_VALID_PATHS,
)

StrOrStrs = Union[str, Iterable[str]]


def _as_tuple(value: StrOrStrs) -> tuple[str, ...]:
    # A bare string is one entry, not an iterable of characters.
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class Policy:
    """Allow/deny rules consumed by :func:`solrgate.policy.validate`.

    Attributes:
        allowed_path_prefixes: A request path is admitted if it starts with any
                               of these.
        blocked_query_params:  Parameter names whose presence rejects a request.
                               Always a superset of ``qt`` and ``stream.url``.
        allowed_methods:       HTTP methods admitted (``GET`` by default).
    """

    allowed_path_prefixes: frozenset[str] = field(
        default_factory=lambda: frozenset(DEFAULT_VALID_PATHS)
    )
    blocked_query_params: frozenset[str] = field(
        default_factory=lambda: frozenset(ALWAYS_BLOCKED_PARAMS)
    )
    allowed_methods: frozenset[str] = field(
        default_factory=lambda: frozenset(DEFAULT_VALID_METHODS)
    )

    @classmethod
    def defaults(cls) -> "Policy":
        return cls()

    @classmethod
    def from_options(
        cls,
        valid_paths: Optional[StrOrStrs] = None,
        invalid_params: Optional[StrOrStrs] = None,
        valid_methods: Optional[StrOrStrs] = None,
    ) -> "Policy":
        """Merge caller options over the defaults.

        ``valid_paths`` and ``valid_methods`` replace the defaults when given.
        ``invalid_params`` extends the always-blocked set; ``qt`` and
        ``stream.url`` cannot be unblocked.

        Raises:
            ValueError: If an option is given but empty, or a path prefix does
                        not start with ``/``.
        """
        paths = DEFAULT_VALID_PATHS if valid_paths is None else _as_tuple(valid_paths)
        if not paths:
            raise ValueError("valid_paths must name at least one path prefix")
        for prefix in paths:
            if not prefix.startswith("/"):
                raise ValueError(f"valid path prefix must start with '/': {prefix!r}")

        methods = DEFAULT_VALID_METHODS if valid_methods is None else _as_tuple(valid_methods)
        if not methods:
            raise ValueError("valid_methods must name at least one HTTP method")

        blocked = set(ALWAYS_BLOCKED_PARAMS)
        if invalid_params is not None:
            blocked.update(_as_tuple(invalid_params))

        return cls(
            allowed_path_prefixes=frozenset(paths),
            blocked_query_params=frozenset(blocked),
            allowed_methods=frozenset(m.upper() for m in methods),
        )
