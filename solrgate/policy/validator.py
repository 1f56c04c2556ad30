"""Request admission check.

validate() is a pure function of the request's method, path and query
parameter names plus the active Policy: no I/O, no logging, no state. The
handler calls it before any upstream connection is opened.
"""

from __future__ import annotations

import posixpath
from typing import Any, Mapping

from solrgate.models.verdict import RejectReason, Verdict
from solrgate.policy.policy import Policy


def _resolve_dot_segments(path: str) -> str:
    # "/solr/select/../admin" must be judged as "/solr/admin", which is what the
    # upstream will serve.
    if "." not in path:
        return path
    resolved = posixpath.normpath(path)
    if path.endswith("/") and not resolved.endswith("/"):
        resolved += "/"
    return resolved


def path_allowed(path: str, policy: Policy) -> bool:
    """True if ``path`` starts with any of the policy's allowed prefixes."""
    resolved = _resolve_dot_segments(path)
    return any(resolved.startswith(prefix) for prefix in policy.allowed_path_prefixes)


def validate(
    method: str,
    path: str,
    query_params: Mapping[str, Any],
    policy: Policy,
) -> Verdict:
    """Decide whether a request may be forwarded to the upstream.

    Rules, first match wins:
      1. method not allowed           → reject (403)
      2. path matches no prefix       → reject (403)
      3. any blocked parameter name   → reject (403)
      4. otherwise                    → admit

    Parameter names are compared exactly and case-sensitively; their values
    are never looked at.

    Args:
        method:       HTTP method as received.
        path:         Decoded URL path, without the query component.
        query_params: Parsed query parameters keyed by name (values ignored).
        policy:       The server's immutable Policy.

    Returns:
        Verdict.admit() or a 403 Verdict naming the rule that fired.
    """
    if method not in policy.allowed_methods:
        return Verdict.reject(RejectReason.METHOD_NOT_ALLOWED, method)

    if not path_allowed(path, policy):
        return Verdict.reject(RejectReason.PATH_NOT_ALLOWED, path)

    for name in query_params.keys():
        if name in policy.blocked_query_params:
            return Verdict.reject(RejectReason.BLOCKED_QUERY_PARAM, name)

    return Verdict.admit()
