"""Rejection and upstream-unavailable HTTP response builders.

The proxy synthesizes exactly two kinds of response of its own:

  build_rejection_response():
      HTTP 403 — the request violated the admission policy (method, path or
      blocked query parameter). The upstream was never contacted.

  build_upstream_unavailable_response():
      HTTP 502 — the upstream search service refused the connection, reset it,
      timed out, or answered with something that is not HTTP.

Every other status a client sees is the upstream's own, relayed unchanged.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

from solrgate.constants import GATEWAY_ERROR_STATUS_CODE
from solrgate.models.verdict import Verdict


def build_rejection_response(verdict: Verdict) -> JSONResponse:
    """Build the HTTP 403 response for a rejected request.

    The body is deliberately identical for all three rejection rules: which
    rule fired is logged, never disclosed to the client.

    Args:
        verdict: A Verdict whose action is REJECT.

    Returns:
        JSONResponse with the verdict's status code (403).
    """
    return JSONResponse(
        status_code=verdict.status_code,
        content={
            "error": {
                "message": "Request rejected by proxy policy",
                "code": "forbidden",
            }
        },
    )


def build_upstream_unavailable_response(reason: str = "") -> JSONResponse:
    """Build the HTTP 502 response for upstream connectivity failures.

    Args:
        reason: Short failure name (e.g. ``"ConnectError"``) for operator
                debugging. Never contains upstream addresses or config details.

    Returns:
        JSONResponse with status_code=502.
    """
    return JSONResponse(
        status_code=GATEWAY_ERROR_STATUS_CODE,
        content={
            "error": {
                "message": "Upstream search service unavailable",
                "code": "upstream_unavailable",
                "detail": reason if reason else None,
            }
        },
    )
