"""Request pipeline for solrgate: validate → forward → respond.

Every inbound request, whatever its method or path, lands in proxy_handler():

  Received → Validated → Rejected (403, upstream never contacted)
                       → Forwarding → Relayed (upstream status, headers, body)
                                    → GatewayError (502)

Key design properties:
  - Admission is decided by the pure validate() before any upstream I/O, so a
    rejected request produces zero upstream traffic.
  - The path is checked twice: the decoded request path, then the path of the
    URL that will actually be sent upstream. An encoded ``?`` or ``#`` in the
    request line cannot make the two disagree.
  - The Policy and Forwarder live on app.state; the handler itself keeps no
    state between requests.
  - UpstreamUnavailable propagates to the application's exception handler,
    which answers 502 (see solrgate.main).
"""

from __future__ import annotations

import structlog
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from solrgate.constants import GATEWAY_ERROR_STATUS_CODE
from solrgate.errors import ClientDisconnected
from solrgate.models.responses import build_rejection_response
from solrgate.models.verdict import RejectReason, Verdict
from solrgate.policy.policy import Policy
from solrgate.policy.validator import path_allowed, validate
from solrgate.proxy.forwarder import Forwarder
from solrgate.utils.logger import get_logger
from solrgate.utils.ulid import generate_ulid

logger = get_logger(__name__)


def _reject(request: Request, verdict: Verdict) -> Response:
    logger.info(
        "request_rejected",
        method=request.method,
        path=request.scope["path"],
        reason=verdict.reason.value if verdict.reason else None,
        detail=verdict.detail,
        status_code=verdict.status_code,
    )
    return build_rejection_response(verdict)


async def proxy_handler(request: Request) -> Response:
    """Admit or reject one request, then forward it if admitted.

    Args:
        request: Incoming request (any method, any path).

    Returns:
        403 JSON response for a rejected request, otherwise the upstream's
        response relayed as a StreamingResponse.

    Raises:
        UpstreamUnavailable: From the Forwarder; rendered as 502 by the app.
    """
    structlog.contextvars.bind_contextvars(request_id=generate_ulid())
    try:
        policy: Policy = request.app.state.policy
        forwarder: Forwarder = request.app.state.forwarder

        # scope["path"] is the whole decoded path; request.url.path would be
        # re-parsed and cut short at a decoded "?" or "#".
        verdict = validate(
            request.method,
            request.scope["path"],
            request.query_params,
            policy,
        )
        if not verdict.admitted:
            return _reject(request, verdict)

        url = forwarder.request_url(request)
        if not path_allowed(url.path, policy):
            return _reject(request, Verdict.reject(RejectReason.PATH_NOT_ALLOWED, url.path))

        try:
            return await forwarder.forward(request, url)
        except ClientDisconnected:
            # Nobody is left to read this response; the upstream call is already
            # cancelled.
            logger.info("client_disconnected", method=request.method, path=request.scope["path"])
            return Response(status_code=GATEWAY_ERROR_STATUS_CODE)
    finally:
        structlog.contextvars.unbind_contextvars("request_id")


class ProxyEndpoint:
    """ASGI endpoint wrapping proxy_handler().

    Starlette treats a plain function endpoint as GET-only; an ASGI endpoint
    with ``methods=None`` matches every method, so unusual methods reach the
    validator (and get 403) instead of a routing 405.
    """

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive, send)
        response = await proxy_handler(request)
        await response(scope, receive, send)


def build_proxy_route() -> Route:
    """Catch-all route for the proxy; register it after any other route."""
    return Route("/{path:path}", endpoint=ProxyEndpoint(), methods=None, name="proxy")
