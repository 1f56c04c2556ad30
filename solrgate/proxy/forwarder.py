"""Upstream forwarding for solrgate.

The Forwarder owns the network relationship with the upstream search service:

  - One shared httpx.AsyncClient per application, created at lifespan startup
    with connection pooling; never instantiated per-request.
  - One attempt per client request: no retries, no redirects followed.
  - The upstream status, headers (minus hop-by-hop) and raw body bytes are
    relayed unchanged, including upstream 4xx/5xx.
  - Transport-level failures raise UpstreamUnavailable, answered with 502.
  - A client that disconnects while the upstream is still working cancels the
    in-flight upstream call (ClientDisconnected).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Optional
from urllib.parse import quote_from_bytes

import httpx
from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import StreamingResponse

from solrgate.constants import (
    DEFAULT_UPSTREAM_HOST,
    DEFAULT_UPSTREAM_PORT,
    DEFAULT_UPSTREAM_TIMEOUT,
    POOL_KEEPALIVE_EXPIRY,
    POOL_MAX_CONNECTIONS,
    POOL_MAX_KEEPALIVE,
)
from solrgate.errors import ClientDisconnected, UpstreamUnavailable
from solrgate.proxy.headers import build_client_response_headers, build_upstream_headers
from solrgate.utils.logger import get_logger

logger = get_logger(__name__)

# Failures that mean "the upstream did not give us a usable HTTP response".
# ConnectError      : connection refused, host unreachable, DNS failure
# TimeoutException  : connect/read/write/pool timeout
# NetworkError      : connection reset or closed mid-request
# RemoteProtocolError: upstream sent bytes that are not valid HTTP
UPSTREAM_FAILURES: tuple[type[Exception], ...] = (
    httpx.ConnectError,
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)

# Characters left as-is when percent-encoding a raw request target.
_URL_SAFE = "/%?&=+;:@!$'()*,~[]"


# ─── Upstream target ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UpstreamTarget:
    """Host and port of the upstream search service. Immutable."""

    host: str = DEFAULT_UPSTREAM_HOST
    port: int = DEFAULT_UPSTREAM_PORT

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


# ─── httpx.AsyncClient factory ────────────────────────────────────────────────


def create_http_client(timeout: float = DEFAULT_UPSTREAM_TIMEOUT) -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient with connection pooling configured.

    Created once per application at lifespan startup and closed at shutdown.
    The pool is safe under concurrent acquisition; connections that fail are
    discarded rather than returned for reuse.

    Args:
        timeout: Total upstream timeout in seconds.

    Returns:
        Configured httpx.AsyncClient ready for use.
    """
    return httpx.AsyncClient(
        transport=httpx.AsyncHTTPTransport(retries=0),
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(timeout),
        follow_redirects=False,  # relay 3xx to the client; do not resolve
    )


async def _wait_for_disconnect(request: Request) -> None:
    """Return once the client has disconnected.

    Must only be started after the request body has been consumed; from then
    on the only message the server can deliver is ``http.disconnect``.
    """
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


# ─── Forwarder ────────────────────────────────────────────────────────────────


class Forwarder:
    """Relays admitted requests to a single upstream target.

    Holds only the shared client and the immutable target, so one instance
    serves all concurrent requests of an application.
    """

    def __init__(self, client: httpx.AsyncClient, target: UpstreamTarget) -> None:
        self.client = client
        self.target = target
        self._base_url = httpx.URL(target.base_url)

    def upstream_url(self, raw_path: bytes, query_string: bytes) -> httpx.URL:
        """Upstream URL carrying the client's path and query byte-for-byte."""
        target = raw_path.split(b"?", 1)[0] or b"/"
        if query_string:
            target += b"?" + query_string
        if not target.isascii():
            # Raw non-ASCII bytes on the request line; send them percent-encoded.
            target = quote_from_bytes(target, safe=_URL_SAFE).encode("ascii")
        return self._base_url.copy_with(raw_path=target)

    def request_url(self, request: Request) -> httpx.URL:
        """Upstream URL for ``request``; its ``path`` is what the upstream will serve."""
        raw_path: bytes = request.scope.get("raw_path") or request.scope["path"].encode("utf-8")
        query_string: bytes = request.scope.get("query_string", b"")
        return self.upstream_url(raw_path, query_string)

    async def forward(
        self,
        request: Request,
        url: Optional[httpx.URL] = None,
    ) -> StreamingResponse:
        """Send ``request`` to the upstream once and relay the response.

        Args:
            request: The admitted client request.
            url:     Upstream URL already computed by :meth:`request_url`.

        Returns:
            StreamingResponse with the upstream's status, headers and raw body.

        Raises:
            UpstreamUnavailable: Connection refused/reset, timeout, or a
                                 response that is not valid HTTP.
            ClientDisconnected:  The client went away before the upstream
                                 answered; the upstream call was cancelled.
        """
        if url is None:
            url = self.request_url(request)

        body: bytes = await request.body()
        upstream_request = self.client.build_request(
            method=request.method,
            url=url,
            headers=build_upstream_headers(request.headers.raw),
            content=body,
        )

        upstream_response = await self._send(request, upstream_request)

        logger.info(
            "request_proxied",
            method=request.method,
            path=request.scope["path"],
            upstream=str(url),
            status_code=upstream_response.status_code,
        )

        response = StreamingResponse(
            content=self._relay_body(upstream_response),
            status_code=upstream_response.status_code,
            background=BackgroundTask(upstream_response.aclose),
        )
        response.raw_headers = [
            (name.lower(), value)
            for name, value in build_client_response_headers(upstream_response.headers.raw)
        ]
        return response

    async def _send(
        self,
        request: Request,
        upstream_request: httpx.Request,
    ) -> httpx.Response:
        """Send upstream, racing the call against a client disconnect."""
        send_task = asyncio.ensure_future(self.client.send(upstream_request, stream=True))
        disconnect_task = asyncio.ensure_future(_wait_for_disconnect(request))
        try:
            done, _ = await asyncio.wait(
                {send_task, disconnect_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            send_task.cancel()
            raise
        finally:
            disconnect_task.cancel()

        if send_task not in done:
            send_task.cancel()
            try:
                late_response = await send_task
            except asyncio.CancelledError:
                pass
            except UPSTREAM_FAILURES:
                pass  # the client is gone; nobody to report it to
            else:
                # The send finished before the cancel landed; give the
                # connection back to the pool.
                await late_response.aclose()
            raise ClientDisconnected()

        try:
            return send_task.result()
        except UPSTREAM_FAILURES as exc:
            logger.warning(
                "upstream_unavailable",
                upstream_url=str(upstream_request.url),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise UpstreamUnavailable(type(exc).__name__, str(upstream_request.url)) from exc

    async def _relay_body(self, upstream_response: httpx.Response) -> AsyncIterator[bytes]:
        """Yield the upstream body exactly as received (no content decoding).

        The status line has already gone out, so a failure here can only abort
        the client connection; it is logged and re-raised so the client never
        mistakes a truncated body for a complete one.
        """
        try:
            async for chunk in upstream_response.aiter_raw():
                yield chunk
        except UPSTREAM_FAILURES as exc:
            logger.warning(
                "upstream_stream_interrupted",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise
        finally:
            await upstream_response.aclose()
