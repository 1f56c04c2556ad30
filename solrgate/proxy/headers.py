"""HTTP header processing for the solrgate proxy.

  - build_upstream_headers(): strips hop-by-hop headers plus ``Host`` and
    ``Content-Length`` (httpx derives both), forwards everything else unchanged.

  - build_client_response_headers(): strips hop-by-hop headers from the
    upstream response, forwards everything else unchanged.

Both work on raw ``(name, value)`` byte pairs so that values are never
re-encoded and repeated headers (e.g. several ``Set-Cookie``) survive.

RFC 7230 §6.1 — hop-by-hop headers MUST NOT be forwarded by intermediaries.
"""

from __future__ import annotations

from typing import Iterable

RawHeaders = list[tuple[bytes, bytes]]

# ─── Constants ────────────────────────────────────────────────────────────────

# RFC 7230 §6.1 hop-by-hop headers (lower-case).
HOP_BY_HOP_HEADERS: frozenset[bytes] = frozenset(
    {
        b"connection",
        b"keep-alive",
        b"proxy-authenticate",
        b"proxy-authorization",
        b"te",
        b"trailers",
        b"transfer-encoding",
        b"upgrade",
    }
)

# Dropped from upstream-bound requests only: host comes from the upstream URL
# and httpx computes content-length from content=.
REQUEST_ONLY_STRIPPED: frozenset[bytes] = frozenset({b"host", b"content-length"})


def _connection_tokens(headers: RawHeaders) -> set[bytes]:
    """Header names listed in ``Connection`` are hop-by-hop for this message."""
    tokens: set[bytes] = set()
    for name, value in headers:
        if name.lower() == b"connection":
            tokens.update(t.strip().lower() for t in value.split(b",") if t.strip())
    return tokens


def _strip(headers: Iterable[tuple[bytes, bytes]], always: frozenset[bytes]) -> RawHeaders:
    pairs = list(headers)
    dropped = always | _connection_tokens(pairs)
    return [(name, value) for name, value in pairs if name.lower() not in dropped]


# ─── Public API ───────────────────────────────────────────────────────────────


def build_upstream_headers(request_headers: Iterable[tuple[bytes, bytes]]) -> RawHeaders:
    """Build the headers to send to the upstream search service.

    Args:
        request_headers: Raw header pairs from the incoming request,
                         typically ``request.headers.raw``.

    Returns:
        Raw header pairs for the upstream request, original order kept.
    """
    return _strip(request_headers, HOP_BY_HOP_HEADERS | REQUEST_ONLY_STRIPPED)


def build_client_response_headers(upstream_headers: Iterable[tuple[bytes, bytes]]) -> RawHeaders:
    """Build the headers to return to the client from the upstream response.

    ``Content-Length`` and ``Content-Encoding`` are kept: the body is relayed as
    the raw bytes the upstream sent, so both still describe it.

    Args:
        upstream_headers: Raw header pairs, typically ``httpx.Response.headers.raw``.

    Returns:
        Raw header pairs for the client-facing response.
    """
    return _strip(upstream_headers, HOP_BY_HOP_HEADERS)
