"""Unit tests for solrgate.proxy.headers: hop-by-hop stripping in both directions.

  - RFC 7230 hop-by-hop headers never cross the proxy
  - Headers named in ``Connection`` are treated as hop-by-hop too
  - Host / Content-Length dropped on the upstream side only
  - Everything else (including repeated headers) forwarded byte-for-byte
"""

from __future__ import annotations

import httpx

from solrgate.proxy.headers import (
    HOP_BY_HOP_HEADERS,
    build_client_response_headers,
    build_upstream_headers,
)


def _names(headers: list[tuple[bytes, bytes]]) -> set[bytes]:
    return {name.lower() for name, _ in headers}


# ─── build_upstream_headers() ─────────────────────────────────────────────────


class TestBuildUpstreamHeaders:
    def test_hop_by_hop_stripped(self) -> None:
        raw = [(name, b"x") for name in HOP_BY_HOP_HEADERS] + [(b"accept", b"*/*")]
        result = build_upstream_headers(raw)
        assert result == [(b"accept", b"*/*")]

    def test_hop_by_hop_case_insensitive(self) -> None:
        result = build_upstream_headers([(b"Connection", b"keep-alive"), (b"Keep-Alive", b"5")])
        assert result == []

    def test_host_and_content_length_stripped(self) -> None:
        result = build_upstream_headers(
            [(b"host", b"proxy:8008"), (b"content-length", b"0"), (b"user-agent", b"curl/8")]
        )
        assert result == [(b"user-agent", b"curl/8")]

    def test_connection_tokens_stripped(self) -> None:
        raw = [
            (b"connection", b"close, X-Private-Hop"),
            (b"x-private-hop", b"1"),
            (b"x-kept", b"2"),
        ]
        assert build_upstream_headers(raw) == [(b"x-kept", b"2")]

    def test_other_headers_unchanged_and_ordered(self) -> None:
        raw = [
            (b"accept", b"application/json"),
            (b"authorization", b"Basic dXNlcjpwYXNz"),
            (b"cookie", b"a=1"),
            (b"x-request-tag", b"\xe9t\xe9"),
        ]
        assert build_upstream_headers(raw) == raw

    def test_repeated_headers_kept(self) -> None:
        raw = [(b"x-tag", b"a"), (b"x-tag", b"b")]
        assert build_upstream_headers(raw) == raw

    def test_empty(self) -> None:
        assert build_upstream_headers([]) == []

    def test_accepts_any_iterable(self) -> None:
        result = build_upstream_headers(iter([(b"accept", b"*/*")]))
        assert result == [(b"accept", b"*/*")]


# ─── build_client_response_headers() ──────────────────────────────────────────


class TestBuildClientResponseHeaders:
    def test_transfer_encoding_stripped(self) -> None:
        upstream = httpx.Headers({"transfer-encoding": "chunked", "content-type": "text/xml"})
        result = build_client_response_headers(upstream.raw)
        assert _names(result) == {b"content-type"}

    def test_content_length_kept(self) -> None:
        result = build_client_response_headers([(b"Content-Length", b"42")])
        assert result == [(b"Content-Length", b"42")]

    def test_content_encoding_kept(self) -> None:
        result = build_client_response_headers([(b"content-encoding", b"gzip")])
        assert result == [(b"content-encoding", b"gzip")]

    def test_multiple_set_cookie_survive(self) -> None:
        raw = [(b"set-cookie", b"a=1"), (b"set-cookie", b"b=2")]
        assert build_client_response_headers(raw) == raw

    def test_solr_headers_unchanged(self) -> None:
        raw = [
            (b"content-type", b"application/json;charset=utf-8"),
            (b"last-modified", b"Sat, 01 Jan 2000 00:00:00 GMT"),
            (b"etag", b'"abc"'),
        ]
        assert build_client_response_headers(raw) == raw

    def test_host_not_stripped_on_response(self) -> None:
        # Only the request side drops Host.
        assert build_client_response_headers([(b"host", b"x")]) == [(b"host", b"x")]
