"""Exceptions raised by the forwarding pipeline.

Admission rejections are not exceptions: the validator returns a Verdict and
the handler answers 403 directly. Only failures that happen while talking to
the upstream are raised.
"""

from __future__ import annotations


class ProxyError(Exception):
    """Base class for solrgate forwarding errors."""


class UpstreamUnavailable(ProxyError):
    """The upstream could not be reached or did not speak HTTP.

    Covers refused and reset connections, timeouts, and malformed responses.
    Answered with HTTP 502 by the application's exception handler.
    """

    def __init__(self, reason: str, upstream_url: str = "") -> None:
        super().__init__(reason)
        self.reason = reason
        self.upstream_url = upstream_url


class ClientDisconnected(ProxyError):
    """The client went away before the upstream answered.

    The in-flight upstream call has already been cancelled when this is raised.
    """
