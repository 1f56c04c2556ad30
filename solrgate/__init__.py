"""solrgate — filtering reverse proxy for a search-index backend.

Admits only allowed methods, path prefixes and query parameters, relays
admitted requests to the upstream unchanged, and answers 502 when the upstream
cannot be reached.
"""

from solrgate.models.verdict import Action, RejectReason, Verdict
from solrgate.policy import Policy, validate
from solrgate.server import ProxyServer, start

__all__ = [
    "Action",
    "Policy",
    "ProxyServer",
    "RejectReason",
    "Verdict",
    "start",
    "validate",
]

__version__ = "1.0.0"
