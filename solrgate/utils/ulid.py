"""ULID generation for per-request log correlation.

A ULID is a 26-character, Crockford Base32, lexicographically sortable id.
Uses the `python-ulid` library; do not hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Return a new ULID as a 26-character uppercase string.

    Example::

        request_id = generate_ulid()
        # "01KJ0JRVHYA7KX32VPN5ZSCTMV"
    """
    return str(ULID())
