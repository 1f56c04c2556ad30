"""Admission policy for solrgate.

Exposes:
    - Policy:   immutable allow/deny configuration (policy.py)
    - validate: pure request admission check (validator.py)
"""

from solrgate.policy.policy import Policy
from solrgate.policy.validator import validate

__all__ = ["Policy", "validate"]
