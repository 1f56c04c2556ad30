"""Admission verdict returned by the request validator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from solrgate.constants import REJECTION_STATUS_CODE


class Action(str, Enum):
    ADMIT = "ADMIT"
    REJECT = "REJECT"


class RejectReason(str, Enum):
    """Which admission rule rejected the request.

    Only used for logging; every reason maps to the same 403 status.
    """

    METHOD_NOT_ALLOWED = "method_not_allowed"
    PATH_NOT_ALLOWED = "path_not_allowed"
    BLOCKED_QUERY_PARAM = "blocked_query_param"


@dataclass(frozen=True)
class Verdict:
    """Per-request admission decision. Never persisted.

    Attributes:
        action:      ADMIT or REJECT.
        status_code: Status to write for a rejection; None when admitted.
        reason:      Rule that rejected the request; None when admitted.
        detail:      The offending method, path or parameter name.
    """

    action: Action
    status_code: Optional[int] = None
    reason: Optional[RejectReason] = None
    detail: Optional[str] = None

    @classmethod
    def admit(cls) -> "Verdict":
        return _ADMIT

    @classmethod
    def reject(cls, reason: RejectReason, detail: Optional[str] = None) -> "Verdict":
        return cls(
            action=Action.REJECT,
            status_code=REJECTION_STATUS_CODE,
            reason=reason,
            detail=detail,
        )

    @property
    def admitted(self) -> bool:
        return self.action == Action.ADMIT


_ADMIT = Verdict(action=Action.ADMIT)
