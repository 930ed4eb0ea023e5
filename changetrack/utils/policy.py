# changetrack/utils/policy.py
"""
Transition policy for change requests.

Pure decision functions: no I/O, no exceptions for refused moves. The same
function is called by the lifecycle store (authoritative) and by the board
reconciler (pre-check before an optimistic move), so both sides agree on
every (current, requested, approved) triple.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Union

from changetrack.core.errors import ValidationError
from changetrack.models.change import Status

TERMINAL_STATUSES = frozenset({Status.COMPLETED, Status.CANCELLED})

# moving into these statuses records the acting user as approver
APPROVAL_STATUSES = frozenset({Status.APPROVED, Status.COMPLETED})

REASON_APPROVAL_REQUIRED = "approval required: must be approved before moving to In Progress"
REASON_SKIP_IN_PROGRESS = "must pass through In Progress before being marked as Completed"
REASON_IN_PROGRESS_ONLY_COMPLETES = "in-progress items may only complete"
REASON_CLOSED = "request is closed"


@dataclass(frozen=True)
class TransitionDecision:
    allowed: bool
    reason: Optional[str] = None
    noop: bool = False

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = TransitionDecision(True)
NOOP = TransitionDecision(True, noop=True)


def parse_status(value: Union[str, Status, None]) -> Status:
    """Strict parse of a status symbol; unknown symbols are a hard validation error."""
    if isinstance(value, Status):
        return value
    if not isinstance(value, str) or not value:
        raise ValidationError("status is required and must be a string")
    try:
        return Status(value)
    except ValueError:
        valid = ", ".join(s.value for s in Status)
        raise ValidationError(f"Invalid status value '{value}'. Must be one of: {valid}")


def is_terminal(status: Status) -> bool:
    return status in TERMINAL_STATUSES


def explain_transition(current: Status, requested: Status, approved: bool) -> TransitionDecision:
    """
    Decide whether `current -> requested` is legal for a request whose
    approval flag is `approved`.
    """
    if current in TERMINAL_STATUSES:
        return TransitionDecision(False, REASON_CLOSED)

    if current == requested:
        return NOOP

    if current == Status.PENDING:
        if requested == Status.IN_PROGRESS and not approved:
            return TransitionDecision(False, REASON_APPROVAL_REQUIRED)
        if requested == Status.COMPLETED:
            return TransitionDecision(False, REASON_SKIP_IN_PROGRESS)
        return ALLOW

    if current == Status.IN_PROGRESS:
        if requested == Status.COMPLETED:
            return ALLOW
        return TransitionDecision(False, REASON_IN_PROGRESS_ONLY_COMPLETES)

    # APPROVED / REJECTED sources have no explicit rule: default-allow
    return ALLOW


def resolve_approver(requested: Status, actor_id: str) -> Optional[str]:
    """ApprovedBy value written alongside a move into `requested`."""
    return actor_id if requested in APPROVAL_STATUSES else None
