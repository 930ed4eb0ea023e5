from __future__ import annotations
import logging
from typing import Optional
from datetime import datetime

from changetrack.models.change import ChangeRequest, Status
from changetrack.utils.audit_sink import AuditSink

logger = logging.getLogger(__name__)


def record_transition(
    sink: Optional[AuditSink],
    change: ChangeRequest,
    from_status: Status,
    to_status: Status,
    actor_id: str,
    comment: Optional[str],
) -> None:
    """
    Mirror a committed transition to the filesystem as JSONL.
    Runs after commit; the comment row in the database is the audit record
    of truth, so a mirror failure is logged and swallowed.
    """
    if sink is None:
        return
    try:
        sink.write_event({
            "action": "STATUS_CHANGED",
            "change_id": change.id,
            "from": from_status.value,
            "to": to_status.value,
            "actor": actor_id,
            "approved_by": change.approved_by_id,
            "comment": comment,
            "at": (change.updated_at or datetime.utcnow()).isoformat(),
        })
    except OSError:
        logger.exception("audit mirror write failed for change=%s", change.id)
