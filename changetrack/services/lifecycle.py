from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from changetrack.core.database import Database
from changetrack.core.errors import NotFound, PolicyViolation, StorageFailure, ValidationError
from changetrack.crud.change import check_id
from changetrack.metrics import (
    policy_violations_total,
    storage_failures_total,
    transition_conflicts_total,
    transition_latency_seconds,
    transitions_total,
)
from changetrack.models.change import ChangeRequest, Status
from changetrack.models.comment import Comment
from changetrack.models.user import User
from changetrack.services.audit import record_transition
from changetrack.utils.audit_sink import AuditSink
from changetrack.utils.locks import KeyedLocks
from changetrack.utils.policy import explain_transition, parse_status, resolve_approver

logger = logging.getLogger(__name__)


class LifecycleStore:
    """
    Sole write path for change-request status.

    A transition is one unit of work: read the current row, ask the
    transition policy, write status + approver + updated_at, and add the
    audit comment. Either all of it commits or none of it does.

    Calls for the same change id are serialized: in-process by a per-id
    lock, across processes by SELECT ... FOR UPDATE plus the row's version
    counter. A call that loses a version race re-reads and re-evaluates the
    policy against the winner's committed status.
    """

    def __init__(self, database: Database, audit_sink: Optional[AuditSink] = None, max_attempts: int = 3):
        self._database = database
        self._audit_sink = audit_sink
        self._locks = KeyedLocks()
        self.max_attempts = max(1, int(max_attempts))

    def transition(
        self,
        change_id: str,
        requested_status: Union[str, Status],
        actor_id: str,
        comment: Optional[str] = None,
    ) -> ChangeRequest:
        target = parse_status(requested_status)
        check_id(change_id)
        if not actor_id:
            raise ValidationError("An authenticated actor is required")
        check_id(actor_id, "user")
        if comment is not None and not isinstance(comment, str):
            raise ValidationError("comment must be a string")
        note = (comment or "").strip() or None

        with transition_latency_seconds.time(), self._locks.hold(change_id):
            for attempt in range(1, self.max_attempts + 1):
                try:
                    change, previous = self._apply(change_id, target, actor_id, note)
                except StaleDataError:
                    transition_conflicts_total.inc()
                    logger.warning("concurrent update on change=%s (attempt %d/%d); re-evaluating",
                                   change_id, attempt, self.max_attempts)
                    continue
                except SQLAlchemyError as e:
                    storage_failures_total.labels(operation="transition").inc()
                    logger.exception("transition failed for change=%s -> %s", change_id, target.value)
                    raise StorageFailure("Failed to update change status") from e

                if previous is None:
                    logger.debug("change=%s already %s; ignoring", change_id, target.value)
                    return change

                transitions_total.labels(from_status=previous.value, to_status=target.value).inc()
                logger.info("change=%s %s -> %s by %s", change_id, previous.value, target.value, actor_id)
                record_transition(self._audit_sink, change, previous, target, actor_id, note)
                return change

        storage_failures_total.labels(operation="transition").inc()
        raise StorageFailure("Change was modified concurrently; please retry")

    def cancel(self, change_id: str, actor_id: str, comment: Optional[str] = None) -> ChangeRequest:
        """Cancellation is not a board move but follows the same atomic path."""
        return self.transition(change_id, Status.CANCELLED, actor_id, comment)

    def _apply(self, change_id: str, target: Status, actor_id: str,
               note: Optional[str]) -> Tuple[ChangeRequest, Optional[Status]]:
        """Returns the change and the status it left (None when nothing changed)."""
        with self._database.session() as db:
            with db.begin():
                actor = db.get(User, actor_id)
                if actor is None:
                    raise ValidationError("Acting user not found")

                change = (
                    db.query(ChangeRequest)
                    .filter(ChangeRequest.id == change_id)
                    .with_for_update(of=ChangeRequest)
                    .one_or_none()
                )
                if change is None:
                    raise NotFound("Change not found")

                current = parse_status(change.status)
                decision = explain_transition(current, target, change.is_approved)
                if decision.noop:
                    return change, None
                if not decision.allowed:
                    policy_violations_total.labels(from_status=current.value, to_status=target.value).inc()
                    logger.info("change=%s %s -> %s refused: %s", change_id, current.value, target.value, decision.reason)
                    raise PolicyViolation(decision.reason)

                change.status = target.value
                change.approved_by = actor if resolve_approver(target, actor.id) else None
                change.updated_at = datetime.utcnow()
                db.flush()

                if note:
                    db.add(Comment(content=note, change_id=change.id, user=actor))
                    db.flush()
            return change, current
