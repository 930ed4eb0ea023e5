from __future__ import annotations
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from changetrack.core.errors import NotFound, ValidationError
from changetrack.models.change import ChangeRequest, Status, Priority, Impact
from changetrack.models.user import User

_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def check_id(value: Any, what: str = "change") -> str:
    if not isinstance(value, str) or not _ID_RE.match(value):
        raise ValidationError(f"Invalid {what} ID")
    return value


def _enum_value(enum_cls, value: Any, field: str, default) -> str:
    if value is None or value == "":
        return default.value
    try:
        return enum_cls(value).value
    except ValueError:
        valid = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"Invalid {field} '{value}'. Must be one of: {valid}")


def _window(q, start: Optional[datetime], end: Optional[datetime]):
    if start is not None:
        q = q.filter(ChangeRequest.created_at >= start)
    if end is not None:
        q = q.filter(ChangeRequest.created_at <= end)
    return q


class ChangeCRUD:
    def create_change(self, db: Session, data: Dict[str, Any], requested_by_id: str,
                      approved_by_id: Optional[str] = None) -> ChangeRequest:
        """
        New change request, always PENDING. `approved_by_id` is only for
        importing requests that were pre-approved outside the board.
        """
        title = (data.get("title") or "").strip()
        description = (data.get("description") or "").strip()
        if not title:
            raise ValidationError("Missing required field: title")
        if not description:
            raise ValidationError("Missing required field: description")
        start, end = data.get("planned_start"), data.get("planned_end")
        if start and end and end < start:
            raise ValidationError("planned_end must not precede planned_start")

        requester = db.get(User, check_id(requested_by_id, "user"))
        if requester is None:
            raise ValidationError("Requesting user not found")
        approver = None
        if approved_by_id is not None:
            approver = db.get(User, check_id(approved_by_id, "user"))
            if approver is None:
                raise ValidationError("Approving user not found")

        change = ChangeRequest(
            title=title,
            description=description,
            type=data.get("type"),
            status=Status.PENDING.value,
            priority=_enum_value(Priority, data.get("priority"), "priority", Priority.MEDIUM),
            impact=_enum_value(Impact, data.get("impact"), "impact", Impact.MEDIUM),
            systems_affected=list(data.get("systems_affected") or []),
            planned_start=start,
            planned_end=end,
            requested_by=requester,
            approved_by=approver,
        )
        db.add(change)
        db.commit()
        db.refresh(change)
        return change

    def copy_change(self, db: Session, change_id: str) -> ChangeRequest:
        source = self.get_change(db, change_id)
        if source is None:
            raise NotFound("Source change not found")
        copy = ChangeRequest(
            title=f"Copy of {source.title}",
            description=source.description,
            type=source.type,
            status=Status.PENDING.value,
            priority=source.priority,
            impact=source.impact,
            systems_affected=list(source.systems_affected or []),
            planned_start=source.planned_start,
            planned_end=source.planned_end,
            requested_by_id=source.requested_by_id,
        )
        db.add(copy)
        db.commit()
        db.refresh(copy)
        return copy

    def get_change(self, db: Session, change_id: str) -> Optional[ChangeRequest]:
        return db.get(ChangeRequest, check_id(change_id))

    def require_change(self, db: Session, change_id: str) -> ChangeRequest:
        change = self.get_change(db, change_id)
        if change is None:
            raise NotFound("Change not found")
        return change

    def get_changes(self, db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None,
                    status: Optional[Status] = None, skip: int = 0, limit: Optional[int] = None) -> List[ChangeRequest]:
        q = _window(db.query(ChangeRequest), start, end)
        if status is not None:
            q = q.filter(ChangeRequest.status == status.value)
        q = q.order_by(ChangeRequest.created_at.desc()).offset(skip)
        if limit is not None:
            q = q.limit(limit)
        return q.all()

    def get_changes_by_status(self, db: Session) -> Dict[Status, List[ChangeRequest]]:
        grouped: Dict[Status, List[ChangeRequest]] = {s: [] for s in Status}
        for c in self.get_changes(db):
            grouped[Status(c.status)].append(c)
        return grouped

    def count_by_status(self, db: Session, start: Optional[datetime] = None,
                        end: Optional[datetime] = None) -> Dict[str, int]:
        q = _window(db.query(ChangeRequest.status, func.count(ChangeRequest.id)), start, end)
        counts = {s.value: 0 for s in Status}
        for status, n in q.group_by(ChangeRequest.status).all():
            counts[status] = int(n)
        return counts

    def count_by_priority(self, db: Session, start: Optional[datetime] = None,
                          end: Optional[datetime] = None) -> Dict[str, int]:
        q = _window(db.query(ChangeRequest.priority, func.count(ChangeRequest.id)), start, end)
        counts = {p.value: 0 for p in Priority}
        for priority, n in q.group_by(ChangeRequest.priority).all():
            counts[priority] = int(n)
        return counts

    def recent_changes(self, db: Session, limit: int = 5, start: Optional[datetime] = None,
                       end: Optional[datetime] = None) -> List[ChangeRequest]:
        return self.get_changes(db, start=start, end=end, limit=limit)

# Create instance
change_crud = ChangeCRUD()
