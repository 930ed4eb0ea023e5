from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional


from changetrack.core.database import Database
from changetrack.crud.change import change_crud
from changetrack.metrics import status_query_failures_total
from changetrack.models.change import ChangeRequest, Status, Priority
from changetrack.utils.periods import period_range

logger = logging.getLogger(__name__)

UNAVAILABLE = "data unavailable"


def _summary(c: ChangeRequest) -> Dict[str, Any]:
    requester = c.requested_by
    return {
        "id": c.id,
        "title": c.title,
        "status": c.status,
        "priority": c.priority,
        "impact": c.impact,
        "created_at": c.created_at,
        "requested_by": {"name": requester.name, "email": requester.email} if requester else None,
    }


class StatusQueryService:
    """
    Read-only aggregation for dashboards and reports.

    Never writes. Any read failure degrades to the same response shape with
    zero counts, no rows and `available: False`; it is never raised into
    the caller.
    """

    def __init__(self, database: Database, recent_limit: int = 5):
        self._database = database
        self.recent_limit = recent_limit

    def counts_by_status(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, int]:
        with self._database.session() as db:
            return change_crud.count_by_status(db, start, end)

    def counts_by_priority(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Dict[str, int]:
        with self._database.session() as db:
            return change_crud.count_by_priority(db, start, end)

    def recent(self, limit: Optional[int] = None, start: Optional[datetime] = None,
               end: Optional[datetime] = None) -> List[Dict[str, Any]]:
        with self._database.session() as db:
            rows = change_crud.recent_changes(db, limit or self.recent_limit, start, end)
            return [_summary(c) for c in rows]

    def dashboard(self) -> Dict[str, Any]:
        try:
            by_status = self.counts_by_status()
            recent = self.recent(self.recent_limit)
        except Exception:  # any read failure degrades to the placeholder view
            return self._degraded("dashboard", {
                "stats": {"total": 0, "pending": 0, "in_progress": 0, "completed": 0},
                "recent_changes": [],
            })
        return {
            "available": True,
            "stats": {
                "total": sum(by_status.values()),
                "pending": by_status[Status.PENDING.value],
                "in_progress": by_status[Status.IN_PROGRESS.value],
                "completed": by_status[Status.COMPLETED.value],
            },
            "recent_changes": recent,
        }

    def report(self, period: Optional[str] = None, start: Optional[datetime] = None,
               end: Optional[datetime] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        if start is None or end is None:
            p_start, p_end = period_range(period, now)
            start = start or p_start
            end = end or p_end
        window = {"period_start": start, "period_end": end}
        try:
            by_status = self.counts_by_status(start, end)
            by_priority = self.counts_by_priority(start, end)
            recent = self.recent(10, start, end)
        except Exception:
            return self._degraded("report", {
                "changes_by_status": {s.value: 0 for s in Status},
                "changes_by_priority": {p.value: 0 for p in Priority},
                "recent_changes": [],
                **window,
            })
        return {
            "available": True,
            "changes_by_status": by_status,
            "changes_by_priority": by_priority,
            "recent_changes": recent,
            **window,
        }

    def _degraded(self, what: str, placeholder: Dict[str, Any]) -> Dict[str, Any]:
        status_query_failures_total.inc()
        logger.warning("%s read failed; serving placeholder", what, exc_info=True)
        return {"available": False, "message": UNAVAILABLE, **placeholder}
