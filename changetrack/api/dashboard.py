from typing import Optional
from fastapi import APIRouter, Depends

from changetrack.deps.auth import get_current_user
from changetrack.deps.services import get_status_queries
from changetrack.services.status_query import StatusQueryService
from changetrack.utils.periods import parse_iso

router = APIRouter(tags=["dashboard"])

@router.get("/api/dashboard/stats", response_model=dict)
def api_dashboard_stats(queries: StatusQueryService = Depends(get_status_queries),
                        user=Depends(get_current_user)):
    return queries.dashboard()

@router.get("/api/reports", response_model=dict)
def api_reports(period: Optional[str] = "thisMonth", start: Optional[str] = None, end: Optional[str] = None,
                queries: StatusQueryService = Depends(get_status_queries),
                user=Depends(get_current_user)):
    return queries.report(period, parse_iso(start), parse_iso(end))
