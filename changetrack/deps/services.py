from fastapi import Request

from changetrack.services.lifecycle import LifecycleStore
from changetrack.services.status_query import StatusQueryService

def get_lifecycle_store(request: Request) -> LifecycleStore:
    return request.app.state.lifecycle

def get_status_queries(request: Request) -> StatusQueryService:
    return request.app.state.status_queries
