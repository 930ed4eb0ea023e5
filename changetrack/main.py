from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional
import jwt, logging, uvicorn

from changetrack.api import changes, dashboard
from changetrack.core.config import Settings, configure_logging
from changetrack.core.database import Database, get_db
from changetrack.core.errors import ChangeTrackError, ValidationError, kind_for_status
from changetrack.core.security import create_access_token, create_refresh_token, decode_token
from changetrack.crud.user import get_user, get_user_by_email
from changetrack.metrics import init_metrics_zero
from changetrack.schemas import LoginIn, RefreshIn
from changetrack.services.lifecycle import LifecycleStore
from changetrack.services.status_query import StatusQueryService
from changetrack.utils.audit_sink import AuditSink

logger = logging.getLogger(__name__)

VERSION = "0.2.0"


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Application factory. The store handle and services are built here and
    hung on app.state; nothing connects until the first request.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    database = database or Database(settings.database_url, echo=settings.sql_echo)
    sink = AuditSink(settings.audit_dir) if settings.audit_dir else None

    app = FastAPI(
        title="Change Tracking API",
        description="Change-request lifecycle, approvals and board reconciliation",
        version=VERSION,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.lifecycle = LifecycleStore(database, audit_sink=sink, max_attempts=settings.transition_attempts)
    app.state.status_queries = StatusQueryService(database, recent_limit=settings.recent_limit)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins, allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )

    @app.on_event("startup")
    def on_startup():
        logger.info("database: %s", settings.masked_database_url())
        database.create_all()
        init_metrics_zero()
        if sink is not None:
            logger.info("audit mirror dir: %s", sink.directory)

    @app.on_event("shutdown")
    def on_shutdown():
        database.dispose()
        logger.info("database engine disposed")

    @app.exception_handler(ChangeTrackError)
    async def change_error_handler(request: Request, exc: ChangeTrackError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # auth and routing failures share the {kind, message} body
        return JSONResponse(
            status_code=exc.status_code,
            content={"kind": kind_for_status(exc.status_code), "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        parts = []
        for err in exc.errors():
            loc = ".".join(str(x) for x in err.get("loc", ()) if x != "body")
            parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
        return JSONResponse(status_code=400, content=ValidationError("; ".join(parts) or "invalid request").to_dict())

    app.include_router(changes.router)
    app.include_router(dashboard.router)

    @app.get("/health")
    def health_check():
        try:
            database.ping()
            return {"status": "healthy", "database": "connected", "timestamp": datetime.utcnow()}
        except SQLAlchemyError as e:
            return JSONResponse(status_code=503, content={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(e),
                "timestamp": datetime.utcnow().isoformat(),
            })

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/public/version", include_in_schema=False)
    def public_version():
        return {"name": "changetrack-api", "version": VERSION}

    @app.post("/auth/login")
    def auth_login(body: LoginIn, db: Session = Depends(get_db)):
        user = get_user_by_email(db, body.email)
        if not user:
            raise HTTPException(status_code=401, detail="Unknown user")
        access = create_access_token(settings, user.id, user.role)
        refresh = create_refresh_token(settings, user.id, user.role)
        return {"access_token": access, "refresh_token": refresh, "token_type": "bearer",
                "expires_in": settings.access_ttl_min * 60, "role": user.role, "user_id": user.id}

    @app.post("/auth/refresh")
    def auth_refresh(body: RefreshIn, db: Session = Depends(get_db)):
        try:
            data = decode_token(settings, body.refresh_token, expected_type="refresh")
        except jwt.PyJWTError:
            raise HTTPException(status_code=401, detail="Invalid/expired refresh token")
        user = get_user(db, data.get("sub", ""))
        if not user:
            raise HTTPException(status_code=401, detail="Unknown user")
        new_access = create_access_token(settings, user.id, user.role)
        return {"access_token": new_access, "token_type": "bearer", "expires_in": settings.access_ttl_min * 60}

    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
