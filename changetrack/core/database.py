from __future__ import annotations
from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

# Single source of truth for Base
Base = declarative_base()


class Database:
    """
    Explicit store handle: one engine + session factory per hosting process.
    Built by the app factory and passed to every component that needs it.
    """

    def __init__(self, url: str, echo: bool = False):
        connect_args = {}
        if url.startswith("sqlite"):
            # sessions are handed across worker threads by the ASGI server
            connect_args = {"check_same_thread": False, "timeout": 30}
        self.url = url
        self.engine: Engine = create_engine(url, echo=echo, future=True, pool_pre_ping=True, connect_args=connect_args)
        self.SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def create_all(self) -> None:
        # make sure every mapped class is registered on Base.metadata
        from changetrack import models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def dispose(self) -> None:
        self.engine.dispose()


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Iterator[Session]:
    db = get_database(request).SessionLocal()
    try:
        yield db
    finally:
        db.close()
