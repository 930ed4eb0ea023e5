"""
Shared fixtures: a throwaway SQLite file database per test, seeded users,
and a FastAPI app wired to that database.
"""
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from changetrack.core.config import Settings
from changetrack.core.database import Database
from changetrack.core.security import create_access_token
from changetrack.crud.change import change_crud
from changetrack.crud.user import create_user
from changetrack.main import create_app
from changetrack.models import ChangeRequest, Comment, Status
from changetrack.services.lifecycle import LifecycleStore


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'changetrack-test.db'}",
        jwt_secret="test-secret",
        audit_dir=str(tmp_path / "audit"),
    )


@pytest.fixture
def database(settings):
    db = Database(settings.database_url)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    with database.session() as s:
        yield s


@pytest.fixture
def users(session):
    return SimpleNamespace(
        requester=create_user(session, "Rita Requester", "rita@example.com", "USER"),
        manager=create_user(session, "Mo Manager", "mo@example.com", "MANAGER"),
        admin=create_user(session, "Ada Admin", "ada@example.com", "ADMIN"),
    )


@pytest.fixture
def store(database):
    return LifecycleStore(database)


@pytest.fixture
def make_change(session, users):
    """Seed a change in any status; `approved_by` pre-sets the approval."""
    def _make(status=Status.PENDING, approved_by=None, **fields):
        data = {"title": "Rotate TLS certificates", "description": "Replace expiring edge certs", **fields}
        c = change_crud.create_change(session, data, users.requester.id, approved_by_id=approved_by)
        if status != Status.PENDING:
            c.status = status.value
            session.commit()
        return c.id
    return _make


@pytest.fixture
def fetch(database):
    """Fresh read of a change and its comments, bypassing any cached session state."""
    def _fetch(change_id):
        with database.session() as s:
            c = s.get(ChangeRequest, change_id)
            comments = s.query(Comment).filter(Comment.change_id == change_id).order_by(Comment.created_at).all()
            return SimpleNamespace(
                status=c.status,
                approved_by_id=c.approved_by_id,
                updated_at=c.updated_at,
                created_at=c.created_at,
                requested_by_id=c.requested_by_id,
                comments=[(x.content, x.user_id) for x in comments],
            )
    return _fetch


@pytest.fixture
def app(settings, database):
    return create_app(settings, database=database)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth(settings):
    def _auth(user):
        return {"Authorization": f"Bearer {create_access_token(settings, user.id, user.role)}"}
    return _auth
