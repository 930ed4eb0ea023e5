from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from changetrack.core.errors import NotFound, ValidationError
from changetrack.crud.change import change_crud, check_id
from changetrack.crud.comment import add_comment, list_comments
from changetrack.crud.user import create_user, get_user_by_email, list_users
from changetrack.models import ChangeRequest, Status


def test_create_change_starts_pending_with_defaults(session, users):
    c = change_crud.create_change(
        session,
        {"title": "  Patch VPN gateway ", "description": "CVE fix", "systems_affected": ["vpn"]},
        users.requester.id,
    )
    assert c.status == "PENDING"
    assert c.title == "Patch VPN gateway"
    assert c.priority == "MEDIUM" and c.impact == "MEDIUM"
    assert c.systems_affected == ["vpn"]
    assert c.approved_by_id is None
    assert c.requested_by.email == "rita@example.com"
    assert c.created_at is not None and c.updated_at is not None
    assert check_id(c.id) == c.id


@pytest.mark.parametrize("data, msg", [
    ({"description": "x"}, "title"),
    ({"title": "x", "description": "  "}, "description"),
    ({"title": "x", "description": "y", "priority": "URGENT"}, "priority"),
    ({"title": "x", "description": "y", "impact": "HUGE"}, "impact"),
])
def test_create_change_validation(session, users, data, msg):
    with pytest.raises(ValidationError, match=msg):
        change_crud.create_change(session, data, users.requester.id)


def test_create_change_rejects_inverted_window_and_unknown_requester(session, users):
    now = datetime.utcnow()
    with pytest.raises(ValidationError, match="planned_end"):
        change_crud.create_change(
            session,
            {"title": "x", "description": "y", "planned_start": now, "planned_end": now - timedelta(hours=1)},
            users.requester.id,
        )
    with pytest.raises(ValidationError, match="Requesting user not found"):
        change_crud.create_change(session, {"title": "x", "description": "y"}, "nobody")


def test_copy_change_is_a_fresh_pending_request(session, users, make_change, store):
    cid = make_change(priority="HIGH", type="SECURITY", systems_affected=["edge"])
    store.transition(cid, Status.APPROVED, users.manager.id, "ok")

    copy = change_crud.copy_change(session, cid)
    assert copy.id != cid
    assert copy.title == "Copy of Rotate TLS certificates"
    assert copy.status == "PENDING"
    assert copy.approved_by_id is None
    assert (copy.priority, copy.type, copy.systems_affected) == ("HIGH", "SECURITY", ["edge"])
    assert list_comments(session, copy.id) == []

    with pytest.raises(NotFound):
        change_crud.copy_change(session, "missing")


def test_get_and_require_change(session, make_change):
    cid = make_change()
    assert change_crud.get_change(session, cid).id == cid
    assert change_crud.get_change(session, "nope") is None
    with pytest.raises(NotFound):
        change_crud.require_change(session, "nope")
    with pytest.raises(ValidationError):
        change_crud.get_change(session, "bad id!")


def test_listing_is_newest_first_with_filters(session, make_change):
    ids = [make_change(title=f"c{i}") for i in range(3)]
    rejected = make_change(status=Status.REJECTED, title="r")

    listed = [c.id for c in change_crud.get_changes(session)]
    assert set(listed) == set(ids) | {rejected}
    assert listed[0] == rejected

    only_rejected = change_crud.get_changes(session, status=Status.REJECTED)
    assert [c.id for c in only_rejected] == [rejected]

    assert len(change_crud.get_changes(session, limit=2)) == 2
    assert len(change_crud.get_changes(session, skip=3)) == 1

    future = datetime.utcnow() + timedelta(days=1)
    assert change_crud.get_changes(session, start=future) == []


def test_grouping_and_counts(session, users, make_change):
    make_change()
    make_change(priority="HIGH")
    make_change(status=Status.IN_PROGRESS, priority="CRITICAL")

    grouped = change_crud.get_changes_by_status(session)
    assert set(grouped) == set(Status)
    assert len(grouped[Status.PENDING]) == 2
    assert len(grouped[Status.IN_PROGRESS]) == 1
    assert grouped[Status.CANCELLED] == []

    by_status = change_crud.count_by_status(session)
    assert by_status["PENDING"] == 2 and by_status["IN_PROGRESS"] == 1
    assert by_status["COMPLETED"] == 0
    assert sum(by_status.values()) == 3

    by_priority = change_crud.count_by_priority(session)
    assert by_priority == {"LOW": 0, "MEDIUM": 1, "HIGH": 1, "CRITICAL": 1}

    assert len(change_crud.recent_changes(session, limit=2)) == 2


def test_comments_are_chronological_and_do_not_touch_status(session, users, make_change, fetch):
    cid = make_change()
    before = fetch(cid)

    add_comment(session, cid, users.requester.id, "first")
    add_comment(session, cid, users.manager.id, "  second  ")

    comments = list_comments(session, cid)
    assert [(c.content, c.user.name) for c in comments] == [("first", "Rita Requester"), ("second", "Mo Manager")]

    after = fetch(cid)
    assert after.status == before.status
    assert after.updated_at == before.updated_at


def test_comment_validation(session, users, make_change):
    cid = make_change()
    with pytest.raises(ValidationError):
        add_comment(session, cid, users.requester.id, "   ")
    with pytest.raises(NotFound):
        add_comment(session, "missing", users.requester.id, "hi")
    with pytest.raises(NotFound):
        list_comments(session, "missing")
    with pytest.raises(ValidationError, match="User not found"):
        add_comment(session, cid, "ghost", "hi")


def test_users(session, users):
    assert get_user_by_email(session, " MO@Example.com ").id == users.manager.id
    assert [u.name for u in list_users(session)] == ["Ada Admin", "Mo Manager", "Rita Requester"]

    with pytest.raises(ValidationError, match="already exists"):
        create_user(session, "Mo Again", "mo@example.com", "USER")
    with pytest.raises(ValidationError, match="role"):
        create_user(session, "Root", "root@example.com", "ROOT")
    with pytest.raises(ValidationError):
        create_user(session, "No Mail", "", "USER")


def test_status_check_constraint_rejects_unknown_symbols(session, make_change):
    cid = make_change()
    c = session.get(ChangeRequest, cid)
    c.status = "ARCHIVED"
    with pytest.raises(IntegrityError):
        session.commit()
    session.rollback()
