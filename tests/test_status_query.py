from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from changetrack.core.database import Database
from changetrack.core.errors import ValidationError
from changetrack.crud.change import change_crud
from changetrack.models import Status
from changetrack.services.status_query import StatusQueryService
from changetrack.utils.periods import parse_iso, period_range


@pytest.fixture
def queries(database):
    return StatusQueryService(database, recent_limit=3)


def _fail(*args, **kwargs):
    raise OperationalError("SELECT ...", {}, Exception("connection refused"))


def test_dashboard_counts_and_recent(queries, make_change):
    make_change()
    make_change()
    make_change(status=Status.IN_PROGRESS)
    make_change(status=Status.COMPLETED)
    make_change(status=Status.REJECTED)

    out = queries.dashboard()
    assert out["available"] is True
    assert out["stats"] == {"total": 5, "pending": 2, "in_progress": 1, "completed": 1}
    assert len(out["recent_changes"]) == 3
    first = out["recent_changes"][0]
    assert first["status"] == "REJECTED"
    assert first["requested_by"] == {"name": "Rita Requester", "email": "rita@example.com"}


def test_dashboard_on_empty_store(queries):
    out = queries.dashboard()
    assert out["available"] is True
    assert out["stats"]["total"] == 0
    assert out["recent_changes"] == []


def test_dashboard_degrades_instead_of_raising(queries, make_change, monkeypatch):
    make_change()
    monkeypatch.setattr(change_crud, "count_by_status", _fail)

    out = queries.dashboard()
    assert out["available"] is False
    assert out["message"] == "data unavailable"
    assert out["stats"] == {"total": 0, "pending": 0, "in_progress": 0, "completed": 0}
    assert out["recent_changes"] == []


def test_report_for_explicit_window(queries, make_change):
    make_change(priority="HIGH")
    make_change(status=Status.APPROVED, priority="LOW")

    now = datetime.utcnow()
    out = queries.report(start=now - timedelta(hours=1), end=now + timedelta(hours=1))
    assert out["available"] is True
    assert out["changes_by_status"]["PENDING"] == 1
    assert out["changes_by_status"]["APPROVED"] == 1
    assert set(out["changes_by_status"]) == {s.value for s in Status}
    assert out["changes_by_priority"] == {"LOW": 1, "MEDIUM": 0, "HIGH": 1, "CRITICAL": 0}
    assert len(out["recent_changes"]) == 2

    empty = queries.report(start=now + timedelta(days=1), end=now + timedelta(days=2))
    assert sum(empty["changes_by_status"].values()) == 0
    assert empty["recent_changes"] == []


def test_report_uses_named_period(queries, make_change):
    make_change()
    now = datetime.utcnow() + timedelta(minutes=1)
    out = queries.report("thisWeek", now=now)
    assert out["period_end"] == now
    assert out["period_start"] == now - timedelta(days=7)
    assert out["changes_by_status"]["PENDING"] == 1


def test_report_degrades_instead_of_raising(queries, monkeypatch):
    monkeypatch.setattr(change_crud, "count_by_priority", _fail)
    out = queries.report("lastMonth")
    assert out["available"] is False
    assert out["message"] == "data unavailable"
    assert all(v == 0 for v in out["changes_by_status"].values())
    assert all(v == 0 for v in out["changes_by_priority"].values())
    assert out["period_start"] < out["period_end"]


def test_unreachable_store_degrades(tmp_path):
    broken = StatusQueryService(Database(f"sqlite:///{tmp_path / 'missing' / 'x.db'}"))
    assert broken.dashboard()["available"] is False
    assert broken.report()["available"] is False


@pytest.mark.parametrize("period, expected_start", [
    ("thisWeek", datetime(2024, 5, 24, 15, 30)),
    ("thisMonth", datetime(2024, 5, 1)),
    ("lastMonth", datetime(2024, 4, 1)),
    ("lastQuarter", datetime(2024, 2, 29, 15, 30)),
    (None, datetime(2024, 5, 1)),
    ("someday", datetime(2024, 5, 1)),
])
def test_period_range(period, expected_start):
    now = datetime(2024, 5, 31, 15, 30)
    start, end = period_range(period, now)
    assert end == now
    assert start == expected_start


def test_last_month_across_year_boundary():
    start, _ = period_range("lastMonth", datetime(2025, 1, 15, 8, 0))
    assert start == datetime(2024, 12, 1)


def test_parse_iso():
    assert parse_iso(None) is None
    assert parse_iso("") is None
    assert parse_iso("2024-05-01") == datetime(2024, 5, 1)
    assert parse_iso("2024-05-01T10:20:30") == datetime(2024, 5, 1, 10, 20, 30)
    with pytest.raises(ValidationError):
        parse_iso("last tuesday")


def test_non_database_read_errors_also_degrade(queries, make_change, monkeypatch):
    make_change()

    def broken(*args, **kwargs):
        raise RuntimeError("driver crashed")

    monkeypatch.setattr(change_crud, "recent_changes", broken)
    assert queries.dashboard()["available"] is False
    assert queries.report("thisWeek")["available"] is False
