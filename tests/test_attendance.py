import logging
from datetime import date, datetime, time
from decimal import Decimal

import pytest

from app.api.deps import Principal
from app.core.config import settings
from app.core.errors import ConflictError, ValidationError
from app.models.models import Attendance
from app.services.attendance_service import attendance_service


@pytest.fixture
def actor(users):
    user = users["employee"]
    return Principal(id=user.id, role=user.role, name=user.name, email=user.email)


@pytest.fixture(autouse=True)
def work_start(monkeypatch):
    monkeypatch.setattr(settings, "WORK_START_TIME", "09:30:00")


def test_sign_in_on_time_then_sign_out(db, actor):
    record = attendance_service.sign_in(db, actor, now=datetime(2025, 3, 3, 9, 15))
    assert record.status == "present"
    assert record.date == date(2025, 3, 3)

    record = attendance_service.sign_out(db, actor, now=datetime(2025, 3, 3, 17, 45))
    assert record.logout_time == datetime(2025, 3, 3, 17, 45)
    assert Decimal(record.total_hours) == Decimal("8.50")


def test_late_sign_in(db, actor):
    record = attendance_service.sign_in(db, actor, now=datetime(2025, 3, 3, 9, 31))
    assert record.status == "late"


def test_one_record_per_day(db, actor):
    attendance_service.sign_in(db, actor, now=datetime(2025, 3, 3, 9, 0))
    with pytest.raises(ConflictError):
        attendance_service.sign_in(db, actor, now=datetime(2025, 3, 3, 13, 0))
    attendance_service.sign_in(db, actor, now=datetime(2025, 3, 4, 9, 0))
    assert db.query(Attendance).filter(Attendance.user_id == actor.id).count() == 2


def test_sign_out_without_sign_in(db, actor):
    with pytest.raises(ValidationError):
        attendance_service.sign_out(db, actor, now=datetime(2025, 3, 3, 18, 0))


def test_api_sign_in_and_history(client, users, headers):
    resp = client.post("/api/v1/attendance/", json={"action": "sign_in"}, headers=headers("employee"))
    assert resp.status_code == 200
    assert resp.json()["user_id"] == users["employee"].id

    resp = client.post("/api/v1/attendance/", json={"action": "sign_in"}, headers=headers("employee"))
    assert resp.status_code == 409

    history = client.get("/api/v1/attendance/", headers=headers("employee")).json()
    assert len(history) == 1

    assert client.post("/api/v1/attendance/", json={"action": "nap"}, headers=headers("employee")).status_code == 400


def test_history_access(client, db, users, headers):
    for name in ("employee", "employee2"):
        db.add(Attendance(user_id=users[name].id, date=date(2025, 3, 3), login_time=datetime.combine(
            date(2025, 3, 3), time(9, 0)), status="present"))
    db.commit()

    employee_id = users["employee"].id
    assert len(client.get(f"/api/v1/attendance/?user_id={employee_id}", headers=headers("manager")).json()) == 1
    assert client.get(f"/api/v1/attendance/?user_id={employee_id}", headers=headers("manager2")).status_code == 403
    assert client.get("/api/v1/attendance/?all_users=true", headers=headers("manager")).status_code == 403

    everyone = client.get("/api/v1/attendance/?all_users=true&start_date=2025-03-01&end_date=2025-03-31",
                          headers=headers("hr")).json()
    assert len(everyone) == 2


def test_sign_in_and_out_are_logged(db, actor, caplog):
    with caplog.at_level(logging.INFO, logger="attendance"):
        attendance_service.sign_in(db, actor, now=datetime(2025, 3, 3, 9, 45))
        attendance_service.sign_out(db, actor, now=datetime(2025, 3, 3, 18, 45))
    messages = [r.getMessage() for r in caplog.records if r.name == "attendance"]
    assert f"[ATTENDANCE] user={actor.id} signed in 2025-03-03 at 09:45:00 (late)" in messages
    assert f"[ATTENDANCE] user={actor.id} signed out 2025-03-03 after 9.00h" in messages
