"""Concurrency, audit-failure and reporting-line changes across the approval workflows."""
import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.models.models import (
    ActivityLog,
    LeaveRequest,
    LeaveStatusEnum,
    StatusRequestStateEnum,
    TaskStatusRequest,
)
from app.services import guards

LEAVE = {"leave_type": "sick", "start_date": "2025-03-01", "end_date": "2025-03-02"}


def apply_leave(client, auth):
    resp = client.post("/api/v1/leaves/", json=LEAVE, headers=auth)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ===== Thua race khi duyệt =====
def test_leave_decided_concurrently_returns_conflict_and_keeps_first_decision(client, users, headers, monkeypatch):
    leave = apply_leave(client, headers("employee"))
    original_guard = guards.can_decide_leave

    def decided_elsewhere(db, actor, target):
        # admin reject đúng lúc HR vừa qua bước kiểm tra quyền
        allowed = original_guard(db, actor, target)
        db.query(LeaveRequest).filter(LeaveRequest.id == leave["id"]).update(
            {LeaveRequest.status: LeaveStatusEnum.REJECTED, LeaveRequest.approved_by: users["admin"].id},
            synchronize_session=False,
        )
        db.commit()
        return allowed

    monkeypatch.setattr(guards, "can_decide_leave", decided_elsewhere)
    resp = client.post(f"/api/v1/leaves/{leave['id']}/approve", json={"status": "approved"},
                       headers=headers("hr"))
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "conflict"

    monkeypatch.undo()
    current = client.get(f"/api/v1/leaves/{leave['id']}", headers=headers("hr")).json()
    assert current["status"] == "rejected"
    assert current["approved_by"] == users["admin"].id


@pytest.fixture
def pending_request(client, users, headers):
    task = client.post("/api/v1/tasks/", json={"title": "Race", "assigned_users": [users["employee"].id]},
                       headers=headers("manager")).json()
    client.post(f"/api/v1/tasks/{task['id']}/status", json={"requested_status": "in_progress"},
                headers=headers("manager"))
    result = client.post(f"/api/v1/tasks/{task['id']}/status", json={"requested_status": "completed"},
                         headers=headers("employee")).json()
    assert result["applied"] is False
    return task, result["request"]


def test_status_request_resolved_concurrently_returns_conflict(client, users, headers, monkeypatch,
                                                               pending_request):
    task, req = pending_request
    original_guard = guards.can_resolve_status_request

    def resolved_elsewhere(db, actor, target):
        allowed = original_guard(db, actor, target)
        db.query(TaskStatusRequest).filter(TaskStatusRequest.id == req["id"]).update(
            {TaskStatusRequest.status: StatusRequestStateEnum.REJECTED,
             TaskStatusRequest.verified_by: users["hr"].id},
            synchronize_session=False,
        )
        db.commit()
        return allowed

    monkeypatch.setattr(guards, "can_resolve_status_request", resolved_elsewhere)
    resp = client.post(f"/api/v1/tasks/{task['id']}/status-requests/{req['id']}/resolve",
                       json={"action": "approve"}, headers=headers("manager"))
    assert resp.status_code == 409

    monkeypatch.undo()
    requests = client.get(f"/api/v1/tasks/{task['id']}/status-requests", headers=headers("manager")).json()
    assert requests[0]["status"] == "rejected"
    assert requests[0]["verified_by"] == users["hr"].id
    # approve bị chặn nên task không đổi
    current = client.get(f"/api/v1/tasks/{task['id']}", headers=headers("manager")).json()
    assert current["status"] == "in_progress"


# ===== Ghi activity log lỗi =====
@pytest.fixture
def broken_activity_log(monkeypatch):
    def failing(**kwargs):
        raise SQLAlchemyError("activity_logs is unavailable")
    monkeypatch.setattr("app.services.activity_log_service.ActivityLog", failing)


def test_activity_log_failure_keeps_leave(client, db, users, headers, broken_activity_log):
    leave = apply_leave(client, headers("employee"))

    stored = db.query(LeaveRequest).filter(LeaveRequest.id == leave["id"]).first()
    assert stored is not None and stored.status == LeaveStatusEnum.PENDING
    assert db.query(ActivityLog).count() == 0

    resp = client.post(f"/api/v1/leaves/{leave['id']}/approve", json={"status": "approved"},
                       headers=headers("hr"))
    assert resp.status_code == 200
    assert client.get(f"/api/v1/leaves/{leave['id']}", headers=headers("hr")).json()["status"] == "approved"


def test_activity_log_failure_keeps_payslip(client, db, users, headers, broken_activity_log):
    body = {
        "employee_id": users["employee"].id,
        "payslip_month": "2025-03",
        "employee_name": "Employee",
        "earnings": [{"label": "Basic", "amount": "1000"}],
    }
    resp = client.post("/api/v1/payslips/", json=body, headers=headers("hr"))
    assert resp.status_code == 201, resp.text
    assert client.get(f"/api/v1/payslips/{resp.json()['id']}", headers=headers("hr")).status_code == 200
    assert db.query(ActivityLog).count() == 0


# ===== Đổi manager giữa các request =====
def test_manager_change_applies_on_next_request(client, db, users, headers):
    leave = apply_leave(client, headers("employee"))
    payslip = client.post("/api/v1/payslips/", json={
        "employee_id": users["employee"].id,
        "payslip_month": "2025-03",
        "employee_name": "Employee",
        "earnings": [{"label": "Basic", "amount": "1000"}],
    }, headers=headers("hr")).json()

    assert client.get(f"/api/v1/leaves/{leave['id']}", headers=headers("manager")).status_code == 200
    assert client.get(f"/api/v1/payslips/{payslip['id']}", headers=headers("manager")).status_code == 200
    assert client.get(f"/api/v1/payslips/{payslip['id']}", headers=headers("manager2")).status_code == 403

    # chuyển employee sang team manager2, token cũ giữ nguyên
    users["employee"].manager_id = users["manager2"].id
    db.commit()

    assert client.get(f"/api/v1/leaves/{leave['id']}", headers=headers("manager")).status_code == 403
    assert client.post(f"/api/v1/leaves/{leave['id']}/approve", json={"status": "approved"},
                       headers=headers("manager")).status_code == 403
    assert client.get(f"/api/v1/payslips/{payslip['id']}", headers=headers("manager")).status_code == 403

    assert client.get(f"/api/v1/payslips/{payslip['id']}", headers=headers("manager2")).status_code == 200
    resp = client.post(f"/api/v1/leaves/{leave['id']}/approve", json={"status": "approved"},
                       headers=headers("manager2"))
    assert resp.status_code == 200
    assert resp.json()["approved_by"] == users["manager2"].id
