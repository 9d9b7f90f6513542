import pytest


@pytest.fixture
def task(client, users, headers):
    """Task created by the manager, assigned to employee and developer, moved to in_progress."""
    resp = client.post(
        "/api/v1/tasks/",
        json={
            "title": "Ship release",
            "assigned_users": [users["employee"].id, users["developer"].id],
            "subtasks": [{"title": "Build"}, {"title": "Test"}],
        },
        headers=headers("manager"),
    )
    assert resp.status_code == 201, resp.text
    task = resp.json()
    resp = client.post(f"/api/v1/tasks/{task['id']}/status", json={"requested_status": "in_progress"},
                       headers=headers("manager"))
    assert resp.json()["applied"] is True
    return client.get(f"/api/v1/tasks/{task['id']}", headers=headers("manager")).json()


def request_status(client, auth, task_id, status="completed"):
    resp = client.post(f"/api/v1/tasks/{task_id}/status", json={"requested_status": status}, headers=auth)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_assignee_request_then_assigner_approves(client, users, headers, task):
    result = request_status(client, headers("employee"), task["id"])
    assert result["applied"] is False
    assert result["task_status"] == "in_progress"
    req = result["request"]
    assert req["current_status"] == "in_progress"
    assert req["requested_status"] == "completed"
    assert req["status"] == "pending"

    current = client.get(f"/api/v1/tasks/{task['id']}", headers=headers("employee")).json()
    assert current["status"] == "in_progress"

    resp = client.post(f"/api/v1/tasks/{task['id']}/status-requests/{req['id']}/resolve",
                       json={"action": "approve"}, headers=headers("manager"))
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert resp.json()["verified_by"] == users["manager"].id

    current = client.get(f"/api/v1/tasks/{task['id']}", headers=headers("employee")).json()
    assert current["status"] == "completed"


def test_resolving_one_request_leaves_siblings_pending(client, users, headers, task):
    first = request_status(client, headers("employee"), task["id"])["request"]
    second = request_status(client, headers("developer"), task["id"], "cancelled")["request"]

    resp = client.post(f"/api/v1/tasks/{task['id']}/status-requests/{first['id']}/resolve",
                       json={"action": "approve"}, headers=headers("manager"))
    assert resp.status_code == 200

    requests = client.get(f"/api/v1/tasks/{task['id']}/status-requests", headers=headers("manager")).json()
    by_id = {r["id"]: r for r in requests}
    assert by_id[first["id"]]["status"] == "approved"
    assert by_id[second["id"]]["status"] == "pending"


def test_resolved_request_cannot_be_resolved_again(client, users, headers, task):
    req = request_status(client, headers("employee"), task["id"])["request"]
    url = f"/api/v1/tasks/{task['id']}/status-requests/{req['id']}/resolve"

    assert client.post(url, json={"action": "reject"}, headers=headers("manager")).status_code == 200
    resp = client.post(url, json={"action": "approve"}, headers=headers("hr"))
    assert resp.status_code == 409

    current = client.get(f"/api/v1/tasks/{task['id']}", headers=headers("manager")).json()
    assert current["status"] == "in_progress"


def test_assignee_cannot_resolve(client, users, headers, task):
    req = request_status(client, headers("employee"), task["id"])["request"]
    resp = client.post(f"/api/v1/tasks/{task['id']}/status-requests/{req['id']}/resolve",
                       json={"action": "approve"}, headers=headers("developer"))
    assert resp.status_code == 403


def test_reassign_replaces_requester(client, users, headers, task):
    req = request_status(client, headers("employee"), task["id"])["request"]
    resp = client.post(
        f"/api/v1/tasks/{task['id']}/status-requests/{req['id']}/resolve",
        json={"action": "reassign", "reassigned_to": users["employee2"].id, "comment": "Handing over"},
        headers=headers("manager"),
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "reassigned"
    assert resp.json()["reassigned_to"] == users["employee2"].id

    current = client.get(f"/api/v1/tasks/{task['id']}", headers=headers("manager")).json()
    assert sorted(current["assigned_user_ids"]) == sorted([users["developer"].id, users["employee2"].id])
    assert current["status"] == "in_progress"


def test_reassign_requires_target(client, users, headers, task):
    req = request_status(client, headers("employee"), task["id"])["request"]
    resp = client.post(f"/api/v1/tasks/{task['id']}/status-requests/{req['id']}/resolve",
                       json={"action": "reassign"}, headers=headers("manager"))
    assert resp.status_code == 400


def test_status_change_validation(client, users, headers, task):
    resp = client.post(f"/api/v1/tasks/{task['id']}/status", json={"requested_status": "done"},
                       headers=headers("employee"))
    assert resp.status_code == 400

    resp = client.post(f"/api/v1/tasks/{task['id']}/status", json={"requested_status": "in_progress"},
                       headers=headers("employee"))
    assert resp.status_code == 400

    # not assigned, not an editor
    resp = client.post(f"/api/v1/tasks/{task['id']}/status", json={"requested_status": "completed"},
                       headers=headers("employee2"))
    assert resp.status_code == 403


def test_task_visibility(client, users, headers, task):
    assert client.get(f"/api/v1/tasks/{task['id']}", headers=headers("developer")).status_code == 200
    assert client.get(f"/api/v1/tasks/{task['id']}", headers=headers("hr")).status_code == 200
    assert client.get(f"/api/v1/tasks/{task['id']}", headers=headers("employee2")).status_code == 403
    assert client.get(f"/api/v1/tasks/{task['id']}", headers=headers("manager2")).status_code == 403

    assert [t["id"] for t in client.get("/api/v1/tasks/", headers=headers("employee")).json()] == [task["id"]]
    assert client.get("/api/v1/tasks/", headers=headers("employee2")).json() == []
    assert client.get("/api/v1/tasks/", headers=headers("manager2")).json() == []


def test_only_editors_create_update_delete(client, users, headers, task):
    resp = client.post("/api/v1/tasks/", json={"title": "Nope"}, headers=headers("employee"))
    assert resp.status_code == 403

    resp = client.put(f"/api/v1/tasks/{task['id']}", json={"title": "Renamed"}, headers=headers("employee"))
    assert resp.status_code == 403

    resp = client.put(f"/api/v1/tasks/{task['id']}", json={"title": "Renamed", "priority": "high"},
                      headers=headers("manager"))
    assert resp.status_code == 200
    assert resp.json()["title"] == "Renamed"
    assert resp.json()["priority"] == "high"

    assert client.delete(f"/api/v1/tasks/{task['id']}", headers=headers("manager2")).status_code == 403
    assert client.delete(f"/api/v1/tasks/{task['id']}", headers=headers("admin")).status_code == 200
    assert client.get(f"/api/v1/tasks/{task['id']}", headers=headers("admin")).status_code == 404


def test_past_deadline_rejected(client, users, headers):
    resp = client.post("/api/v1/tasks/", json={"title": "Late", "deadline": "2000-01-01T00:00:00"},
                       headers=headers("manager"))
    assert resp.status_code == 400


def test_subtasks_drive_progress_and_completion(client, users, headers, task):
    build, test = task["subtasks"]
    url = f"/api/v1/tasks/{task['id']}/subtasks"

    resp = client.put(f"{url}/{build['id']}", json={"progress": 50, "status": "in_progress"},
                      headers=headers("employee"))
    assert resp.status_code == 200
    assert resp.json()["progress"] == 25
    assert resp.json()["status"] == "in_progress"

    client.put(f"{url}/{build['id']}", json={"status": "completed"}, headers=headers("employee"))
    resp = client.put(f"{url}/{test['id']}", json={"status": "completed"}, headers=headers("developer"))
    assert resp.json()["progress"] == 100
    assert resp.json()["status"] == "completed"


def test_subtask_completion_keeps_cancelled_task(client, users, headers, task):
    request_status(client, headers("manager"), task["id"], "cancelled")
    url = f"/api/v1/tasks/{task['id']}/subtasks"
    for sub in task["subtasks"]:
        resp = client.put(f"{url}/{sub['id']}", json={"status": "completed"}, headers=headers("manager"))
    assert resp.json()["progress"] == 100
    assert resp.json()["status"] == "cancelled"


def test_subtask_update_requires_assignee_or_editor(client, users, headers, task):
    sub = task["subtasks"][0]
    resp = client.put(f"/api/v1/tasks/{task['id']}/subtasks/{sub['id']}", json={"progress": 10},
                      headers=headers("employee2"))
    assert resp.status_code == 403


def test_comments_and_ratings(client, users, headers, task):
    resp = client.post(f"/api/v1/tasks/{task['id']}/comments", json={"comment": "On it"},
                       headers=headers("employee"))
    assert resp.status_code == 201
    assert client.post(f"/api/v1/tasks/{task['id']}/comments", json={"comment": "x"},
                       headers=headers("employee2")).status_code == 403

    rating = {"user_id": users["employee"].id, "rating": 4}
    assert client.post(f"/api/v1/tasks/{task['id']}/ratings", json=rating,
                       headers=headers("hr")).status_code == 403
    first = client.post(f"/api/v1/tasks/{task['id']}/ratings", json=rating, headers=headers("manager")).json()
    second = client.post(f"/api/v1/tasks/{task['id']}/ratings", json={**rating, "rating": 5},
                         headers=headers("manager")).json()
    assert first["id"] == second["id"]
    assert second["rating"] == 5

    resp = client.post(f"/api/v1/tasks/{task['id']}/ratings", json={**rating, "rating": 6},
                       headers=headers("manager"))
    assert resp.status_code == 400


def test_status_requests_route_creates_pending_request(client, users, headers, task):
    resp = client.post(f"/api/v1/tasks/{task['id']}/status-requests",
                       json={"requested_status": "completed", "reason": "Done on my side"},
                       headers=headers("developer"))
    assert resp.status_code == 200
    assert resp.json()["applied"] is False
    assert resp.json()["request"]["requested_by"] == users["developer"].id

    requests = client.get(f"/api/v1/tasks/{task['id']}/status-requests", headers=headers("manager")).json()
    assert [r["status"] for r in requests] == ["pending"]


def test_assignee_submits_report_once(client, users, headers, task):
    url = f"/api/v1/tasks/{task['id']}/reports"
    body = {"report_text": "Released v1.2", "working_links": ["https://git.example.com/pr/12"]}

    resp = client.post(url, json=body, headers=headers("employee"))
    assert resp.status_code == 201, resp.text
    report = resp.json()
    assert report["user_id"] == users["employee"].id
    assert report["working_links"] == ["https://git.example.com/pr/12"]

    # đã nộp thì không nộp lại / sửa được
    again = client.post(url, json={"report_text": "Changed my mind"}, headers=headers("employee"))
    assert again.status_code == 409

    detail = client.get(f"/api/v1/tasks/{task['id']}", headers=headers("manager")).json()
    assert [r["report_text"] for r in detail["reports"]] == ["Released v1.2"]
    listed = client.get(url, headers=headers("manager")).json()
    assert [r["id"] for r in listed] == [report["id"]]


def test_report_requires_assignee_and_text(client, users, headers, task):
    url = f"/api/v1/tasks/{task['id']}/reports"
    assert client.post(url, json={"report_text": "  "}, headers=headers("developer")).status_code == 400
    assert client.post(url, json={"report_text": "Done"}, headers=headers("manager")).status_code == 403
    assert client.post(url, json={"report_text": "Done"}, headers=headers("employee2")).status_code == 403
    assert client.get(url, headers=headers("employee2")).status_code == 403
    assert client.post("/api/v1/tasks/9999/reports", json={"report_text": "Done"},
                       headers=headers("employee")).status_code == 404
