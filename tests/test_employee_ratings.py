import pytest

SCORES = {
    "workplace_behaviour": 4,
    "discipline": 5,
    "innovations": 3,
    "punctuality": 4,
    "critical_task_delivery": 5,
}


def rate(client, auth, employee_id, **overrides):
    body = {"employee_id": employee_id, **SCORES, "rating_period": "2025-Q1", **overrides}
    return client.post("/api/v1/employee-ratings/", json=body, headers=auth)


def test_manager_rates_own_team_only(client, users, headers):
    resp = rate(client, headers("manager"), users["employee"].id, comments="Solid quarter")
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["rated_by"] == users["manager"].id
    assert data["discipline"] == 5

    assert rate(client, headers("manager"), users["employee2"].id).status_code == 403


def test_listing_is_scoped_by_role(client, users, headers):
    rate(client, headers("hr"), users["employee"].id)
    rate(client, headers("hr"), users["developer"].id, rating_period="2025-Q2")
    rate(client, headers("hr"), users["employee2"].id)

    assert len(client.get("/api/v1/employee-ratings/", headers=headers("admin")).json()) == 3

    team = client.get("/api/v1/employee-ratings/", headers=headers("manager")).json()
    assert {r["employee_id"] for r in team} == {users["employee"].id, users["developer"].id}
    other = client.get(f"/api/v1/employee-ratings/?employee_id={users['employee2'].id}",
                       headers=headers("manager")).json()
    assert other == []

    q1 = client.get("/api/v1/employee-ratings/?period=2025-Q1", headers=headers("hr")).json()
    assert {r["employee_id"] for r in q1} == {users["employee"].id, users["employee2"].id}


@pytest.mark.parametrize("name", ["employee", "developer"])
def test_regular_staff_cannot_rate_or_list(client, users, headers, name):
    assert client.get("/api/v1/employee-ratings/", headers=headers(name)).status_code == 403
    assert rate(client, headers(name), users["employee2"].id).status_code == 403


@pytest.mark.parametrize("overrides", [
    {"discipline": 0},
    {"innovations": 6},
    {"punctuality": 3.5},
    {"workplace_behaviour": "5"},
    {"critical_task_delivery": True},
])
def test_scores_must_be_integers_one_to_five(client, users, headers, overrides):
    assert rate(client, headers("hr"), users["employee"].id, **overrides).status_code == 400


def test_cannot_rate_self_or_super_admin(client, users, headers):
    assert rate(client, headers("hr"), users["hr"].id).status_code == 400
    assert rate(client, headers("hr"), users["superadmin"].id).status_code == 404
    assert rate(client, headers("hr"), 9999).status_code == 404
