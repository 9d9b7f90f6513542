from decimal import Decimal

import pytest

from app.services.kra_service import performance_category


@pytest.fixture
def kras(client, headers):
    """Two active KRAs for the Employee role (60% + 40%) and one for Backend Developer."""
    created = {}
    for key, role, number, weight in [
        ("quality", "Employee", 1, "60"),
        ("delivery", "Employee", 2, "40"),
        ("code", "Backend Developer", 1, "100"),
    ]:
        resp = client.post("/api/v1/kra/definitions",
                           json={"role": role, "kra_number": number, "kra_name": key.title(),
                                 "weight_percentage": weight},
                           headers=headers("admin"))
        assert resp.status_code == 201, resp.text
        created[key] = resp.json()["id"]
    return created


def submit(client, auth, user_id, ratings, period_key="2025-03"):
    return client.post(
        "/api/v1/kra/submissions",
        json={"user_id": user_id, "period_type": "monthly", "period_key": period_key,
              "submissions": [{"kra_id": k, "rating": r} for k, r in ratings]},
        headers=auth,
    )


@pytest.mark.parametrize("score, label", [
    ("100", "Outstanding"), ("90", "Outstanding"), ("89.99", "Very Good"), ("75", "Very Good"),
    ("60", "Good"), ("50", "Needs Improvement"), ("49.99", "Poor"), ("0", "Poor"),
])
def test_performance_bands(score, label):
    assert performance_category(Decimal(score)) == label


def test_manager_submits_and_score_is_weighted(client, users, headers, kras):
    resp = submit(client, headers("manager"), users["employee"].id, [(kras["quality"], 5), (kras["delivery"], 3)])
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert len(body["submissions"]) == 2
    assert Decimal(body["score"]["total_score"]) == Decimal("84")
    assert body["score"]["performance_category"] == "Very Good"
    assert all(s["submitted_by"] == users["manager"].id for s in body["submissions"])


def test_resubmission_updates_in_place(client, users, headers, kras):
    first = submit(client, headers("employee"), None, [(kras["quality"], 2)]).json()
    second = submit(client, headers("employee"), None, [(kras["quality"], 4)]).json()

    assert [s["id"] for s in first["submissions"]] == [s["id"] for s in second["submissions"]]
    assert second["submissions"][0]["rating"] == 4
    assert Decimal(second["score"]["total_score"]) == Decimal("48")

    listed = client.get("/api/v1/kra/submissions", headers=headers("employee")).json()
    assert len(listed) == 1


@pytest.mark.parametrize("bad", [0, 6, -1, "4", 3.5, True, None])
def test_rating_out_of_range_rejected(client, users, headers, kras, bad):
    resp = submit(client, headers("manager"), users["employee"].id, [(kras["quality"], bad)])
    assert resp.status_code == 400


@pytest.mark.parametrize("good", [1, 2, 3, 4, 5])
def test_rating_bounds_accepted(client, users, headers, kras, good):
    resp = submit(client, headers("manager"), users["employee"].id, [(kras["quality"], good)])
    assert resp.status_code == 200


def test_invalid_batch_writes_nothing(client, users, headers, kras):
    resp = submit(client, headers("manager"), users["employee"].id, [(kras["quality"], 5), (kras["delivery"], 9)])
    assert resp.status_code == 400

    listed = client.get(f"/api/v1/kra/submissions?user_id={users['employee'].id}", headers=headers("manager"))
    assert listed.json() == []
    scores = client.get(f"/api/v1/kra/scores?user_id={users['employee'].id}", headers=headers("manager"))
    assert scores.json() == []


def test_kra_of_other_role_and_duplicates_rejected(client, users, headers, kras):
    resp = submit(client, headers("manager"), users["employee"].id, [(kras["code"], 4)])
    assert resp.status_code == 400

    resp = submit(client, headers("manager"), users["employee"].id, [(kras["quality"], 4), (kras["quality"], 5)])
    assert resp.status_code == 400


def test_period_key_must_match_type(client, users, headers, kras):
    resp = submit(client, headers("employee"), None, [(kras["quality"], 4)], period_key="2025-Q1")
    assert resp.status_code == 400


def test_only_self_or_manager_can_submit(client, users, headers, kras):
    assert submit(client, headers("manager2"), users["employee"].id, [(kras["quality"], 4)]).status_code == 403
    assert submit(client, headers("employee2"), users["employee"].id, [(kras["quality"], 4)]).status_code == 403


def test_viewing_scores_is_scoped(client, users, headers, kras):
    submit(client, headers("manager"), users["employee"].id, [(kras["quality"], 4)])
    url = f"/api/v1/kra/scores?user_id={users['employee'].id}"

    assert len(client.get(url, headers=headers("hr")).json()) == 1
    assert client.get(url, headers=headers("manager2")).status_code == 403
    assert client.get(url, headers=headers("employee2")).status_code == 403


def test_definitions_managed_by_admins(client, users, headers, kras):
    resp = client.post("/api/v1/kra/definitions",
                       json={"role": "Employee", "kra_number": 3, "kra_name": "X", "weight_percentage": "10"},
                       headers=headers("hr"))
    assert resp.status_code == 403

    resp = client.post("/api/v1/kra/definitions",
                       json={"role": "Employee", "kra_number": 1, "kra_name": "Dup", "weight_percentage": "10"},
                       headers=headers("admin"))
    assert resp.status_code == 409

    assert client.delete(f"/api/v1/kra/definitions/{kras['delivery']}", headers=headers("admin")).status_code == 200
    listed = client.get("/api/v1/kra/definitions?role=Employee", headers=headers("employee")).json()
    assert [d["id"] for d in listed] == [kras["quality"]]

    # inactive KRA can no longer be rated
    resp = submit(client, headers("manager"), users["employee"].id, [(kras["delivery"], 4)])
    assert resp.status_code == 400
