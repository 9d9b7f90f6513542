from decimal import Decimal


def new_employee(**overrides):
    body = {
        "name": "New Hire",
        "email": "New.Hire@Example.com",
        "password": "welcome1",
        "role": "Frontend Developer",
        "department": "Engineering",
        "salary": "45000.00",
    }
    body.update(overrides)
    return body


def test_hr_creates_employee_and_can_log_in(client, users, headers):
    resp = client.post("/api/v1/employees/", json=new_employee(manager_id=users["manager"].id),
                       headers=headers("hr"))
    assert resp.status_code == 201, resp.text
    created = resp.json()
    assert created["email"] == "new.hire@example.com"
    assert Decimal(created["salary"]) == Decimal("45000")

    login = client.post("/api/v1/auth/login", json={"email": "new.hire@example.com", "password": "welcome1"})
    assert login.status_code == 200
    assert login.json()["user"]["role"] == "Frontend Developer"


def test_create_rejections(client, users, headers):
    assert client.post("/api/v1/employees/", json=new_employee(), headers=headers("manager")).status_code == 403
    assert client.post("/api/v1/employees/", json=new_employee(email="hr@example.com"),
                       headers=headers("hr")).status_code == 409
    assert client.post("/api/v1/employees/", json=new_employee(role="Wizard"),
                       headers=headers("hr")).status_code == 400
    assert client.post("/api/v1/employees/", json=new_employee(password="123"),
                       headers=headers("hr")).status_code == 400
    assert client.post("/api/v1/employees/", json=new_employee(manager_id=9999),
                       headers=headers("hr")).status_code == 400


def test_salary_hidden_from_managers(client, db, users, headers):
    users["employee"].salary = Decimal("30000")
    db.commit()

    as_manager = client.get(f"/api/v1/employees/{users['employee'].id}", headers=headers("manager")).json()
    assert as_manager["salary"] is None
    as_hr = client.get(f"/api/v1/employees/{users['employee'].id}", headers=headers("hr")).json()
    assert Decimal(as_hr["salary"]) == Decimal("30000")


def test_list_scoping(client, users, headers):
    hr_list = client.get("/api/v1/employees/", headers=headers("hr")).json()
    assert users["superadmin"].id not in [e["id"] for e in hr_list]
    assert len(hr_list) == len(users) - 1

    manager_list = client.get("/api/v1/employees/", headers=headers("manager")).json()
    assert sorted(e["id"] for e in manager_list) == sorted([users["employee"].id, users["developer"].id])

    assert client.get("/api/v1/employees/", headers=headers("employee")).status_code == 403


def test_view_scoping(client, users, headers):
    employee_id = users["employee"].id
    assert client.get(f"/api/v1/employees/{employee_id}", headers=headers("employee")).status_code == 200
    assert client.get(f"/api/v1/employees/{employee_id}", headers=headers("manager2")).status_code == 403
    assert client.get(f"/api/v1/employees/{employee_id}", headers=headers("developer")).status_code == 403
    assert client.get("/api/v1/employees/9999", headers=headers("hr")).status_code == 404


def test_self_edit_limited_to_profile_fields(client, users, headers):
    url = f"/api/v1/employees/{users['employee'].id}"
    resp = client.put(url, json={"name": "Renamed", "phone": "123"}, headers=headers("employee"))
    assert resp.status_code == 200
    assert resp.json()["name"] == "Renamed"

    assert client.put(url, json={"salary": "99999"}, headers=headers("employee")).status_code == 403
    assert client.put(url, json={"role": "HR"}, headers=headers("employee")).status_code == 403
    assert client.put(f"/api/v1/employees/{users['developer'].id}", json={"name": "X"},
                      headers=headers("employee")).status_code == 403


def test_reporting_cycles_rejected(client, users, headers):
    # employee -> manager, nên manager không thể báo cáo cho employee
    resp = client.put(f"/api/v1/employees/{users['manager'].id}", json={"manager_id": users["employee"].id},
                      headers=headers("hr"))
    assert resp.status_code == 400

    resp = client.put(f"/api/v1/employees/{users['employee'].id}", json={"manager_id": users["employee"].id},
                      headers=headers("hr"))
    assert resp.status_code == 400

    resp = client.put(f"/api/v1/employees/{users['employee'].id}", json={"manager_id": users["manager2"].id},
                      headers=headers("hr"))
    assert resp.status_code == 200
    assert resp.json()["manager_id"] == users["manager2"].id


def test_own_role_and_account_protected(client, users, headers):
    resp = client.put(f"/api/v1/employees/{users['hr'].id}", json={"role": "Admin"}, headers=headers("hr"))
    assert resp.status_code == 400
    assert client.delete(f"/api/v1/employees/{users['hr'].id}", headers=headers("hr")).status_code == 400


def test_deactivate_blocks_login(client, users, headers):
    resp = client.delete(f"/api/v1/employees/{users['employee'].id}", headers=headers("admin"))
    assert resp.status_code == 200

    login = client.post("/api/v1/auth/login", json={"email": "employee@example.com", "password": "secret123"})
    assert login.status_code == 401
    assert client.get("/api/v1/auth/me", headers=headers("employee")).status_code == 401

    hr_list = client.get("/api/v1/employees/", headers=headers("hr")).json()
    assert users["employee"].id not in [e["id"] for e in hr_list]
