import pytest

from app.services.menu_service import CATEGORY_ORDER, MENU_ITEMS, dashboard_href


@pytest.mark.parametrize("role, href", [
    ("Super Admin", "/dashboard/admin"),
    ("Admin", "/dashboard/admin"),
    ("HR", "/dashboard/hr"),
    ("Manager", "/dashboard/manager"),
    ("Backend Developer", "/dashboard/developer"),
    ("Employee", "/dashboard"),
    ("Unknown", "/dashboard"),
    (None, "/dashboard"),
])
def test_dashboard_href(role, href):
    assert dashboard_href(role) == href


def menu_keys(client, auth):
    resp = client.get("/api/v1/menu", headers=auth)
    assert resp.status_code == 200
    return [i["key"] for i in resp.json()["items"]]


def test_defaults_per_role(client, users, headers):
    developer = menu_keys(client, headers("developer"))
    assert "myTasks" in developer
    assert "tasks" not in developer
    assert "payslips" not in developer
    assert "dashboard" in developer

    hr = menu_keys(client, headers("hr"))
    assert {"employees", "payslips", "kraScores"} <= set(hr)
    assert "menuPermissions" not in hr

    # Super Admin chỉ có những mục được liệt kê rõ
    sa = menu_keys(client, headers("superadmin"))
    assert "menuPermissions" in sa
    assert "myTasks" not in sa


def test_items_grouped_by_category_and_hrefs_unique(client, users, headers):
    items = client.get("/api/v1/menu", headers=headers("admin")).json()["items"]
    positions = [CATEGORY_ORDER.index(i["category"]) for i in items]
    assert positions == sorted(positions)
    hrefs = [i["href"] for i in items]
    assert len(hrefs) == len(set(hrefs))
    assert items[0]["key"] == "dashboard"
    assert items[0]["href"] == "/dashboard/admin"


def test_same_href_listed_once(client, users, headers):
    resp = client.post("/api/v1/menu-permissions", json={"permissions": {"myTasks": {"Manager": True}}},
                       headers=headers("superadmin"))
    assert resp.status_code == 200

    items = client.get("/api/v1/menu", headers=headers("manager")).json()["items"]
    task_items = [i for i in items if i["href"] == "/dashboard/tasks"]
    assert [i["key"] for i in task_items] == ["tasks"]


def test_overrides_win_over_defaults(client, users, headers):
    body = {"permissions": {"payslips": {"HR": False}, "manageKra": {"HR": True}}}
    resp = client.post("/api/v1/menu-permissions", json=body, headers=headers("admin"))
    assert resp.status_code == 200
    assert resp.json()["permissions"]["payslips"]["HR"] is False
    assert resp.json()["permissions"]["payslips"]["Admin"] is True

    check = client.get("/api/v1/menu-permissions/check", headers=headers("hr")).json()
    assert check["role"] == "HR"
    assert check["permissions"]["payslips"] is False
    assert check["permissions"]["manageKra"] is True

    # lần lưu sau thay toàn bộ override cũ
    client.post("/api/v1/menu-permissions", json={"permissions": {}}, headers=headers("admin"))
    check = client.get("/api/v1/menu-permissions/check", headers=headers("hr")).json()
    assert check["permissions"]["payslips"] is True
    assert check["permissions"]["manageKra"] is False


def test_unknown_keys_or_roles_rejected(client, users, headers):
    resp = client.post("/api/v1/menu-permissions", json={"permissions": {"nope": {"HR": True}}},
                       headers=headers("admin"))
    assert resp.status_code == 400
    resp = client.post("/api/v1/menu-permissions", json={"permissions": {"payslips": {"Wizard": True}}},
                       headers=headers("admin"))
    assert resp.status_code == 400


def test_matrix_and_checks_are_admin_only(client, users, headers):
    assert client.get("/api/v1/menu-permissions", headers=headers("hr")).status_code == 403
    assert client.post("/api/v1/menu-permissions", json={"permissions": {}},
                       headers=headers("manager")).status_code == 403
    assert client.get("/api/v1/menu-permissions/check?role=Admin", headers=headers("hr")).status_code == 403

    matrix = client.get("/api/v1/menu-permissions", headers=headers("superadmin")).json()
    assert set(matrix["permissions"]) == set(MENU_ITEMS)

    resp = client.get("/api/v1/menu-permissions/check?role=HR", headers=headers("admin"))
    assert resp.status_code == 200
    assert resp.json()["permissions"]["employees"] is True
