import pytest

from app.core import permissions as perms
from app.core.permissions import ALL_ROLES, has_permission, has_role_access

ALLOW_LISTS = [
    perms.ADMIN_ROLES,
    perms.HR_ADMIN_ROLES,
    perms.MANAGEMENT_ROLES,
    perms.TASK_RATER_ROLES,
    perms.METRIC_CALCULATE_ROLES,
    perms.DEVELOPER_ROLES,
    (),
]


@pytest.mark.parametrize("allowed", ALLOW_LISTS)
def test_has_permission_is_exact_membership(allowed):
    for role in ALL_ROLES:
        assert has_permission(role, allowed) == (role in allowed)
        assert has_role_access(role, allowed) == has_permission(role, allowed)


def test_no_role_is_never_allowed():
    assert has_permission(None, ALL_ROLES) is False
    assert has_permission("", ALL_ROLES) is False
    assert has_role_access(None, ALL_ROLES) is False


def test_single_string_allow_list():
    assert has_permission("HR", "HR") is True
    assert has_permission("HR", "HR Manager") is False


def test_no_substring_or_case_folding():
    assert has_permission("Developer", perms.DEVELOPER_ROLES) is False
    assert has_permission("Operations", perms.OPERATIONS_ROLES) is False
    assert has_permission("hr", perms.HR_ADMIN_ROLES) is False
    assert has_permission("Super Admin ", perms.ADMIN_ROLES) is False


def test_super_admin_has_no_implicit_bypass():
    assert has_permission(perms.SUPER_ADMIN, (perms.HR,)) is False
    assert has_permission(perms.SUPER_ADMIN, perms.MANAGER_ROLES) is False


def test_missing_token_is_unauthenticated(client, users):
    resp = client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthenticated"


def test_garbage_token_is_unauthenticated(client, users):
    resp = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_inactive_user_is_unauthenticated(client, db, users, headers):
    auth = headers("employee")
    users["employee"].is_active = False
    db.commit()

    resp = client.get("/api/v1/auth/me", headers=auth)
    assert resp.status_code == 401


def test_role_is_read_fresh_on_every_request(client, db, users, headers):
    auth = headers("employee")
    assert client.get("/api/v1/payslips/", headers=auth).status_code == 403

    # token unchanged, role upgraded in the database
    users["employee"].role = "HR"
    db.commit()
    assert client.get("/api/v1/payslips/", headers=auth).status_code == 200
