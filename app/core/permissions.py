# app/core/permissions.py
"""
Bảng role và hàm kiểm tra quyền.

Mọi quyết định phân quyền đều đi qua has_permission() với một allow-list
liệt kê rõ ràng. Không có quyền ngầm cho Super Admin: Super Admin chỉ được
phép khi có tên trong allow-list của hành động đó.
"""
from typing import Iterable, Optional, Union

# ===== Role =====
SUPER_ADMIN = "Super Admin"
ADMIN = "Admin"
HR = "HR"
MANAGER = "Manager"
EMPLOYEE = "Employee"

DEVELOPER_ROLES = (
    "Backend Developer",
    "Frontend Developer",
    "AI/ML Developer",
    "App Developer",
)
OPERATIONS_ROLES = (
    "Operations Manager",
    "Operations Executive",
    "Operation Specialist",
    "Operations Intern",
)
DESIGN_CONTENT = "Design & Content Team"
LOGISTICS = "Logistics"
DIGITAL_MARKETING = "Digital Marketing"

ALL_ROLES = (
    SUPER_ADMIN, ADMIN, HR, MANAGER, EMPLOYEE,
    *DEVELOPER_ROLES, *OPERATIONS_ROLES,
    DESIGN_CONTENT, LOGISTICS, DIGITAL_MARKETING,
)


def has_permission(role: Optional[str], allowed_roles: Union[str, Iterable[str]]) -> bool:
    """True khi role nằm trong allowed_roles (so khớp chính xác, phân biệt hoa thường)."""
    if not role:
        return False
    if isinstance(allowed_roles, str):
        allowed_roles = (allowed_roles,)
    return role in tuple(allowed_roles)


# dùng ở guard phía UI, hành vi giống hệt has_permission
has_role_access = has_permission


# ===== Allow-list theo hành động =====
ADMIN_ROLES = (SUPER_ADMIN, ADMIN)
HR_ADMIN_ROLES = (SUPER_ADMIN, ADMIN, HR)
MANAGEMENT_ROLES = (SUPER_ADMIN, ADMIN, HR, MANAGER)
MANAGER_ROLES = (MANAGER,)

# Employee
EMPLOYEE_VIEW_ALL_ROLES = HR_ADMIN_ROLES
EMPLOYEE_LIST_ROLES = MANAGEMENT_ROLES
EMPLOYEE_MUTATE_ROLES = HR_ADMIN_ROLES
SALARY_VIEW_ROLES = HR_ADMIN_ROLES

# Leave
LEAVE_APPROVER_ROLES = HR_ADMIN_ROLES
LEAVE_COMMENT_ROLES = HR_ADMIN_ROLES
LEAVE_ON_BEHALF_ROLES = HR_ADMIN_ROLES

# Task
TASK_VIEW_ALL_ROLES = HR_ADMIN_ROLES
TASK_EDITOR_ROLES = MANAGEMENT_ROLES
TASK_RATER_ROLES = (SUPER_ADMIN, ADMIN, MANAGER)

# Payslip
PAYSLIP_ROLES = MANAGEMENT_ROLES
PAYSLIP_UNRESTRICTED_ROLES = HR_ADMIN_ROLES
PAYSLIP_DELETE_ROLES = ADMIN_ROLES

# KRA / KPI / KRI
KRA_VIEW_ALL_ROLES = HR_ADMIN_ROLES
KRA_MANAGE_ROLES = ADMIN_ROLES
METRIC_CALCULATE_ROLES = (SUPER_ADMIN, ADMIN, MANAGER)
METRIC_VIEW_ROLES = MANAGEMENT_ROLES
METRIC_MANAGE_ROLES = ADMIN_ROLES

# Menu
MENU_ADMIN_ROLES = ADMIN_ROLES

# Document / attendance
DOCUMENT_MANAGE_ROLES = HR_ADMIN_ROLES
ATTENDANCE_VIEW_ALL_ROLES = HR_ADMIN_ROLES

# Work log / đánh giá nhân viên
WORK_LOG_VIEW_ALL_ROLES = HR_ADMIN_ROLES
EMPLOYEE_RATING_ROLES = MANAGEMENT_ROLES
EMPLOYEE_RATING_VIEW_ALL_ROLES = HR_ADMIN_ROLES
