# app/services/menu_service.py
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.api.deps import Principal
from app.core import permissions as perms
from app.core.errors import ValidationError
from app.models.models import MenuPermission
from app.services.activity_log_service import activity_log_service

logger = logging.getLogger("menu")

ALL = "all"
SA_ADMIN = (perms.SUPER_ADMIN, perms.ADMIN)
SA_ADMIN_HR = (perms.SUPER_ADMIN, perms.ADMIN, perms.HR)
SA_ADMIN_MANAGER = (perms.SUPER_ADMIN, perms.ADMIN, perms.MANAGER)
SA_ADMIN_MANAGER_HR = (perms.SUPER_ADMIN, perms.ADMIN, perms.MANAGER, perms.HR)

CATEGORY_ORDER = (
    "My Workspace",
    "Team",
    "Performance & Goals",
    "HR",
    "Administration",
    "Content Management",
    "Other",
)

# key -> (name, href, category, roles); href None = theo role (dashboard)
MENU_ITEMS = {
    "dashboard": ("Dashboard", None, "My Workspace", (ALL,)),
    "profile": ("Profile", "/dashboard/profile", "My Workspace", (ALL,)),
    "attendancefiles": ("Attendance Files", "/dashboard/attendance-files", "HR", SA_ADMIN_HR),
    "employeeDocuments": ("Employee Documents", "/dashboard/employee-documents", "HR", SA_ADMIN_HR),
    "leaves": ("Leaves", "/dashboard/leaves", "HR", (ALL,)),
    "employees": ("Employees", "/dashboard/employees", "HR", SA_ADMIN_HR),
    "tasks": ("Tasks", "/dashboard/tasks", "My Workspace", SA_ADMIN_MANAGER),
    "myTasks": ("My Tasks", "/dashboard/tasks", "My Workspace",
                perms.DEVELOPER_ROLES + perms.OPERATIONS_ROLES + (perms.DESIGN_CONTENT,)),
    "team": ("Team", "/dashboard/team", "HR", SA_ADMIN_MANAGER),
    "kra": ("Key Result Areas", "/dashboard/kra", "Performance & Goals", (ALL,)),
    "manageKra": ("Manage KRA", "/dashboard/admin/kra", "Performance & Goals", SA_ADMIN),
    "kraScores": ("KRA Scores", "/dashboard/kra/scores", "Performance & Goals", SA_ADMIN_HR),
    "workLogs": ("Daily Work Logs", "/dashboard/work-logs", "My Workspace", (ALL,)),
    "youtube": ("YouTube", "/dashboard/design/youtube", "Content Management",
                (perms.SUPER_ADMIN, perms.ADMIN, perms.DESIGN_CONTENT)),
    "instagram": ("Instagram", "/dashboard/design/instagram", "Content Management",
                  (perms.SUPER_ADMIN, perms.ADMIN, perms.DESIGN_CONTENT)),
    "notifications": ("Notifications", "/dashboard/notifications", "My Workspace", (ALL,)),
    "calendar": ("Calendar", "/dashboard/calendar", "My Workspace", (ALL,)),
    "menuPermissions": ("Menu Permissions Management", "/dashboard/admin/menu-permissions", "Administration",
                        (perms.SUPER_ADMIN,)),
    "topEmployees": ("Top Employees", "/dashboard/top-employees", "Performance & Goals", SA_ADMIN_MANAGER_HR),
    "employeeRatings": ("Employee Ratings", "/dashboard/employee-ratings", "Performance & Goals",
                        SA_ADMIN_MANAGER_HR),
    "payslips": ("Payslips", "/dashboard/payslips", "HR", SA_ADMIN_MANAGER_HR),
    "birthdayManagement": ("Birthday Management", "/dashboard/birthday-management", "HR", SA_ADMIN_HR),
}


def dashboard_href(role: Optional[str]) -> str:
    if perms.has_permission(role, SA_ADMIN):
        return "/dashboard/admin"
    if perms.has_permission(role, perms.HR):
        return "/dashboard/hr"
    if perms.has_permission(role, perms.MANAGER):
        return "/dashboard/manager"
    if perms.has_permission(role, perms.DEVELOPER_ROLES):
        return "/dashboard/developer"
    if perms.has_permission(role, perms.LOGISTICS):
        return "/dashboard/logistics"
    if perms.has_permission(role, perms.DIGITAL_MARKETING):
        return "/dashboard/marketing"
    if perms.has_permission(role, perms.DESIGN_CONTENT):
        return "/dashboard/design"
    if perms.has_permission(role, perms.OPERATIONS_ROLES):
        return "/dashboard/operations"
    return "/dashboard"


def default_allowed(role: Optional[str], item_roles) -> bool:
    if not role:
        return False
    if ALL in item_roles:
        return role in perms.ALL_ROLES
    return perms.has_permission(role, item_roles)


class MenuService:

    def _overrides(self, db: Session, role: Optional[str] = None) -> Dict[str, Dict[str, bool]]:
        query = db.query(MenuPermission)
        if role:
            query = query.filter(MenuPermission.role == role)
        result: Dict[str, Dict[str, bool]] = {}
        for row in query.all():
            result.setdefault(row.menu_key, {})[row.role] = bool(row.is_enabled)
        return result

    def resolve_permissions(self, db: Session, role: str) -> Dict[str, bool]:
        """{menu_key: bool}; override trong DB thắng giá trị mặc định."""
        overrides = self._overrides(db, role)
        resolved = {}
        for key, (_, _, _, item_roles) in MENU_ITEMS.items():
            if key in overrides and role in overrides[key]:
                resolved[key] = overrides[key][role]
            else:
                resolved[key] = default_allowed(role, item_roles)
        return resolved

    def visible_items(self, db: Session, role: str) -> List[dict]:
        allowed = self.resolve_permissions(db, role)
        items = []
        seen_hrefs = set()
        for key, (name, href, category, _) in MENU_ITEMS.items():
            if not allowed.get(key):
                continue
            href = href or dashboard_href(role)
            # "Tasks" và "My Tasks" cùng href -> chỉ giữ mục đầu tiên
            if href in seen_hrefs:
                continue
            seen_hrefs.add(href)
            items.append({"key": key, "name": name, "href": href, "category": category})

        order = {c: i for i, c in enumerate(CATEGORY_ORDER)}
        # sort ổn định: giữ thứ tự khai báo trong từng nhóm
        return sorted(items, key=lambda i: order.get(i["category"], len(order)))

    def permission_matrix(self, db: Session) -> dict:
        overrides = self._overrides(db)
        permissions = {}
        for key, (_, _, _, item_roles) in MENU_ITEMS.items():
            permissions[key] = {}
            for role in perms.ALL_ROLES:
                if role in overrides.get(key, {}):
                    permissions[key][role] = overrides[key][role]
                else:
                    permissions[key][role] = default_allowed(role, item_roles)
        return {
            "menu_items": [{"key": k, "name": v[0]} for k, v in MENU_ITEMS.items()],
            "roles": list(perms.ALL_ROLES),
            "permissions": permissions,
        }

    def replace_overrides(self, db: Session, actor: Principal, permissions: Dict[str, Dict[str, bool]]) -> dict:
        unknown_keys = sorted(k for k in permissions if k not in MENU_ITEMS)
        if unknown_keys:
            raise ValidationError("Unknown menu keys", {"menu_keys": unknown_keys})
        unknown_roles = sorted({r for roles in permissions.values() for r in roles if r not in perms.ALL_ROLES})
        if unknown_roles:
            raise ValidationError("Unknown roles", {"roles": unknown_roles})

        try:
            db.query(MenuPermission).delete(synchronize_session=False)
            for menu_key, role_map in permissions.items():
                for role, enabled in role_map.items():
                    db.add(MenuPermission(menu_key=menu_key, role=role, is_enabled=bool(enabled)))
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"[MENU] overrides replaced by user={actor.id}")
        activity_log_service.record(actor.id, "update_menu_permissions", "settings",
                                    "Updated menu permissions for all roles")
        return self.permission_matrix(db)

menu_service = MenuService()
