# app/services/guards.py
"""
Guard phân quyền theo từng loại entity, đặt trên has_permission().

Quy tắc chung: quyền của Manager đối với hồ sơ của người khác luôn được
kiểm tra bằng target.manager_id == manager.id, đọc lại từ DB ở mỗi
request (không cache), vì sơ đồ báo cáo có thể thay đổi giữa các request.

Hàm can_* trả về bool, hàm ensure_* raise Forbidden.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.api.deps import Principal
from app.core import permissions as perms
from app.core.errors import Forbidden
from app.models import models

logger = logging.getLogger("guards")


def _deny(actor: Principal, what: str, message: str = "Forbidden"):
    logger.info(f"[GUARD] Denied {what} for user={actor.id} role={actor.role!r}")
    raise Forbidden(message)


def is_manager_of(db: Session, actor: Principal, user_id: Optional[int]) -> bool:
    """Manager có phải quản lý trực tiếp của user_id không (đọc mới từ DB)."""
    if user_id is None or not perms.has_permission(actor.role, perms.MANAGER_ROLES):
        return False
    manager_id = db.query(models.User.manager_id).filter(models.User.id == user_id).scalar()
    return manager_id is not None and manager_id == actor.id


def direct_report_ids(db: Session, actor: Principal) -> list:
    rows = db.query(models.User.id).filter(models.User.manager_id == actor.id).all()
    return [r[0] for r in rows]


# ===== Employee =====
def can_view_employee(db: Session, actor: Principal, employee_id: int) -> bool:
    if actor.id == employee_id:
        return True
    if perms.has_permission(actor.role, perms.EMPLOYEE_VIEW_ALL_ROLES):
        return True
    return is_manager_of(db, actor, employee_id)


def ensure_can_view_employee(db: Session, actor: Principal, employee_id: int):
    if not can_view_employee(db, actor, employee_id):
        _deny(actor, f"employee view id={employee_id}")


# field nhân viên tự sửa được cho hồ sơ của chính mình
SELF_EDITABLE_FIELDS = {"name", "phone", "profile_photo", "password"}


def ensure_can_edit_employee(actor: Principal, employee_id: int, fields: Iterable[str]):
    if perms.has_permission(actor.role, perms.EMPLOYEE_MUTATE_ROLES):
        return
    if actor.id == employee_id and set(fields) <= SELF_EDITABLE_FIELDS:
        return
    _deny(actor, f"employee edit id={employee_id}")


# ===== Leave =====
def can_view_leave(db: Session, actor: Principal, leave: models.LeaveRequest) -> bool:
    if leave.user_id == actor.id:
        return True
    if perms.has_permission(actor.role, perms.LEAVE_APPROVER_ROLES):
        return True
    return is_manager_of(db, actor, leave.user_id)


def can_decide_leave(db: Session, actor: Principal, leave: models.LeaveRequest) -> bool:
    if perms.has_permission(actor.role, perms.LEAVE_APPROVER_ROLES):
        return True
    return is_manager_of(db, actor, leave.user_id)


def can_comment_leave(db: Session, actor: Principal, leave: models.LeaveRequest) -> bool:
    if perms.has_permission(actor.role, perms.LEAVE_COMMENT_ROLES):
        return True
    return is_manager_of(db, actor, leave.user_id)


def can_apply_leave_for(db: Session, actor: Principal, user_id: int) -> bool:
    if user_id == actor.id:
        return True
    if perms.has_permission(actor.role, perms.LEAVE_ON_BEHALF_ROLES):
        return True
    return is_manager_of(db, actor, user_id)


# ===== Task =====
def can_view_task(db: Session, actor: Principal, task: models.Task) -> bool:
    assigned = task.assigned_user_ids
    if actor.id in assigned:
        return True
    if perms.has_permission(actor.role, perms.TASK_VIEW_ALL_ROLES):
        return True
    if perms.has_permission(actor.role, perms.MANAGER_ROLES):
        if task.created_by == actor.id:
            return True
        # có thành viên team được giao task
        if assigned:
            hit = db.query(models.User.id).filter(
                models.User.id.in_(assigned),
                models.User.manager_id == actor.id,
            ).first()
            return hit is not None
    return False


def can_edit_task(db: Session, actor: Principal, task: models.Task) -> bool:
    """Quyền sửa trực tiếp (kể cả đổi status không cần duyệt)."""
    if not perms.has_permission(actor.role, perms.TASK_EDITOR_ROLES):
        return False
    if perms.has_permission(actor.role, perms.MANAGER_ROLES):
        return can_view_task(db, actor, task)
    return True


def can_resolve_status_request(db: Session, actor: Principal, task: models.Task) -> bool:
    # Manager/HR/Admin hoặc chính người giao task
    if task.created_by == actor.id:
        return True
    return can_edit_task(db, actor, task)


# ===== Payslip =====
def can_access_payslip_of(db: Session, actor: Principal, employee_id: int) -> bool:
    if perms.has_permission(actor.role, perms.PAYSLIP_UNRESTRICTED_ROLES):
        return True
    if perms.has_permission(actor.role, perms.PAYSLIP_ROLES):
        return is_manager_of(db, actor, employee_id)
    return False


# ===== KRA =====
def can_view_kra_of(db: Session, actor: Principal, user_id: int) -> bool:
    if user_id == actor.id:
        return True
    if perms.has_permission(actor.role, perms.KRA_VIEW_ALL_ROLES):
        return True
    return is_manager_of(db, actor, user_id)


def can_submit_kra_for(db: Session, actor: Principal, user_id: int) -> bool:
    if user_id == actor.id:
        return True
    return is_manager_of(db, actor, user_id)


# ===== Document =====
def can_view_documents_of(db: Session, actor: Principal, employee_id: int) -> bool:
    if employee_id == actor.id:
        return True
    if perms.has_permission(actor.role, perms.DOCUMENT_MANAGE_ROLES):
        return True
    return is_manager_of(db, actor, employee_id)


# ===== Work log =====
def can_access_work_log_of(db: Session, actor: Principal, user_id: int) -> bool:
    # xem / ghi / sửa / xoá dùng chung 1 quy tắc
    if user_id == actor.id:
        return True
    if perms.has_permission(actor.role, perms.WORK_LOG_VIEW_ALL_ROLES):
        return True
    return is_manager_of(db, actor, user_id)


# ===== Đánh giá nhân viên =====
def can_rate_employee(db: Session, actor: Principal, employee_id: int) -> bool:
    if not perms.has_permission(actor.role, perms.EMPLOYEE_RATING_ROLES):
        return False
    if perms.has_permission(actor.role, perms.EMPLOYEE_RATING_VIEW_ALL_ROLES):
        return True
    return is_manager_of(db, actor, employee_id)
