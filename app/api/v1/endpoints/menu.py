from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_current_user, require_roles
from app.core import permissions as perms
from app.core.errors import Forbidden, ValidationError
from app.database import get_db
from app.schema import schemas
from app.services.menu_service import menu_service

router = APIRouter()

menu_admin = require_roles(*perms.MENU_ADMIN_ROLES)


# Menu sidebar của người đang đăng nhập
@router.get("/menu")
def read_my_menu(db: Session = Depends(get_db), current: Principal = Depends(get_current_user)):
    return {"items": menu_service.visible_items(db, current.role)}


@router.get("/menu-permissions/check")
def check_menu_permissions(role: Optional[str] = None, db: Session = Depends(get_db),
                           current: Principal = Depends(get_current_user)):
    """
    Quyền menu theo role (mặc định role của chính mình).
    Chỉ Super Admin / Admin được hỏi role khác.
    """
    target_role = role or current.role
    if target_role != current.role and not perms.has_permission(current.role, perms.MENU_ADMIN_ROLES):
        raise Forbidden("Forbidden")
    if target_role not in perms.ALL_ROLES:
        raise ValidationError(f"Unknown role: {target_role}")
    return {"role": target_role, "permissions": menu_service.resolve_permissions(db, target_role)}


@router.get("/menu-permissions")
def read_menu_permissions(db: Session = Depends(get_db), current: Principal = Depends(menu_admin)):
    return menu_service.permission_matrix(db)


@router.post("/menu-permissions")
def update_menu_permissions(payload: schemas.MenuPermissionsUpdate, db: Session = Depends(get_db),
                            current: Principal = Depends(menu_admin)):
    return menu_service.replace_overrides(db, current, payload.permissions)
