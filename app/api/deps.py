# app/api/deps.py
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.errors import Forbidden, Unauthenticated
from app.core.permissions import has_permission
from app.core.security import decode_access_token
from app.database import get_db
from app.models import models

logger = logging.getLogger("auth")

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    id: int
    role: str
    name: str
    email: str


def resolve_principal(db: Session, token: Optional[str]) -> Principal:
    """
    Token -> Principal. Role luôn đọc lại từ DB ở mỗi request,
    không tin role nằm trong token.
    """
    if not token:
        raise Unauthenticated("Unauthorized")

    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        raise Unauthenticated("Invalid or expired token")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid token subject")

    user = db.query(models.User).filter(
        models.User.id == user_id,
        models.User.is_active.is_(True),
    ).first()
    if not user or not user.role:
        raise Unauthenticated("User not active or not found")

    return Principal(id=user.id, role=user.role, name=user.name, email=user.email)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Principal:
    token = credentials.credentials if credentials else None
    return resolve_principal(db, token)


def require_roles(*allowed_roles: str):
    """Dependency: 401 nếu chưa đăng nhập, 403 nếu role không nằm trong allow-list."""
    def dep(user: Principal = Depends(get_current_user)) -> Principal:
        if not has_permission(user.role, allowed_roles):
            logger.info(f"[AUTH] Denied user={user.id} role={user.role!r}")
            raise Forbidden("Forbidden")
        return user
    return dep
