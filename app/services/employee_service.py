# app/services/employee_service.py
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.api.deps import Principal
from app.core import permissions as perms
from app.core.errors import ConflictError, Forbidden, NotFound, Unauthenticated, ValidationError
from app.core.security import get_password_hash, verify_password
from app.models.models import User
from app.schema import schemas
from app.services import guards
from app.services.activity_log_service import activity_log_service

logger = logging.getLogger("employee")

MIN_PASSWORD_LENGTH = 6


class EmployeeService:

    # ===== Đăng nhập =====
    def authenticate(self, db: Session, email: str, password: str) -> User:
        user = db.query(User).filter(User.email == email.lower()).first()
        # cùng 1 thông báo cho mọi trường hợp sai
        if not user or not user.is_active or not verify_password(password, user.password):
            logger.info(f"[AUTH] Failed login for {email}")
            raise Unauthenticated("Invalid email or password")
        return user

    # ===== Helper =====
    def _get_or_404(self, db: Session, employee_id: int) -> User:
        user = db.query(User).filter(User.id == employee_id).first()
        if not user:
            raise NotFound("Employee not found")
        return user

    def to_response(self, actor: Principal, user: User) -> schemas.EmployeeResponse:
        data = schemas.EmployeeResponse.model_validate(user)
        if not perms.has_permission(actor.role, perms.SALARY_VIEW_ROLES):
            data.salary = None
        return data

    def _check_password(self, password: str):
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    def _check_role(self, role: str):
        if role not in perms.ALL_ROLES:
            raise ValidationError(f"Unknown role: {role}")

    def _check_manager(self, db: Session, employee_id: Optional[int], manager_id: Optional[int]):
        """manager phải tồn tại và không tạo vòng báo cáo."""
        if manager_id is None:
            return
        if employee_id is not None and manager_id == employee_id:
            raise ValidationError("An employee cannot be their own manager")

        manager = db.query(User).filter(User.id == manager_id).first()
        if not manager:
            raise ValidationError("Manager not found", {"manager_id": manager_id})

        if employee_id is None:
            return
        seen = set()
        current = manager
        while current is not None and current.id not in seen:
            if current.manager_id == employee_id:
                raise ValidationError("Manager change would create a reporting cycle")
            seen.add(current.id)
            current = current.manager

    # ===== Danh sách / chi tiết =====
    def list_employees(self, db: Session, actor: Principal, department: Optional[str] = None,
                       role: Optional[str] = None, include_inactive: bool = False) -> List[User]:
        query = db.query(User).filter(User.role != perms.SUPER_ADMIN)

        if perms.has_permission(actor.role, perms.EMPLOYEE_VIEW_ALL_ROLES):
            pass
        elif perms.has_permission(actor.role, perms.MANAGER_ROLES):
            query = query.filter(User.manager_id == actor.id)
        else:
            raise Forbidden("Forbidden")

        if not include_inactive:
            query = query.filter(User.is_active.is_(True))
        if department:
            query = query.filter(User.department == department)
        if role:
            query = query.filter(User.role == role)
        return query.order_by(User.name, User.id).all()

    def get(self, db: Session, actor: Principal, employee_id: int) -> User:
        user = self._get_or_404(db, employee_id)
        guards.ensure_can_view_employee(db, actor, employee_id)
        return user

    # ===== Tạo / sửa / khoá =====
    def create(self, db: Session, actor: Principal, payload: schemas.EmployeeCreate) -> User:
        if not perms.has_permission(actor.role, perms.EMPLOYEE_MUTATE_ROLES):
            raise Forbidden("You are not allowed to create employees")

        email = payload.email.lower()
        self._check_role(payload.role)
        self._check_password(payload.password)
        if db.query(User.id).filter(User.email == email).first():
            raise ConflictError("Email already exists")
        self._check_manager(db, None, payload.manager_id)

        try:
            user = User(
                name=payload.name.strip(),
                email=email,
                password=get_password_hash(payload.password),
                role=payload.role,
                department=payload.department,
                designation=payload.designation,
                phone=payload.phone,
                joining_date=payload.joining_date,
                salary=payload.salary,
                manager_id=payload.manager_id,
                is_active=True,
            )
            db.add(user)
            db.commit()
            db.refresh(user)
        except Exception:
            db.rollback()
            raise

        logger.info(f"[EMPLOYEE] #{user.id} {user.email} ({user.role}) created by user={actor.id}")
        activity_log_service.record(actor.id, "create", "employees", f"Employee #{user.id} {user.email}")
        return user

    def update(self, db: Session, actor: Principal, employee_id: int, payload: schemas.EmployeeUpdate) -> User:
        user = self._get_or_404(db, employee_id)
        data = payload.model_dump(exclude_unset=True)
        guards.ensure_can_edit_employee(actor, employee_id, data.keys())

        if "role" in data and data["role"] is not None:
            self._check_role(data["role"])
            if employee_id == actor.id and data["role"] != user.role:
                raise ValidationError("You cannot change your own role")
        if "email" in data and data["email"] is not None:
            data["email"] = data["email"].lower()
            taken = db.query(User.id).filter(User.email == data["email"], User.id != employee_id).first()
            if taken:
                raise ConflictError("Email already exists")
        if "manager_id" in data:
            self._check_manager(db, employee_id, data["manager_id"])
        if data.get("is_active") is False and employee_id == actor.id:
            raise ValidationError("You cannot deactivate your own account")
        if "password" in data:
            password = data.pop("password")
            if password is not None:
                self._check_password(password)
                data["password"] = get_password_hash(password)

        try:
            for field, value in data.items():
                if value is None and field in ("name", "email", "role", "is_active", "password"):
                    continue
                setattr(user, field, value)
            db.commit()
            db.refresh(user)
        except Exception:
            db.rollback()
            raise

        activity_log_service.record(actor.id, "update", "employees",
                                    f"Employee #{employee_id} fields={','.join(sorted(data.keys()))}")
        return user

    def deactivate(self, db: Session, actor: Principal, employee_id: int) -> User:
        if not perms.has_permission(actor.role, perms.EMPLOYEE_MUTATE_ROLES):
            raise Forbidden("You are not allowed to delete employees")
        if employee_id == actor.id:
            raise ValidationError("You cannot delete your own account")
        user = self._get_or_404(db, employee_id)

        try:
            user.is_active = False
            db.commit()
            db.refresh(user)
        except Exception:
            db.rollback()
            raise

        logger.info(f"[EMPLOYEE] #{employee_id} deactivated by user={actor.id}")
        activity_log_service.record(actor.id, "deactivate", "employees", f"Employee #{employee_id}")
        return user

employee_service = EmployeeService()
