# app/services/employee_rating_service.py
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.api.deps import Principal
from app.core import permissions as perms
from app.core.errors import Forbidden, NotFound, ValidationError
from app.models.models import EmployeeRating, User
from app.schema import schemas
from app.services import guards
from app.services.activity_log_service import activity_log_service

logger = logging.getLogger("employee_rating")

CRITERIA = ("workplace_behaviour", "discipline", "innovations", "punctuality", "critical_task_delivery")


def _check_score(name: str, value) -> int:
    # bool là int trong Python, loại ra
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationError(f"{name} must be an integer between 1 and 5")
    return value


class EmployeeRatingService:

    def list_ratings(self, db: Session, actor: Principal, employee_id: Optional[int] = None,
                     period: Optional[str] = None) -> List[EmployeeRating]:
        """Super Admin / Admin / HR thấy tất cả, Manager chỉ thấy đánh giá của team trực tiếp."""
        if not perms.has_permission(actor.role, perms.EMPLOYEE_RATING_ROLES):
            raise Forbidden("Forbidden")

        query = db.query(EmployeeRating).join(User, EmployeeRating.employee_id == User.id)
        if not perms.has_permission(actor.role, perms.EMPLOYEE_RATING_VIEW_ALL_ROLES):
            query = query.filter(User.manager_id == actor.id)
        if employee_id:
            query = query.filter(EmployeeRating.employee_id == employee_id)
        if period:
            query = query.filter(EmployeeRating.rating_period == period)
        return query.order_by(EmployeeRating.created_at.desc(), EmployeeRating.id.desc()).all()

    def submit(self, db: Session, actor: Principal, payload: schemas.EmployeeRatingCreate) -> EmployeeRating:
        if not perms.has_permission(actor.role, perms.EMPLOYEE_RATING_ROLES):
            raise Forbidden("Forbidden")

        scores = {name: _check_score(name, getattr(payload, name)) for name in CRITERIA}
        if payload.employee_id == actor.id:
            raise ValidationError("You cannot rate yourself")

        employee = db.query(User).filter(
            User.id == payload.employee_id,
            User.role != perms.SUPER_ADMIN,
        ).first()
        if not employee:
            raise NotFound("Employee not found")
        if not guards.can_rate_employee(db, actor, employee.id):
            raise Forbidden("You can only rate employees in your team")

        try:
            rating = EmployeeRating(
                employee_id=employee.id,
                rated_by=actor.id,
                comments=payload.comments,
                rating_period=payload.rating_period,
                **scores,
            )
            db.add(rating)
            db.commit()
            db.refresh(rating)
        except Exception:
            db.rollback()
            raise

        logger.info(f"[RATING] #{rating.id} employee={employee.id} by user={actor.id}")
        activity_log_service.record(actor.id, "submit_rating", "employee_ratings",
                                    f"Rating for {employee.name} (ID: {employee.id})")
        return rating

employee_rating_service = EmployeeRatingService()
