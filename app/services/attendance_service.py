# app/services/attendance_service.py
import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from app.api.deps import Principal
from app.core import permissions as perms
from app.core.config import settings
from app.core.errors import ConflictError, Forbidden, ValidationError
from app.models.models import Attendance
from app.services import guards

logger = logging.getLogger("attendance")


class AttendanceService:

    def sign_in(self, db: Session, actor: Principal, now: Optional[datetime] = None) -> Attendance:
        """
        Chấm công vào:
        - Mỗi nhân viên 1 bản ghi / ngày
        - Sau WORK_START_TIME -> late, ngược lại present
        """
        now = now or datetime.now()
        work_date = now.date()

        attendance = db.query(Attendance).filter(
            Attendance.user_id == actor.id,
            Attendance.date == work_date,
        ).first()
        if attendance:
            raise ConflictError("Already signed in today")

        status = "late" if now.time() > settings.get_work_start_time() else "present"
        try:
            attendance = Attendance(
                user_id=actor.id,
                date=work_date,
                login_time=now,
                total_hours=Decimal("0"),
                status=status,
            )
            db.add(attendance)
            db.commit()
            db.refresh(attendance)
        except Exception:
            db.rollback()
            raise
        logger.info(f"[ATTENDANCE] user={actor.id} signed in {work_date} at {now.time()} ({status})")
        return attendance

    def sign_out(self, db: Session, actor: Principal, now: Optional[datetime] = None) -> Attendance:
        now = now or datetime.now()

        attendance = db.query(Attendance).filter(
            Attendance.user_id == actor.id,
            Attendance.date == now.date(),
        ).first()
        if not attendance or not attendance.login_time:
            raise ValidationError("You have not signed in today")

        # Tính số giờ làm
        seconds = max((now - attendance.login_time).total_seconds(), 0)
        hours = (Decimal(seconds) / Decimal(3600)).quantize(Decimal("0.01"), ROUND_HALF_UP)

        try:
            attendance.logout_time = now
            attendance.total_hours = hours
            db.commit()
            db.refresh(attendance)
        except Exception:
            db.rollback()
            raise
        logger.info(f"[ATTENDANCE] user={actor.id} signed out {now.date()} after {hours}h")
        return attendance

    def list_records(self, db: Session, actor: Principal, user_id: Optional[int] = None,
                     start: Optional[date] = None, end: Optional[date] = None,
                     all_users: bool = False) -> List[Attendance]:
        query = db.query(Attendance)

        if all_users:
            if not perms.has_permission(actor.role, perms.ATTENDANCE_VIEW_ALL_ROLES):
                raise Forbidden("Forbidden")
        else:
            target_id = user_id or actor.id
            if not guards.can_view_employee(db, actor, target_id):
                raise Forbidden("You cannot view attendance of this employee")
            query = query.filter(Attendance.user_id == target_id)

        if start:
            query = query.filter(Attendance.date >= start)
        if end:
            query = query.filter(Attendance.date <= end)
        return query.order_by(Attendance.date.desc(), Attendance.user_id).all()

attendance_service = AttendanceService()
