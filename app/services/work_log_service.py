# app/services/work_log_service.py
import logging
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import Principal
from app.core import permissions as perms
from app.core.errors import ConflictError, Forbidden, NotFound
from app.models.models import DailyWorkLog, User
from app.schema import schemas
from app.services import guards
from app.services.activity_log_service import activity_log_service

logger = logging.getLogger("work_log")

LIST_LIMIT = 500


class WorkLogService:

    def _get_accessible(self, db: Session, actor: Principal, log_id: int) -> DailyWorkLog:
        log = db.query(DailyWorkLog).filter(DailyWorkLog.id == log_id).first()
        if not log:
            raise NotFound("Work log not found")
        if not guards.can_access_work_log_of(db, actor, log.user_id):
            raise Forbidden("Forbidden")
        return log

    # ===== Danh sách =====
    def list_logs(self, db: Session, actor: Principal, user_id: Optional[int] = None,
                  start: Optional[date] = None, end: Optional[date] = None,
                  role: Optional[str] = None) -> List[DailyWorkLog]:
        """
        - Có user_id: phải là chính mình, HR/Admin, hoặc Manager trực tiếp
        - Không có user_id: HR/Admin thấy tất cả, Manager thấy của mình + team, còn lại chỉ của mình
        """
        query = db.query(DailyWorkLog)

        if user_id:
            if not guards.can_access_work_log_of(db, actor, user_id):
                raise Forbidden("You can only view work logs of yourself or your team")
            query = query.filter(DailyWorkLog.user_id == user_id)
        elif perms.has_permission(actor.role, perms.WORK_LOG_VIEW_ALL_ROLES):
            pass
        elif perms.has_permission(actor.role, perms.MANAGER_ROLES):
            team = db.query(User.id).filter(User.manager_id == actor.id)
            query = query.filter(or_(DailyWorkLog.user_id == actor.id, DailyWorkLog.user_id.in_(team)))
        else:
            query = query.filter(DailyWorkLog.user_id == actor.id)

        if start:
            query = query.filter(DailyWorkLog.log_date >= start)
        if end:
            query = query.filter(DailyWorkLog.log_date <= end)
        if role:
            query = query.filter(DailyWorkLog.role == role)

        return query.order_by(DailyWorkLog.log_date.desc(), DailyWorkLog.id.desc()).limit(LIST_LIMIT).all()

    def get(self, db: Session, actor: Principal, log_id: int) -> DailyWorkLog:
        return self._get_accessible(db, actor, log_id)

    # ===== Ghi log (upsert theo user + ngày) =====
    def upsert(self, db: Session, actor: Principal, payload: schemas.WorkLogCreate) -> Tuple[DailyWorkLog, bool]:
        """Trả về (log, created). Đã có log cùng ngày thì ghi đè field_data / notes."""
        target_id = payload.user_id or actor.id
        if not guards.can_access_work_log_of(db, actor, target_id):
            raise Forbidden("You can only write work logs for yourself or your team")

        target = db.query(User).filter(User.id == target_id, User.is_active.is_(True)).first()
        if not target:
            raise NotFound("User not found")

        log = db.query(DailyWorkLog).filter(
            DailyWorkLog.user_id == target_id,
            DailyWorkLog.log_date == payload.log_date,
        ).first()
        created = log is None
        try:
            if created:
                log = DailyWorkLog(user_id=target_id, log_date=payload.log_date)
                db.add(log)
            log.role = target.role
            log.field_data = payload.field_data
            log.notes = payload.notes or None
            db.commit()
            db.refresh(log)
        except IntegrityError:
            # request khác vừa tạo log cùng ngày
            db.rollback()
            raise ConflictError("Work log for this date was just created, retry to update it")
        except Exception:
            db.rollback()
            raise

        logger.info(f"[WORK_LOG] #{log.id} {'created' if created else 'updated'} "
                    f"for user={target_id} date={payload.log_date} by user={actor.id}")
        if created:
            activity_log_service.record(actor.id, "create", "work_logs", f"Work log {payload.log_date} user {target_id}")
        return log, created

    def update(self, db: Session, actor: Principal, log_id: int, payload: schemas.WorkLogUpdate) -> DailyWorkLog:
        log = self._get_accessible(db, actor, log_id)
        try:
            log.field_data = payload.field_data
            log.notes = payload.notes or None
            db.commit()
            db.refresh(log)
        except Exception:
            db.rollback()
            raise
        return log

    def delete(self, db: Session, actor: Principal, log_id: int) -> None:
        log = self._get_accessible(db, actor, log_id)
        try:
            db.delete(log)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(f"[WORK_LOG] #{log_id} deleted by user={actor.id}")
        activity_log_service.record(actor.id, "delete", "work_logs", f"Work log #{log_id}")

work_log_service = WorkLogService()
