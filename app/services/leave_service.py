# app/services/leave_service.py
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.api.deps import Principal
from app.core import permissions as perms
from app.core.errors import ConflictError, Forbidden, NotFound, ValidationError
from app.models.models import LeaveComment, LeaveRequest, LeaveStatusEnum, User
from app.schema import schemas
from app.services import guards
from app.services.activity_log_service import activity_log_service

logger = logging.getLogger("leave")

DECISION_STATUSES = (LeaveStatusEnum.APPROVED.value, LeaveStatusEnum.REJECTED.value)


class LeaveService:

    def _get_or_404(self, db: Session, leave_id: int) -> LeaveRequest:
        leave = db.query(LeaveRequest).filter(LeaveRequest.id == leave_id).first()
        if not leave:
            raise NotFound("Leave request not found")
        return leave

    # ===== Nộp đơn =====
    def apply(self, db: Session, actor: Principal, payload: schemas.LeaveCreate) -> LeaveRequest:
        target_id = payload.user_id or actor.id

        if payload.end_date < payload.start_date:
            raise ValidationError("end_date must not be before start_date")

        if target_id != actor.id:
            target = db.query(User).filter(User.id == target_id, User.is_active.is_(True)).first()
            if not target:
                raise NotFound("Employee not found")
        if not guards.can_apply_leave_for(db, actor, target_id):
            raise Forbidden("You cannot apply leave for this employee")

        try:
            leave = LeaveRequest(
                user_id=target_id,
                leave_type=payload.leave_type,
                start_date=payload.start_date,
                end_date=payload.end_date,
                reason=payload.reason,
                status=LeaveStatusEnum.PENDING,
            )
            db.add(leave)
            db.commit()
            db.refresh(leave)
        except Exception:
            db.rollback()
            raise

        logger.info(f"[LEAVE] #{leave.id} applied for user={target_id} by user={actor.id}")
        activity_log_service.record(actor.id, "apply", "leaves", f"Leave #{leave.id} for user {target_id}")
        return leave

    # ===== Danh sách =====
    def list_for(self, db: Session, actor: Principal, user_id: Optional[int] = None,
                 status: Optional[str] = None) -> List[LeaveRequest]:
        target_id = user_id or actor.id
        if target_id != actor.id and not guards.can_view_employee(db, actor, target_id):
            raise Forbidden("You cannot view leaves of this employee")

        query = db.query(LeaveRequest).filter(LeaveRequest.user_id == target_id)
        if status:
            query = query.filter(LeaveRequest.status == self._parse_status(status))
        return query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc()).all()

    def list_pending(self, db: Session, actor: Principal) -> List[LeaveRequest]:
        """Các đơn đang chờ mà actor có quyền duyệt."""
        query = db.query(LeaveRequest).filter(LeaveRequest.status == LeaveStatusEnum.PENDING)

        if perms.has_permission(actor.role, perms.LEAVE_APPROVER_ROLES):
            pass
        elif perms.has_permission(actor.role, perms.MANAGER_ROLES):
            query = query.join(User, User.id == LeaveRequest.user_id).filter(User.manager_id == actor.id)
        else:
            raise Forbidden("Forbidden")

        return query.order_by(LeaveRequest.created_at.asc(), LeaveRequest.id.asc()).all()

    def get(self, db: Session, actor: Principal, leave_id: int) -> LeaveRequest:
        leave = self._get_or_404(db, leave_id)
        if not guards.can_view_leave(db, actor, leave):
            raise Forbidden("You cannot view this leave request")
        return leave

    # ===== Duyệt / từ chối =====
    def decide(self, db: Session, actor: Principal, leave_id: int, status: str) -> LeaveRequest:
        """
        Thứ tự kiểm tra:
        1. status hợp lệ (400)
        2. đơn tồn tại (404)
        3. actor được xem đơn (403)
        4. đơn đã ở trạng thái cuối (409)
        5. actor được duyệt đơn (403)
        6. UPDATE có điều kiện status='pending' (409 nếu thua race)
        """
        if status not in DECISION_STATUSES:
            raise ValidationError("status must be 'approved' or 'rejected'")

        leave = self._get_or_404(db, leave_id)

        if not guards.can_view_leave(db, actor, leave):
            raise Forbidden("You cannot view this leave request")

        if leave.status != LeaveStatusEnum.PENDING:
            raise ConflictError(f"Leave request already {leave.status.value}")

        if not guards.can_decide_leave(db, actor, leave):
            logger.info(f"[LEAVE] user={actor.id} role={actor.role!r} may not decide leave #{leave_id}")
            raise Forbidden("You are not allowed to approve or reject this leave request")

        try:
            updated = db.query(LeaveRequest).filter(
                LeaveRequest.id == leave_id,
                LeaveRequest.status == LeaveStatusEnum.PENDING,
            ).update(
                {
                    LeaveRequest.status: LeaveStatusEnum(status),
                    LeaveRequest.approved_by: actor.id,
                    LeaveRequest.approved_at: datetime.now(),
                },
                synchronize_session=False,
            )
            if updated == 0:
                db.rollback()
                raise ConflictError("Leave request was already decided")
            db.commit()
        except ConflictError:
            raise
        except Exception:
            db.rollback()
            raise

        db.refresh(leave)
        logger.info(f"[LEAVE] #{leave_id} {status} by user={actor.id}")
        activity_log_service.record(actor.id, status, "leaves", f"Leave #{leave_id}")
        return leave

    # ===== Bình luận =====
    def list_comments(self, db: Session, actor: Principal, leave_id: int) -> List[LeaveComment]:
        leave = self.get(db, actor, leave_id)
        return list(leave.comments)

    def add_comment(self, db: Session, actor: Principal, leave_id: int, text: str) -> LeaveComment:
        if not text or not text.strip():
            raise ValidationError("Comment is required")

        leave = self._get_or_404(db, leave_id)
        if not guards.can_comment_leave(db, actor, leave):
            raise Forbidden("You are not allowed to comment on this leave request")

        try:
            comment = LeaveComment(
                leave_id=leave.id,
                user_id=actor.id,
                role_at_time=actor.role,
                comment=text.strip(),
            )
            db.add(comment)
            db.commit()
            db.refresh(comment)
        except Exception:
            db.rollback()
            raise

        activity_log_service.record(actor.id, "comment", "leaves", f"Leave #{leave.id}")
        return comment

    def _parse_status(self, status: str) -> LeaveStatusEnum:
        try:
            return LeaveStatusEnum(status)
        except ValueError:
            raise ValidationError(f"Unknown leave status: {status}")

leave_service = LeaveService()
