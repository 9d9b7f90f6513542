# app/services/activity_log_service.py
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import database
from app.models.models import ActivityLog

logger = logging.getLogger("activity")


class ActivityLogService:

    def record(self, user_id: Optional[int], action: str, module: str, details: Optional[str] = None) -> bool:
        """
        Ghi log hoạt động (best-effort).
        Dùng session riêng và chỉ gọi SAU khi transaction chính đã commit,
        lỗi ở đây chỉ log lại chứ không làm hỏng thao tác chính.
        """
        db: Session = database.SessionLocal()
        try:
            db.add(ActivityLog(
                user_id=user_id,
                action=action,
                module=module,
                details=(details or "")[:255],
            ))
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"[ActivityLog] Could not record {module}.{action} for user={user_id}: {e}")
            return False
        finally:
            db.close()

activity_log_service = ActivityLogService()
