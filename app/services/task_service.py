# app/services/task_service.py
import logging
import math
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import Principal
from app.core import permissions as perms
from app.core.errors import ConflictError, Forbidden, NotFound, ValidationError
from app.models.models import (
    StatusRequestStateEnum,
    Subtask,
    Task,
    TaskAssignment,
    TaskComment,
    TaskRating,
    TaskReport,
    TaskStatusEnum,
    TaskStatusRequest,
    User,
)
from app.schema import schemas
from app.services import guards
from app.services.activity_log_service import activity_log_service

logger = logging.getLogger("task")

TASK_STATUSES = tuple(s.value for s in TaskStatusEnum)
SUBTASK_STATUSES = ("pending", "in_progress", "completed")
RESOLVE_ACTIONS = ("approve", "reject", "reassign")


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    # DB lưu giờ local không kèm timezone
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class TaskService:

    # ===== Helper =====
    def _get_or_404(self, db: Session, task_id: int) -> Task:
        task = db.query(Task).filter(Task.id == task_id).first()
        if not task:
            raise NotFound("Task not found")
        return task

    def _get_viewable(self, db: Session, actor: Principal, task_id: int) -> Task:
        task = self._get_or_404(db, task_id)
        if not guards.can_view_task(db, actor, task):
            raise Forbidden("You cannot view this task")
        return task

    def _get_editable(self, db: Session, actor: Principal, task_id: int) -> Task:
        task = self._get_or_404(db, task_id)
        if not guards.can_edit_task(db, actor, task):
            raise Forbidden("You are not allowed to modify this task")
        return task

    def _check_users_exist(self, db: Session, user_ids: Iterable[int]) -> List[int]:
        ids = sorted(set(user_ids))
        if not ids:
            return ids
        found = {r[0] for r in db.query(User.id).filter(User.id.in_(ids), User.is_active.is_(True)).all()}
        missing = [i for i in ids if i not in found]
        if missing:
            raise ValidationError("Assigned users not found", {"user_ids": missing})
        return ids

    def _parse_status(self, status: str) -> TaskStatusEnum:
        if status not in TASK_STATUSES:
            raise ValidationError(f"Invalid task status: {status}", {"allowed": list(TASK_STATUSES)})
        return TaskStatusEnum(status)

    # ===== CRUD =====
    def create(self, db: Session, actor: Principal, payload: schemas.TaskCreate) -> Task:
        if not perms.has_permission(actor.role, perms.TASK_EDITOR_ROLES):
            raise Forbidden("You are not allowed to create tasks")
        if not payload.title.strip():
            raise ValidationError("Title is required")

        deadline = _naive(payload.deadline)
        if deadline is not None and deadline < datetime.now():
            raise ValidationError("Deadline cannot be in the past")

        assignee_ids = self._check_users_exist(db, payload.assigned_users)

        try:
            task = Task(
                title=payload.title.strip(),
                description=payload.description,
                priority=payload.priority,
                status=TaskStatusEnum.PENDING,
                deadline=deadline,
                progress=0,
                created_by=actor.id,
            )
            task.assignments = [TaskAssignment(user_id=uid) for uid in assignee_ids]
            task.subtasks = [
                Subtask(title=s.title.strip(), description=s.description, status="pending", progress=0)
                for s in payload.subtasks
            ]
            db.add(task)
            db.commit()
            db.refresh(task)
        except Exception:
            db.rollback()
            raise

        logger.info(f"[TASK] #{task.id} created by user={actor.id} assignees={assignee_ids}")
        activity_log_service.record(actor.id, "create", "tasks", f"Task #{task.id}: {task.title}")
        return task

    def list_tasks(self, db: Session, actor: Principal, status: Optional[str] = None,
                   assigned_to: Optional[int] = None, created_by: Optional[int] = None) -> List[Task]:
        query = db.query(Task)

        if perms.has_permission(actor.role, perms.TASK_VIEW_ALL_ROLES):
            pass
        elif perms.has_permission(actor.role, perms.MANAGER_ROLES):
            team_ids = [actor.id] + guards.direct_report_ids(db, actor)
            visible = db.query(TaskAssignment.task_id).filter(TaskAssignment.user_id.in_(team_ids))
            query = query.filter(or_(Task.created_by == actor.id, Task.id.in_(visible)))
        else:
            mine = db.query(TaskAssignment.task_id).filter(TaskAssignment.user_id == actor.id)
            query = query.filter(Task.id.in_(mine))

        if status:
            query = query.filter(Task.status == self._parse_status(status))
        if assigned_to:
            by_user = db.query(TaskAssignment.task_id).filter(TaskAssignment.user_id == assigned_to)
            query = query.filter(Task.id.in_(by_user))
        if created_by:
            query = query.filter(Task.created_by == created_by)

        return query.order_by(Task.created_at.desc(), Task.id.desc()).all()

    def get(self, db: Session, actor: Principal, task_id: int) -> Task:
        return self._get_viewable(db, actor, task_id)

    def update(self, db: Session, actor: Principal, task_id: int, payload: schemas.TaskUpdate) -> Task:
        task = self._get_editable(db, actor, task_id)
        data = payload.model_dump(exclude_unset=True)

        if "title" in data and (data["title"] is None or not data["title"].strip()):
            raise ValidationError("Title is required")
        if data.get("status") is not None:
            data["status"] = self._parse_status(data["status"])
        if data.get("progress") is not None and not 0 <= data["progress"] <= 100:
            raise ValidationError("Progress must be between 0 and 100")
        if "deadline" in data:
            data["deadline"] = _naive(data["deadline"])

        assignee_ids = None
        if data.get("assigned_users") is not None:
            assignee_ids = self._check_users_exist(db, data.pop("assigned_users"))
        data.pop("assigned_users", None)

        try:
            for field, value in data.items():
                if value is None and field in ("title", "priority", "status", "progress"):
                    continue
                setattr(task, field, value.strip() if field == "title" else value)

            if assignee_ids is not None:
                # thay toàn bộ danh sách người được giao, giữ bản ghi cũ nếu trùng user
                current = {a.user_id: a for a in task.assignments}
                task.assignments = [current.get(uid) or TaskAssignment(user_id=uid) for uid in assignee_ids]

            db.commit()
            db.refresh(task)
        except Exception:
            db.rollback()
            raise

        activity_log_service.record(actor.id, "update", "tasks", f"Task #{task.id}")
        return task

    def delete(self, db: Session, actor: Principal, task_id: int) -> None:
        task = self._get_editable(db, actor, task_id)
        try:
            db.delete(task)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"[TASK] #{task_id} deleted by user={actor.id}")
        activity_log_service.record(actor.id, "delete", "tasks", f"Task #{task_id}")

    # ===== Workflow đổi trạng thái =====
    def request_status_change(self, db: Session, actor: Principal, task_id: int,
                              requested_status: str, reason: Optional[str] = None) -> dict:
        """
        - Người có quyền sửa task: đổi status trực tiếp.
        - Người được giao (không có quyền sửa): tạo yêu cầu chờ duyệt, status task giữ nguyên.
        - Còn lại: Forbidden.
        """
        task = self._get_or_404(db, task_id)
        new_status = self._parse_status(requested_status)

        can_edit = guards.can_edit_task(db, actor, task)
        is_assignee = actor.id in task.assigned_user_ids
        if not can_edit and not is_assignee:
            raise Forbidden("You are not allowed to change the status of this task")

        if task.status == new_status:
            raise ValidationError(f"Task is already {new_status.value}")

        if can_edit:
            try:
                task.status = new_status
                db.commit()
                db.refresh(task)
            except Exception:
                db.rollback()
                raise
            logger.info(f"[TASK] #{task.id} status -> {new_status.value} by user={actor.id}")
            activity_log_service.record(actor.id, "status_change", "tasks", f"Task #{task.id} -> {new_status.value}")
            return {"applied": True, "task_status": task.status.value, "request": None}

        try:
            req = TaskStatusRequest(
                task_id=task.id,
                current_status=task.status.value,
                requested_status=new_status.value,
                requested_by=actor.id,
                reason=reason,
                status=StatusRequestStateEnum.PENDING,
            )
            db.add(req)
            db.commit()
            db.refresh(req)
            db.refresh(task)
        except Exception:
            db.rollback()
            raise

        logger.info(f"[TASK] #{task.id} status request #{req.id} {req.current_status} -> {req.requested_status} "
                    f"by user={actor.id}")
        activity_log_service.record(actor.id, "status_request", "tasks", f"Task #{task.id} request #{req.id}")
        return {"applied": False, "task_status": task.status.value, "request": req}

    def list_status_requests(self, db: Session, actor: Principal, task_id: int) -> List[TaskStatusRequest]:
        task = self._get_viewable(db, actor, task_id)
        return list(task.status_requests)

    def resolve_status_request(self, db: Session, actor: Principal, task_id: int, request_id: int,
                               action: str, comment: Optional[str] = None,
                               reassigned_to: Optional[int] = None) -> TaskStatusRequest:
        if action not in RESOLVE_ACTIONS:
            raise ValidationError("action must be one of approve, reject, reassign")
        if action == "reassign" and not reassigned_to:
            raise ValidationError("reassigned_to is required for reassign")

        task = self._get_or_404(db, task_id)
        req = db.query(TaskStatusRequest).filter(
            TaskStatusRequest.id == request_id,
            TaskStatusRequest.task_id == task_id,
        ).first()
        if not req:
            raise NotFound("Status change request not found")

        if not guards.can_resolve_status_request(db, actor, task):
            raise Forbidden("You are not allowed to resolve this request")

        if req.status != StatusRequestStateEnum.PENDING:
            raise ConflictError(f"Request already {req.status.value}")

        if action == "reassign":
            target = db.query(User).filter(User.id == reassigned_to, User.is_active.is_(True)).first()
            if not target:
                raise ValidationError("reassigned_to user not found")

        new_state = {
            "approve": StatusRequestStateEnum.APPROVED,
            "reject": StatusRequestStateEnum.REJECTED,
            "reassign": StatusRequestStateEnum.REASSIGNED,
        }[action]

        try:
            updated = db.query(TaskStatusRequest).filter(
                TaskStatusRequest.id == request_id,
                TaskStatusRequest.status == StatusRequestStateEnum.PENDING,
            ).update(
                {
                    TaskStatusRequest.status: new_state,
                    TaskStatusRequest.verified_by: actor.id,
                    TaskStatusRequest.verification_comment: comment,
                    TaskStatusRequest.reassigned_to: reassigned_to if action == "reassign" else None,
                    TaskStatusRequest.verified_at: datetime.now(),
                },
                synchronize_session=False,
            )
            if updated == 0:
                db.rollback()
                raise ConflictError("Request was already resolved")

            if action == "approve":
                task.status = TaskStatusEnum(req.requested_status)
            elif action == "reassign":
                # thay người yêu cầu bằng người được chỉ định
                db.query(TaskAssignment).filter(
                    TaskAssignment.task_id == task.id,
                    TaskAssignment.user_id == req.requested_by,
                ).delete(synchronize_session=False)
                exists = db.query(TaskAssignment).filter(
                    TaskAssignment.task_id == task.id,
                    TaskAssignment.user_id == reassigned_to,
                ).first()
                if not exists:
                    db.add(TaskAssignment(task_id=task.id, user_id=reassigned_to))

            db.commit()
        except ConflictError:
            raise
        except Exception:
            db.rollback()
            raise

        db.refresh(req)
        db.expire(task)
        logger.info(f"[TASK] request #{request_id} on task #{task_id} -> {new_state.value} by user={actor.id}")
        activity_log_service.record(actor.id, action, "tasks", f"Task #{task_id} request #{request_id}")
        return req

    # ===== Subtask =====
    def add_subtask(self, db: Session, actor: Principal, task_id: int, payload: schemas.SubtaskCreate) -> Subtask:
        task = self._get_editable(db, actor, task_id)
        try:
            subtask = Subtask(task_id=task.id, title=payload.title.strip(), description=payload.description,
                              status="pending", progress=0)
            db.add(subtask)
            db.flush()
            db.refresh(task)
            self._recompute_progress(task)
            db.commit()
            db.refresh(subtask)
        except Exception:
            db.rollback()
            raise
        return subtask

    def update_subtask(self, db: Session, actor: Principal, task_id: int, subtask_id: int,
                       payload: schemas.SubtaskUpdate) -> Task:
        task = self._get_or_404(db, task_id)
        subtask = db.query(Subtask).filter(Subtask.id == subtask_id, Subtask.task_id == task_id).first()
        if not subtask:
            raise NotFound("Subtask not found")

        if actor.id not in task.assigned_user_ids and not guards.can_edit_task(db, actor, task):
            raise Forbidden("You are not allowed to update this subtask")

        if payload.status is not None and payload.status not in SUBTASK_STATUSES:
            raise ValidationError(f"Invalid subtask status: {payload.status}")
        if payload.progress is not None and not 0 <= payload.progress <= 100:
            raise ValidationError("Progress must be between 0 and 100")

        try:
            if payload.status is not None:
                subtask.status = payload.status
                if payload.status == "completed" and payload.progress is None:
                    subtask.progress = 100
            if payload.progress is not None:
                subtask.progress = payload.progress
            db.flush()
            self._recompute_progress(task)
            db.commit()
            db.refresh(task)
        except Exception:
            db.rollback()
            raise

        activity_log_service.record(actor.id, "update_subtask", "tasks", f"Task #{task.id} subtask #{subtask.id}")
        return task

    def _recompute_progress(self, task: Task) -> None:
        """progress = trung bình (làm tròn) progress các subtask; xong hết -> 100 + completed."""
        subtasks = list(task.subtasks)
        if not subtasks:
            return
        mean = sum(s.progress or 0 for s in subtasks) / len(subtasks)
        task.progress = int(math.floor(mean + 0.5))

        if all(s.status == "completed" for s in subtasks):
            task.progress = 100
            if task.status != TaskStatusEnum.CANCELLED:
                task.status = TaskStatusEnum.COMPLETED

    # ===== Comment =====
    def list_comments(self, db: Session, actor: Principal, task_id: int) -> List[TaskComment]:
        task = self._get_viewable(db, actor, task_id)
        return list(task.comments)

    def add_comment(self, db: Session, actor: Principal, task_id: int, text: str) -> TaskComment:
        if not text or not text.strip():
            raise ValidationError("Comment is required")
        task = self._get_viewable(db, actor, task_id)
        try:
            comment = TaskComment(task_id=task.id, user_id=actor.id, comment=text.strip())
            db.add(comment)
            db.commit()
            db.refresh(comment)
        except Exception:
            db.rollback()
            raise
        return comment

    # ===== Report =====
    def list_reports(self, db: Session, actor: Principal, task_id: int) -> List[TaskReport]:
        task = self._get_viewable(db, actor, task_id)
        return list(task.reports)

    def submit_report(self, db: Session, actor: Principal, task_id: int,
                      payload: schemas.TaskReportCreate) -> TaskReport:
        """
        Người được giao nộp báo cáo hoàn thành:
        - Chỉ assignee mới nộp được
        - Mỗi người 1 báo cáo / task, đã nộp thì không sửa, không nộp lại (409)
        """
        if not payload.report_text or not payload.report_text.strip():
            raise ValidationError("Report text is required")
        task = self._get_or_404(db, task_id)
        if actor.id not in task.assigned_user_ids:
            raise Forbidden("Only assignees can submit a report for this task")

        existing = db.query(TaskReport.id).filter(
            TaskReport.task_id == task.id,
            TaskReport.user_id == actor.id,
        ).first()
        if existing:
            raise ConflictError("Report already submitted. Cannot modify or resubmit.")

        try:
            report = TaskReport(
                task_id=task.id,
                user_id=actor.id,
                report_text=payload.report_text.strip(),
                working_links=payload.working_links,
                completion_files=payload.completion_files,
            )
            db.add(report)
            db.commit()
            db.refresh(report)
        except IntegrityError:
            # 2 request nộp cùng lúc, unique (task_id, user_id) chặn bản thứ 2
            db.rollback()
            raise ConflictError("Report already submitted. Cannot modify or resubmit.")
        except Exception:
            db.rollback()
            raise

        logger.info(f"[TASK] #{task.id} report #{report.id} submitted by user={actor.id}")
        activity_log_service.record(actor.id, "submit_report", "tasks", f"Task #{task.id} report")
        return report

    # ===== Rating =====
    def rate(self, db: Session, actor: Principal, task_id: int, payload: schemas.TaskRatingCreate) -> TaskRating:
        if not perms.has_permission(actor.role, perms.TASK_RATER_ROLES):
            raise Forbidden("You are not allowed to rate tasks")
        task = self._get_viewable(db, actor, task_id)

        if not 1 <= payload.rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        if payload.user_id not in task.assigned_user_ids:
            raise ValidationError("User is not assigned to this task")

        try:
            rating = db.query(TaskRating).filter(
                TaskRating.task_id == task.id,
                TaskRating.user_id == payload.user_id,
            ).first()
            if rating:
                rating.rating = payload.rating
                rating.feedback = payload.feedback
                rating.rated_by = actor.id
            else:
                rating = TaskRating(task_id=task.id, user_id=payload.user_id, rated_by=actor.id,
                                    rating=payload.rating, feedback=payload.feedback)
                db.add(rating)
            db.commit()
            db.refresh(rating)
        except Exception:
            db.rollback()
            raise

        activity_log_service.record(actor.id, "rate", "tasks", f"Task #{task.id} user {payload.user_id}")
        return rating

task_service = TaskService()
