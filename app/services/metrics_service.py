# app/services/metrics_service.py
"""
Tính KPI / KRI theo kỳ (daily / weekly / monthly) ở 3 cấp:
user (user_id), phòng ban (department) hoặc toàn công ty (cả 2 đều trống).

Mỗi kỳ (window) được upsert theo khoá
(definition, user_id, department, period_type, period_start, period_end)
và commit xong mới sang kỳ tiếp theo, nên chạy lại cùng khoảng thời gian
cho ra đúng các dòng cũ với giá trị mới.
"""
import calendar
import logging
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import Principal
from app.core import permissions as perms
from app.core.errors import ConflictError, Forbidden, NotFound, ValidationError
from app.models.models import (
    Attendance,
    KPIDefinition,
    KPIMetric,
    KRIDefinition,
    KRIMetric,
    Task,
    TaskAssignment,
    TaskRating,
    TaskStatusEnum,
    User,
)
from app.schema import schemas
from app.services import guards
from app.services.activity_log_service import activity_log_service

logger = logging.getLogger("metrics")

KPI_TYPES = ("task_completion_rate", "ontime_delivery", "avg_task_rating", "tasks_completed", "attendance_rate")
KRI_TYPES = ("overdue_tasks", "tasks_at_risk", "low_performance", "high_absenteeism")
PERIOD_TYPES = ("daily", "weekly", "monthly")

MAX_WINDOWS = 400
TWO_DP = Decimal("0.01")
HUNDRED = Decimal("100")
PRESENT_STATUSES = ("present", "half_day")


def _dp2(value) -> Decimal:
    return Decimal(value).quantize(TWO_DP, ROUND_HALF_UP)


def _percent(part: int, total: int) -> Decimal:
    if not total:
        return _dp2(0)
    return _dp2(Decimal(part) * HUNDRED / Decimal(total))


# ===== Kỳ tính =====
def current_window(period_type: str, today: date) -> Tuple[date, date]:
    if period_type == "daily":
        return today, today
    if period_type == "weekly":
        monday = today - timedelta(days=today.weekday())
        return monday, monday + timedelta(days=6)
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def period_windows(period_type: str, start: date, end: date) -> List[Tuple[date, date]]:
    """Chia [start, end] thành các kỳ căn theo ngày / tuần (T2-CN) / tháng, cắt theo biên khoảng."""
    if period_type not in PERIOD_TYPES:
        raise ValidationError("period_type must be daily, weekly or monthly")
    if end < start:
        raise ValidationError("period_end must not be before period_start")

    windows = []
    cursor = start
    while cursor <= end:
        window_start, window_end = current_window(period_type, cursor)
        windows.append((max(window_start, start), min(window_end, end)))
        cursor = window_end + timedelta(days=1)
        if len(windows) > MAX_WINDOWS:
            raise ValidationError(f"Range too large: more than {MAX_WINDOWS} {period_type} periods")
    return windows


def resolve_range(period_type: str, period_start: Optional[date], period_end: Optional[date],
                  today: Optional[date] = None) -> Tuple[date, date]:
    if period_start is None and period_end is None:
        return current_window(period_type, today or date.today())
    return period_start or period_end, period_end or period_start


def classify_kpi_status(value: Decimal, target: Optional[Decimal]) -> str:
    """below/on/above target với biên ±10%."""
    if target is None:
        return "on_target"
    target = Decimal(target)
    if value < target * Decimal("0.9"):
        return "below_target"
    if value > target * Decimal("1.1"):
        return "above_target"
    return "on_target"


def classify_kri_risk(value: Decimal, warning: Optional[Decimal], critical: Optional[Decimal]) -> str:
    if critical is not None and value >= Decimal(critical):
        return "critical"
    if warning is not None and value >= Decimal(warning):
        return "high"
    if warning is not None and value >= Decimal(warning) * Decimal("0.7"):
        return "medium"
    return "low"


def _bounds(start: date, end: date) -> Tuple[datetime, datetime]:
    # [start 00:00, end+1 00:00)
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)


class MetricsService:

    # ===== Phạm vi dữ liệu =====
    def _task_rows(self, db: Session, user_id: Optional[int], department: Optional[str]):
        query = db.query(Task.id, Task.status, Task.deadline, Task.created_at, Task.updated_at)
        if user_id:
            query = query.join(TaskAssignment, TaskAssignment.task_id == Task.id).filter(
                TaskAssignment.user_id == user_id)
        elif department:
            query = query.join(TaskAssignment, TaskAssignment.task_id == Task.id).join(
                User, User.id == TaskAssignment.user_id).filter(User.department == department)
        return query.distinct()

    def _attendance_rows(self, db: Session, user_id: Optional[int], department: Optional[str],
                         start: date, end: date):
        query = db.query(Attendance.status).filter(Attendance.date >= start, Attendance.date <= end)
        if user_id:
            query = query.filter(Attendance.user_id == user_id)
        elif department:
            query = query.join(User, User.id == Attendance.user_id).filter(User.department == department)
        return query.all()

    # ===== KPI =====
    def task_completion_rate(self, db, user_id, department, start, end) -> Decimal:
        lo, hi = _bounds(start, end)
        rows = self._task_rows(db, user_id, department).filter(Task.created_at >= lo, Task.created_at < hi).all()
        completed = sum(1 for r in rows if r.status == TaskStatusEnum.COMPLETED)
        return _percent(completed, len(rows))

    def ontime_delivery(self, db, user_id, department, start, end) -> Decimal:
        lo, hi = _bounds(start, end)
        rows = self._task_rows(db, user_id, department).filter(
            Task.status == TaskStatusEnum.COMPLETED,
            Task.deadline.isnot(None),
            Task.updated_at >= lo,
            Task.updated_at < hi,
        ).all()
        ontime = sum(1 for r in rows if r.updated_at.date() <= r.deadline.date())
        return _percent(ontime, len(rows))

    def avg_task_rating(self, db, user_id, department, start, end) -> Decimal:
        lo, hi = _bounds(start, end)
        query = db.query(func.avg(TaskRating.rating)).filter(TaskRating.created_at >= lo, TaskRating.created_at < hi)
        if user_id:
            query = query.filter(TaskRating.user_id == user_id)
        elif department:
            query = query.join(User, User.id == TaskRating.user_id).filter(User.department == department)
        avg = query.scalar()
        return _dp2(avg or 0)

    def tasks_completed(self, db, user_id, department, start, end) -> Decimal:
        lo, hi = _bounds(start, end)
        rows = self._task_rows(db, user_id, department).filter(
            Task.status == TaskStatusEnum.COMPLETED,
            Task.updated_at >= lo,
            Task.updated_at < hi,
        ).all()
        return _dp2(len(rows))

    def attendance_rate(self, db, user_id, department, start, end) -> Decimal:
        rows = self._attendance_rows(db, user_id, department, start, end)
        present = sum(1 for r in rows if r.status in PRESENT_STATUSES)
        return _percent(present, len(rows))

    # ===== KRI =====
    def overdue_tasks(self, db, user_id, department, start, end, today: Optional[date] = None) -> Decimal:
        day_start = datetime.combine(today or date.today(), time.min)
        rows = self._task_rows(db, user_id, department).filter(
            Task.deadline.isnot(None),
            Task.deadline < day_start,
            Task.status.notin_([TaskStatusEnum.COMPLETED, TaskStatusEnum.CANCELLED]),
        ).all()
        return _dp2(len(rows))

    def tasks_at_risk(self, db, user_id, department, start, end, today: Optional[date] = None) -> Decimal:
        today = today or date.today()
        lo, hi = _bounds(today, today + timedelta(days=2))
        rows = self._task_rows(db, user_id, department).filter(
            Task.deadline.isnot(None),
            Task.deadline >= lo,
            Task.deadline < hi,
            Task.status.notin_([TaskStatusEnum.COMPLETED, TaskStatusEnum.CANCELLED]),
        ).all()
        return _dp2(len(rows))

    def low_performance(self, db, user_id, department, start, end) -> Decimal:
        return _dp2(HUNDRED - self.task_completion_rate(db, user_id, department, start, end))

    def high_absenteeism(self, db, user_id, department, start, end) -> Decimal:
        return _dp2(HUNDRED - self.attendance_rate(db, user_id, department, start, end))

    # ===== Định nghĩa =====
    def list_kpi_definitions(self, db: Session, include_inactive: bool = False) -> List[KPIDefinition]:
        query = db.query(KPIDefinition)
        if not include_inactive:
            query = query.filter(KPIDefinition.is_active.is_(True))
        return query.order_by(KPIDefinition.id).all()

    def list_kri_definitions(self, db: Session, include_inactive: bool = False) -> List[KRIDefinition]:
        query = db.query(KRIDefinition)
        if not include_inactive:
            query = query.filter(KRIDefinition.is_active.is_(True))
        return query.order_by(KRIDefinition.id).all()

    def create_kpi_definition(self, db: Session, actor: Principal, payload: schemas.KPIDefinitionCreate):
        if payload.calculation_type not in KPI_TYPES:
            raise ValidationError(f"Unknown KPI calculation_type: {payload.calculation_type}",
                                  {"allowed": list(KPI_TYPES)})
        return self._create_definition(db, actor, KPIDefinition(**payload.model_dump()), "kpi")

    def create_kri_definition(self, db: Session, actor: Principal, payload: schemas.KRIDefinitionCreate):
        if payload.calculation_type not in KRI_TYPES:
            raise ValidationError(f"Unknown KRI calculation_type: {payload.calculation_type}",
                                  {"allowed": list(KRI_TYPES)})
        return self._create_definition(db, actor, KRIDefinition(**payload.model_dump()), "kri")

    def _create_definition(self, db: Session, actor: Principal, definition, module: str):
        try:
            db.add(definition)
            db.commit()
            db.refresh(definition)
        except IntegrityError:
            db.rollback()
            raise ConflictError(f"Definition code already exists: {definition.code}")
        except Exception:
            db.rollback()
            raise
        activity_log_service.record(actor.id, "create_definition", module, f"{definition.code}")
        return definition

    # ===== Tính toán =====
    def _authorize(self, db: Session, actor: Principal, user_id: Optional[int]):
        if not perms.has_permission(actor.role, perms.METRIC_CALCULATE_ROLES):
            raise Forbidden("You are not allowed to calculate metrics")
        if user_id:
            if not db.query(User.id).filter(User.id == user_id).first():
                raise NotFound("Employee not found")
            if perms.has_permission(actor.role, perms.MANAGER_ROLES) and not guards.is_manager_of(db, actor, user_id):
                raise Forbidden("Managers can only calculate metrics for their own team")

    def _definitions(self, db: Session, model, definition_id: Optional[int]):
        query = db.query(model).filter(model.is_active.is_(True))
        if definition_id:
            query = query.filter(model.id == definition_id)
        definitions = query.order_by(model.id).all()
        if not definitions:
            raise NotFound("No active definitions found")
        return definitions

    def _find_metric(self, db: Session, model, fk_column, definition_id, user_id, department,
                     period_type, start, end):
        return db.query(model).filter(
            fk_column == definition_id,
            model.user_id == user_id if user_id is not None else model.user_id.is_(None),
            model.department == department if department is not None else model.department.is_(None),
            model.period_type == period_type,
            model.period_start == start,
            model.period_end == end,
        ).first()

    def calculate_kpis(self, db: Session, actor: Principal, req: schemas.MetricCalculateRequest) -> List[KPIMetric]:
        user_id = req.user_id or None
        department = None if user_id else (req.department or None)
        self._authorize(db, actor, user_id)

        start, end = resolve_range(req.period_type, req.period_start, req.period_end)
        windows = period_windows(req.period_type, start, end)
        definitions = self._definitions(db, KPIDefinition, req.definition_id)

        logger.info(f"[KPI] calculating {len(definitions)} definition(s) x {len(windows)} {req.period_type} "
                    f"window(s) user={user_id} department={department!r} by user={actor.id}")

        results = []
        for window_start, window_end in windows:
            try:
                for definition in definitions:
                    calculator = getattr(self, definition.calculation_type, None)
                    if definition.calculation_type not in KPI_TYPES or calculator is None:
                        raise ValidationError(f"Unknown KPI calculation_type: {definition.calculation_type}")
                    value = calculator(db, user_id, department, window_start, window_end)
                    status = classify_kpi_status(value, definition.target_value)

                    metric = self._find_metric(db, KPIMetric, KPIMetric.kpi_id, definition.id, user_id,
                                               department, req.period_type, window_start, window_end)
                    if not metric:
                        metric = KPIMetric(kpi_id=definition.id, user_id=user_id, department=department,
                                           period_type=req.period_type, period_start=window_start,
                                           period_end=window_end)
                        db.add(metric)
                    metric.calculated_value = value
                    metric.target_value = definition.target_value
                    metric.status = status
                    metric.calculated_at = datetime.now()
                    results.append(metric)
                # mỗi kỳ commit riêng
                db.commit()
            except Exception:
                db.rollback()
                logger.error(f"[KPI] calculation failed for window {window_start}..{window_end}")
                raise

        for metric in results:
            db.refresh(metric)
        activity_log_service.record(actor.id, "calculate", "kpi",
                                    f"{req.period_type} {start}..{end} user={user_id} dept={department}")
        return results

    def calculate_kris(self, db: Session, actor: Principal, req: schemas.MetricCalculateRequest) -> List[KRIMetric]:
        user_id = req.user_id or None
        department = None if user_id else (req.department or None)
        self._authorize(db, actor, user_id)

        start, end = resolve_range(req.period_type, req.period_start, req.period_end)
        windows = period_windows(req.period_type, start, end)
        definitions = self._definitions(db, KRIDefinition, req.definition_id)

        logger.info(f"[KRI] calculating {len(definitions)} definition(s) x {len(windows)} {req.period_type} "
                    f"window(s) user={user_id} department={department!r} by user={actor.id}")

        results = []
        for window_start, window_end in windows:
            try:
                for definition in definitions:
                    calculator = getattr(self, definition.calculation_type, None)
                    if definition.calculation_type not in KRI_TYPES or calculator is None:
                        raise ValidationError(f"Unknown KRI calculation_type: {definition.calculation_type}")
                    value = calculator(db, user_id, department, window_start, window_end)
                    risk = classify_kri_risk(value, definition.threshold_warning, definition.threshold_critical)

                    metric = self._find_metric(db, KRIMetric, KRIMetric.kri_id, definition.id, user_id,
                                               department, req.period_type, window_start, window_end)
                    if not metric:
                        metric = KRIMetric(kri_id=definition.id, user_id=user_id, department=department,
                                           period_type=req.period_type, period_start=window_start,
                                           period_end=window_end)
                        db.add(metric)
                    metric.calculated_value = value
                    metric.risk_level = risk
                    metric.calculated_at = datetime.now()
                    results.append(metric)
                db.commit()
            except Exception:
                db.rollback()
                logger.error(f"[KRI] calculation failed for window {window_start}..{window_end}")
                raise

        for metric in results:
            db.refresh(metric)
        activity_log_service.record(actor.id, "calculate", "kri",
                                    f"{req.period_type} {start}..{end} user={user_id} dept={department}")
        return results

    # ===== Xem kết quả =====
    def _scoped_metrics(self, db: Session, actor: Principal, model, fk_column, definition_id: Optional[int],
                        user_id: Optional[int], department: Optional[str], period_type: Optional[str],
                        period_start: Optional[date], period_end: Optional[date]):
        query = db.query(model)
        if not perms.has_permission(actor.role, perms.METRIC_VIEW_ROLES):
            # nhân viên thường: chỉ số liệu của chính mình
            if (user_id and user_id != actor.id) or department:
                raise Forbidden("You can only view your own metrics")
            query = query.filter(model.user_id == actor.id)
        elif perms.has_permission(actor.role, perms.MANAGER_ROLES):
            # Manager: số liệu công ty / phòng ban + của mình và nhân viên trực tiếp
            visible_ids = [actor.id] + guards.direct_report_ids(db, actor)
            query = query.filter(or_(model.user_id.is_(None), model.user_id.in_(visible_ids)))

        if definition_id:
            query = query.filter(fk_column == definition_id)
        if user_id:
            query = query.filter(model.user_id == user_id)
        if department:
            query = query.filter(model.department == department)
        if period_type:
            query = query.filter(model.period_type == period_type)
        if period_start:
            query = query.filter(model.period_start >= period_start)
        if period_end:
            query = query.filter(model.period_end <= period_end)
        return query.order_by(model.period_start.desc(), model.id).all()

    def list_kpi_metrics(self, db: Session, actor: Principal, definition_id=None, user_id=None, department=None,
                         period_type=None, period_start=None, period_end=None) -> List[KPIMetric]:
        return self._scoped_metrics(db, actor, KPIMetric, KPIMetric.kpi_id, definition_id, user_id, department,
                                    period_type, period_start, period_end)

    def list_kri_metrics(self, db: Session, actor: Principal, definition_id=None, user_id=None, department=None,
                         period_type=None, period_start=None, period_end=None) -> List[KRIMetric]:
        return self._scoped_metrics(db, actor, KRIMetric, KRIMetric.kri_id, definition_id, user_id, department,
                                    period_type, period_start, period_end)

metrics_service = MetricsService()
