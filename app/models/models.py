# mỗi class ánh xạ 1 bảng trong db
import enum
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, Boolean, ForeignKey,
    Numeric, UniqueConstraint, JSON, Enum,
)
from sqlalchemy.orm import relationship
from app.database import Base

# ===== Enum trạng thái =====
class LeaveStatusEnum(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class TaskStatusEnum(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class StatusRequestStateEnum(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REASSIGNED = "reassigned"


class User(Base):
    """Nhân viên + tài khoản đăng nhập (chung 1 bảng)."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False)
    department = Column(String(100))
    designation = Column(String(100))
    phone = Column(String(20))
    profile_photo = Column(String(255))
    joining_date = Column(Date)
    salary = Column(Numeric(15, 2))
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    manager = relationship("User", remote_side=[id])


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String(50), nullable=False)
    module = Column(String(50), nullable=False)
    details = Column(String(255))
    created_at = Column(DateTime, default=datetime.now)


class MenuPermission(Base):
    __tablename__ = "menu_permissions"
    __table_args__ = (
        UniqueConstraint("menu_key", "role", name="uq_menu_role"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    menu_key = Column(String(50), nullable=False)
    role = Column(String(50), nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True)


class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_attendance_user_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    date = Column(Date, nullable=False)
    login_time = Column(DateTime)
    logout_time = Column(DateTime)
    total_hours = Column(Numeric(5, 2), default=0)
    status = Column(String(20), default="present")   # present, late, half_day, absent

    user = relationship("User")


# ===== Leave =====
class LeaveRequest(Base):
    __tablename__ = "leaves"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    leave_type = Column(String(50), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text)
    status = Column(
        Enum(LeaveStatusEnum, name="leave_status_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=LeaveStatusEnum.PENDING,
    )
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    user = relationship("User", foreign_keys=[user_id])
    approver = relationship("User", foreign_keys=[approved_by])
    comments = relationship("LeaveComment", back_populates="leave", order_by="LeaveComment.created_at")


class LeaveComment(Base):
    __tablename__ = "leave_comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    leave_id = Column(Integer, ForeignKey("leaves.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    role_at_time = Column(String(50), nullable=False)
    comment = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    leave = relationship("LeaveRequest", back_populates="comments")
    user = relationship("User")


# ===== Task =====
class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    priority = Column(String(20), nullable=False, default="medium")
    status = Column(
        Enum(TaskStatusEnum, name="task_status_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=TaskStatusEnum.PENDING,
    )
    deadline = Column(DateTime, nullable=True)
    progress = Column(Integer, nullable=False, default=0)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    creator = relationship("User")
    assignments = relationship("TaskAssignment", back_populates="task", cascade="all, delete-orphan")
    subtasks = relationship("Subtask", back_populates="task", cascade="all, delete-orphan",
                            order_by="Subtask.id")
    comments = relationship("TaskComment", back_populates="task", cascade="all, delete-orphan",
                            order_by="TaskComment.created_at")
    status_requests = relationship("TaskStatusRequest", back_populates="task", cascade="all, delete-orphan",
                                   order_by="TaskStatusRequest.id")
    ratings = relationship("TaskRating", back_populates="task", cascade="all, delete-orphan")
    reports = relationship("TaskReport", back_populates="task", cascade="all, delete-orphan",
                           order_by="TaskReport.id")

    @property
    def assigned_user_ids(self):
        return sorted(a.user_id for a in self.assignments)


class TaskAssignment(Base):
    __tablename__ = "task_assignments"
    __table_args__ = (
        UniqueConstraint("task_id", "user_id", name="uq_task_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    task = relationship("Task", back_populates="assignments")
    user = relationship("User")


class Subtask(Base):
    __tablename__ = "subtasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    status = Column(String(20), nullable=False, default="pending")
    progress = Column(Integer, nullable=False, default=0)

    task = relationship("Task", back_populates="subtasks")


class TaskComment(Base):
    __tablename__ = "task_comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    comment = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    task = relationship("Task", back_populates="comments")
    user = relationship("User")


class TaskRating(Base):
    __tablename__ = "task_ratings"
    __table_args__ = (
        UniqueConstraint("task_id", "user_id", name="uq_task_rating"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    rated_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    feedback = Column(Text)
    created_at = Column(DateTime, default=datetime.now)

    task = relationship("Task", back_populates="ratings")


class TaskReport(Base):
    """Báo cáo hoàn thành của người được giao, nộp 1 lần, không sửa được."""
    __tablename__ = "task_reports"
    __table_args__ = (
        UniqueConstraint("task_id", "user_id", name="uq_task_report_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    report_text = Column(Text, nullable=False)
    working_links = Column(JSON)
    completion_files = Column(JSON)
    created_at = Column(DateTime, default=datetime.now)

    task = relationship("Task", back_populates="reports")


class TaskStatusRequest(Base):
    __tablename__ = "task_status_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False)
    current_status = Column(String(20), nullable=False)
    requested_status = Column(String(20), nullable=False)
    requested_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    reason = Column(Text)
    status = Column(
        Enum(StatusRequestStateEnum, name="status_request_state_enum",
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=StatusRequestStateEnum.PENDING,
    )
    verified_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    verification_comment = Column(Text)
    reassigned_to = Column(Integer, ForeignKey("users.id"), nullable=True)
    verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    task = relationship("Task", back_populates="status_requests")


# ===== Payslip =====
class Payslip(Base):
    __tablename__ = "payslips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    payslip_month = Column(String(7), nullable=False)   # YYYY-MM
    employee_name = Column(String(100), nullable=False)
    employee_code = Column(String(50))
    designation = Column(String(100))
    department = Column(String(100))
    bank_name = Column(String(100))
    account_number = Column(String(50))
    earnings = Column(JSON, nullable=False, default=list)
    deductions = Column(JSON, nullable=False, default=list)
    total_earnings = Column(Numeric(15, 2), nullable=False, default=0)
    total_deductions = Column(Numeric(15, 2), nullable=False, default=0)
    net_pay = Column(Numeric(15, 2), nullable=False, default=0)
    net_pay_words = Column(String(255))
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    employee = relationship("User", foreign_keys=[employee_id])


# ===== KRA =====
class KRADefinition(Base):
    __tablename__ = "kra_definitions"
    __table_args__ = (
        UniqueConstraint("role", "kra_number", name="uq_kra_role_number"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    role = Column(String(50), nullable=False, index=True)
    kra_number = Column(Integer, nullable=False)
    kra_name = Column(String(200), nullable=False)
    weight_percentage = Column(Numeric(5, 2), nullable=False)
    kpi_1_name = Column(String(200))
    kpi_1_target = Column(String(200))
    kpi_1_scale = Column(String(100))
    kpi_1_rating_labels = Column(JSON)
    kpi_2_name = Column(String(200))
    kpi_2_target = Column(String(200))
    kpi_2_scale = Column(String(100))
    kpi_2_rating_labels = Column(JSON)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.now)


class KRASubmission(Base):
    __tablename__ = "kra_submissions"
    __table_args__ = (
        UniqueConstraint("kra_id", "user_id", "period_type", "period_key", name="uq_kra_submission_period"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    kra_id = Column(Integer, ForeignKey("kra_definitions.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    period_type = Column(String(20), nullable=False)
    period_key = Column(String(10), nullable=False)   # 2025-01 / 2025-Q1 / 2025
    rating = Column(Integer, nullable=False)
    comments = Column(Text)
    status = Column(String(20), nullable=False, default="submitted")
    submitted_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    definition = relationship("KRADefinition")


class KRAScore(Base):
    __tablename__ = "kra_scores"
    __table_args__ = (
        UniqueConstraint("user_id", "period_type", "period_key", name="uq_kra_score_period"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    period_type = Column(String(20), nullable=False)
    period_key = Column(String(10), nullable=False)
    total_score = Column(Numeric(6, 2), nullable=False)
    performance_category = Column(String(50), nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


# ===== KPI / KRI =====
class KPIDefinition(Base):
    __tablename__ = "kpi_definitions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    calculation_type = Column(String(50), nullable=False)
    target_value = Column(Numeric(10, 2), nullable=True)
    unit = Column(String(20))
    is_active = Column(Boolean, nullable=False, default=True)


class KPIMetric(Base):
    __tablename__ = "kpi_metrics"
    __table_args__ = (
        UniqueConstraint("kpi_id", "user_id", "department", "period_type", "period_start", "period_end",
                         name="uq_kpi_metric_period"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    kpi_id = Column(Integer, ForeignKey("kpi_definitions.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    department = Column(String(100), nullable=True)
    period_type = Column(String(20), nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    calculated_value = Column(Numeric(10, 2), nullable=False)
    target_value = Column(Numeric(10, 2), nullable=True)
    status = Column(String(20), nullable=False)
    calculated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    definition = relationship("KPIDefinition")


class KRIDefinition(Base):
    __tablename__ = "kri_definitions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    calculation_type = Column(String(50), nullable=False)
    threshold_warning = Column(Numeric(10, 2), nullable=True)
    threshold_critical = Column(Numeric(10, 2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


class KRIMetric(Base):
    __tablename__ = "kri_metrics"
    __table_args__ = (
        UniqueConstraint("kri_id", "user_id", "department", "period_type", "period_start", "period_end",
                         name="uq_kri_metric_period"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    kri_id = Column(Integer, ForeignKey("kri_definitions.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    department = Column(String(100), nullable=True)
    period_type = Column(String(20), nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    calculated_value = Column(Numeric(10, 2), nullable=False)
    risk_level = Column(String(20), nullable=False)
    calculated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    definition = relationship("KRIDefinition")


# ===== Tài liệu nhân viên =====
class EmployeeDocument(Base):
    __tablename__ = "employee_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    document_type = Column(String(50), nullable=False)
    file_name = Column(String(255), nullable=False)
    content_type = Column(String(100))
    storage_key = Column(String(255), nullable=False)   # key bên BlobStore
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    employee = relationship("User", foreign_keys=[employee_id])


# ===== Nhật ký công việc hằng ngày =====
class DailyWorkLog(Base):
    __tablename__ = "daily_work_logs"
    __table_args__ = (
        UniqueConstraint("user_id", "log_date", name="uq_work_log_user_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    log_date = Column(Date, nullable=False)
    role = Column(String(50), nullable=False)   # role của nhân viên lúc ghi
    field_data = Column(JSON, nullable=False, default=dict)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    user = relationship("User")


# ===== Đánh giá nhân viên =====
class EmployeeRating(Base):
    __tablename__ = "employee_ratings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    rated_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    workplace_behaviour = Column(Integer, nullable=False)
    discipline = Column(Integer, nullable=False)
    innovations = Column(Integer, nullable=False)
    punctuality = Column(Integer, nullable=False)
    critical_task_delivery = Column(Integer, nullable=False)
    comments = Column(Text)
    rating_period = Column(String(20))
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    employee = relationship("User", foreign_keys=[employee_id])
    rater = relationship("User", foreign_keys=[rated_by])
