import enum
from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field
from typing import Annotated, Any, Dict, List, Literal, Optional
from datetime import date, datetime
from decimal import Decimal

# cột Enum trong DB -> trả ra giá trị chuỗi
EnumStr = Annotated[str, BeforeValidator(lambda v: v.value if isinstance(v, enum.Enum) else v)]

# ===== Auth =====
class UserLogin(BaseModel):
    email: EmailStr
    password: str

# client gửi json dạng { "email": "a@b.com", "password": "123456" }

class PrincipalResponse(BaseModel):
    id: int
    role: str
    name: str
    email: str

class LoginResponse(BaseModel):
    token: str
    user: PrincipalResponse


# ===== Employee =====
class EmployeeCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str
    role: str
    department: Optional[str] = None
    designation: Optional[str] = None
    phone: Optional[str] = None
    joining_date: Optional[date] = None
    salary: Optional[Decimal] = None
    manager_id: Optional[int] = None

# Web gửi lên khi sửa hồ sơ, chỉ các field có mặt mới được cập nhật
class EmployeeUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    role: Optional[str] = None
    department: Optional[str] = None
    designation: Optional[str] = None
    phone: Optional[str] = None
    profile_photo: Optional[str] = None
    joining_date: Optional[date] = None
    salary: Optional[Decimal] = None
    manager_id: Optional[int] = None
    is_active: Optional[bool] = None

class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: str
    department: Optional[str] = None
    designation: Optional[str] = None
    phone: Optional[str] = None
    profile_photo: Optional[str] = None
    joining_date: Optional[date] = None
    salary: Optional[Decimal] = None
    manager_id: Optional[int] = None
    is_active: bool


# ===== Leave =====
class LeaveCreate(BaseModel):
    leave_type: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    reason: Optional[str] = None
    user_id: Optional[int] = None   # nộp hộ nhân viên khác

class LeaveDecision(BaseModel):
    status: str   # approved | rejected

class LeaveCommentCreate(BaseModel):
    comment: str

class LeaveCommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    leave_id: int
    user_id: int
    role_at_time: str
    comment: str
    created_at: datetime

class LeaveResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    leave_type: str
    start_date: date
    end_date: date
    reason: Optional[str] = None
    status: EnumStr
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_at: datetime


# ===== Task =====
TaskPriority = Literal["low", "medium", "high", "urgent"]

class SubtaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None

class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    priority: TaskPriority = "medium"
    deadline: Optional[datetime] = None
    assigned_users: List[int] = []
    subtasks: List[SubtaskCreate] = []

class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    status: Optional[str] = None
    deadline: Optional[datetime] = None
    progress: Optional[int] = None
    assigned_users: Optional[List[int]] = None

class SubtaskUpdate(BaseModel):
    status: Optional[str] = None
    progress: Optional[int] = None

class SubtaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    title: str
    description: Optional[str] = None
    status: str
    progress: int

class TaskCommentCreate(BaseModel):
    comment: str

class TaskCommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    user_id: int
    comment: str
    created_at: datetime

class TaskRatingCreate(BaseModel):
    user_id: int
    rating: int
    feedback: Optional[str] = None

class TaskRatingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    user_id: int
    rated_by: int
    rating: int
    feedback: Optional[str] = None

class TaskReportCreate(BaseModel):
    report_text: str
    working_links: Optional[List[str]] = None
    completion_files: Optional[List[str]] = None

class TaskReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    user_id: int
    report_text: str
    working_links: Optional[List[str]] = None
    completion_files: Optional[List[str]] = None
    created_at: datetime

class StatusChangeCreate(BaseModel):
    requested_status: str
    reason: Optional[str] = None

class StatusRequestResolve(BaseModel):
    action: str   # approve | reject | reassign
    comment: Optional[str] = None
    reassigned_to: Optional[int] = None

class StatusRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    task_id: int
    current_status: str
    requested_status: str
    requested_by: int
    reason: Optional[str] = None
    status: EnumStr
    verified_by: Optional[int] = None
    verification_comment: Optional[str] = None
    reassigned_to: Optional[int] = None
    verified_at: Optional[datetime] = None
    created_at: datetime

class StatusChangeResult(BaseModel):
    applied: bool
    task_status: str
    request: Optional[StatusRequestResponse] = None

class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    priority: str
    status: EnumStr
    deadline: Optional[datetime] = None
    progress: int
    created_by: int
    created_at: datetime
    assigned_user_ids: List[int] = []
    subtasks: List[SubtaskResponse] = []

class TaskDetailResponse(TaskResponse):
    comments: List[TaskCommentResponse] = []
    status_requests: List[StatusRequestResponse] = []
    reports: List[TaskReportResponse] = []


# ===== Payslip =====
class PayslipLineItem(BaseModel):
    label: str
    amount: Decimal = Field(..., ge=0)

class PayslipCreate(BaseModel):
    employee_id: int
    payslip_month: str = Field(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    employee_name: str = Field(..., min_length=1)
    employee_code: Optional[str] = None
    designation: Optional[str] = None
    department: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    earnings: List[PayslipLineItem]
    deductions: List[PayslipLineItem] = []
    net_pay_words: Optional[str] = None
    # client có thể gửi kèm, server luôn bỏ qua và tự tính lại
    total_earnings: Optional[Decimal] = None
    total_deductions: Optional[Decimal] = None
    net_pay: Optional[Decimal] = None

class PayslipUpdate(BaseModel):
    payslip_month: Optional[str] = Field(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    employee_name: Optional[str] = None
    employee_code: Optional[str] = None
    designation: Optional[str] = None
    department: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    earnings: Optional[List[PayslipLineItem]] = None
    deductions: Optional[List[PayslipLineItem]] = None
    net_pay_words: Optional[str] = None
    total_earnings: Optional[Decimal] = None
    total_deductions: Optional[Decimal] = None
    net_pay: Optional[Decimal] = None

class PayslipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    payslip_month: str
    employee_name: str
    employee_code: Optional[str] = None
    designation: Optional[str] = None
    department: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    earnings: List[Dict[str, Any]]
    deductions: List[Dict[str, Any]]
    total_earnings: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    net_pay_words: Optional[str] = None
    created_by: int
    created_at: datetime


# ===== KRA =====
class KRADefinitionCreate(BaseModel):
    role: str
    kra_number: int = Field(..., ge=1)
    kra_name: str = Field(..., min_length=1)
    weight_percentage: Decimal = Field(..., ge=0, le=100)
    kpi_1_name: Optional[str] = None
    kpi_1_target: Optional[str] = None
    kpi_1_scale: Optional[str] = None
    kpi_1_rating_labels: Optional[Dict[str, str]] = None
    kpi_2_name: Optional[str] = None
    kpi_2_target: Optional[str] = None
    kpi_2_scale: Optional[str] = None
    kpi_2_rating_labels: Optional[Dict[str, str]] = None
    is_active: bool = True

class KRADefinitionResponse(KRADefinitionCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int

class KRARatingItem(BaseModel):
    kra_id: int
    rating: Any   # kiểm tra 1..5 ở service để trả ValidationError rõ ràng
    comments: Optional[str] = None

class KRASubmissionCreate(BaseModel):
    user_id: Optional[int] = None
    period_type: str = "monthly"
    period_key: str
    submissions: List[KRARatingItem]

class KRASubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kra_id: int
    user_id: int
    period_type: str
    period_key: str
    rating: int
    comments: Optional[str] = None
    status: str
    submitted_by: int

class KRAScoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    period_type: str
    period_key: str
    total_score: Decimal
    performance_category: str

class KRASubmitResult(BaseModel):
    submissions: List[KRASubmissionResponse]
    score: KRAScoreResponse


# ===== KPI / KRI =====
class KPIDefinitionCreate(BaseModel):
    code: str
    name: str
    calculation_type: str
    target_value: Optional[Decimal] = None
    unit: Optional[str] = None
    is_active: bool = True

class KPIDefinitionResponse(KPIDefinitionCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int

class KRIDefinitionCreate(BaseModel):
    code: str
    name: str
    calculation_type: str
    threshold_warning: Optional[Decimal] = None
    threshold_critical: Optional[Decimal] = None
    is_active: bool = True

class KRIDefinitionResponse(KRIDefinitionCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int

class MetricCalculateRequest(BaseModel):
    definition_id: Optional[int] = None
    user_id: Optional[int] = None
    department: Optional[str] = None
    period_type: Literal["daily", "weekly", "monthly"] = "daily"
    period_start: Optional[date] = None
    period_end: Optional[date] = None

class KPIMetricResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kpi_id: int
    user_id: Optional[int] = None
    department: Optional[str] = None
    period_type: str
    period_start: date
    period_end: date
    calculated_value: Decimal
    target_value: Optional[Decimal] = None
    status: str

class KRIMetricResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kri_id: int
    user_id: Optional[int] = None
    department: Optional[str] = None
    period_type: str
    period_start: date
    period_end: date
    calculated_value: Decimal
    risk_level: str


# ===== Menu =====
class MenuPermissionsUpdate(BaseModel):
    permissions: Dict[str, Dict[str, bool]]   # { menu_key: { role: true/false } }


# ===== Attendance =====
class AttendanceAction(BaseModel):
    action: Literal["sign_in", "sign_out"]

class AttendanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    date: date
    login_time: Optional[datetime] = None
    logout_time: Optional[datetime] = None
    total_hours: Optional[Decimal] = None
    status: str


# ===== Document =====
class EmployeeDocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    document_type: str
    file_name: str
    content_type: Optional[str] = None
    uploaded_by: int
    created_at: datetime


# ===== Work log =====
class WorkLogCreate(BaseModel):
    log_date: date
    field_data: Dict[str, Any]
    notes: Optional[str] = None
    user_id: Optional[int] = None   # ghi hộ nhân viên khác

class WorkLogUpdate(BaseModel):
    field_data: Dict[str, Any]
    notes: Optional[str] = None

class WorkLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    log_date: date
    role: str
    field_data: Dict[str, Any] = {}
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


# ===== Employee rating =====
class EmployeeRatingCreate(BaseModel):
    employee_id: int
    # kiểm tra 1..5 ở service
    workplace_behaviour: Any
    discipline: Any
    innovations: Any
    punctuality: Any
    critical_task_delivery: Any
    comments: Optional[str] = None
    rating_period: Optional[str] = None

class EmployeeRatingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: int
    rated_by: int
    workplace_behaviour: int
    discipline: int
    innovations: int
    punctuality: int
    critical_task_delivery: int
    comments: Optional[str] = None
    rating_period: Optional[str] = None
    created_at: datetime
