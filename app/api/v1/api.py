from fastapi import APIRouter

from app.api.v1.endpoints import (
    attendance, auth, documents, employee_ratings, employees, kra, leaves, menu, metrics, payslips, tasks, work_logs,
)

api_router = APIRouter()

# Đăng ký router
api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(employees.router, prefix="/employees", tags=["Employees"])
api_router.include_router(leaves.router, prefix="/leaves", tags=["Leaves"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
api_router.include_router(payslips.router, prefix="/payslips", tags=["Payslips"])
api_router.include_router(kra.router, prefix="/kra", tags=["KRA"])
api_router.include_router(metrics.kpi_router, prefix="/kpi", tags=["KPI"])
api_router.include_router(metrics.kri_router, prefix="/kri", tags=["KRI"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["Attendance"])
api_router.include_router(documents.router, prefix="/employee-documents", tags=["Employee Documents"])
api_router.include_router(work_logs.router, prefix="/work-logs", tags=["Work Logs"])
api_router.include_router(employee_ratings.router, prefix="/employee-ratings", tags=["Employee Ratings"])
api_router.include_router(menu.router, tags=["Menu"])
