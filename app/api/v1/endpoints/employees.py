from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_current_user
from app.database import get_db
from app.schema import schemas
from app.services.employee_service import employee_service
from app.utils.email_utils import send_account_email

router = APIRouter()


@router.get("/", response_model=List[schemas.EmployeeResponse])
def read_employees(
    department: Optional[str] = None,
    role: Optional[str] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    current: Principal = Depends(get_current_user),
):
    """
    Danh sách nhân viên (không gồm Super Admin).
    URL: GET /employees/?department=IT&role=HR
    Manager chỉ thấy nhân viên trực tiếp của mình.
    """
    employees = employee_service.list_employees(db, current, department, role, include_inactive)
    return [employee_service.to_response(current, e) for e in employees]


@router.get("/{employee_id}", response_model=schemas.EmployeeResponse)
def read_employee(employee_id: int, db: Session = Depends(get_db),
                  current: Principal = Depends(get_current_user)):
    user = employee_service.get(db, current, employee_id)
    return employee_service.to_response(current, user)


@router.post("/", response_model=schemas.EmployeeResponse, status_code=201)
def create_employee(
    payload: schemas.EmployeeCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current: Principal = Depends(get_current_user),
):
    user = employee_service.create(db, current, payload)
    # gửi mail ngầm, không làm chậm response
    background_tasks.add_task(send_account_email, user.email, user.name, payload.password)
    return employee_service.to_response(current, user)


@router.put("/{employee_id}", response_model=schemas.EmployeeResponse)
def update_employee(employee_id: int, payload: schemas.EmployeeUpdate, db: Session = Depends(get_db),
                    current: Principal = Depends(get_current_user)):
    user = employee_service.update(db, current, employee_id, payload)
    return employee_service.to_response(current, user)


@router.delete("/{employee_id}")
def delete_employee(employee_id: int, db: Session = Depends(get_db),
                    current: Principal = Depends(get_current_user)):
    employee_service.deactivate(db, current, employee_id)
    return {"message": "Employee deactivated", "id": employee_id}
