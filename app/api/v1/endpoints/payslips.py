from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import Principal, require_roles
from app.core import permissions as perms
from app.database import get_db
from app.schema import schemas
from app.services.payslip_service import payslip_service

router = APIRouter()

payslip_user = require_roles(*perms.PAYSLIP_ROLES)


@router.get("/", response_model=List[schemas.PayslipResponse])
def read_payslips(
    employee_id: Optional[int] = None,
    month: Optional[str] = None,   # YYYY-MM
    db: Session = Depends(get_db),
    current: Principal = Depends(payslip_user),
):
    return payslip_service.list_payslips(db, current, employee_id, month)


@router.post("/", response_model=schemas.PayslipResponse, status_code=201)
def create_payslip(payload: schemas.PayslipCreate, db: Session = Depends(get_db),
                   current: Principal = Depends(payslip_user)):
    """Tổng tiền luôn được tính lại ở server: net_pay = total_earnings - total_deductions."""
    return payslip_service.create(db, current, payload)


@router.get("/{payslip_id}", response_model=schemas.PayslipResponse)
def read_payslip(payslip_id: int, db: Session = Depends(get_db), current: Principal = Depends(payslip_user)):
    return payslip_service.get(db, current, payslip_id)


@router.put("/{payslip_id}", response_model=schemas.PayslipResponse)
def update_payslip(payslip_id: int, payload: schemas.PayslipUpdate, db: Session = Depends(get_db),
                   current: Principal = Depends(payslip_user)):
    return payslip_service.update(db, current, payslip_id, payload)


@router.delete("/{payslip_id}")
def delete_payslip(payslip_id: int, db: Session = Depends(get_db),
                   current: Principal = Depends(require_roles(*perms.PAYSLIP_DELETE_ROLES))):
    payslip_service.delete(db, current, payslip_id)
    return {"message": "Payslip deleted", "id": payslip_id}
