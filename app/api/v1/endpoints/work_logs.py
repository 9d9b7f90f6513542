from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_current_user
from app.database import get_db
from app.schema import schemas
from app.services.work_log_service import work_log_service

router = APIRouter()


@router.get("/", response_model=List[schemas.WorkLogResponse])
def read_work_logs(
    user_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    role: Optional[str] = None,
    db: Session = Depends(get_db),
    current: Principal = Depends(get_current_user),
):
    return work_log_service.list_logs(db, current, user_id, start_date, end_date, role)


@router.post("/", response_model=schemas.WorkLogResponse)
def write_work_log(payload: schemas.WorkLogCreate, response: Response, db: Session = Depends(get_db),
                   current: Principal = Depends(get_current_user)):
    """
    Body: { "log_date": "2025-03-10", "field_data": { "tickets_closed": 4 }, "notes": "..." }
    Tạo mới -> 201, đã có log cùng ngày -> ghi đè, 200
    """
    log, created = work_log_service.upsert(db, current, payload)
    if created:
        response.status_code = 201
    return log


@router.get("/{log_id}", response_model=schemas.WorkLogResponse)
def read_work_log(log_id: int, db: Session = Depends(get_db), current: Principal = Depends(get_current_user)):
    return work_log_service.get(db, current, log_id)


@router.put("/{log_id}", response_model=schemas.WorkLogResponse)
def update_work_log(log_id: int, payload: schemas.WorkLogUpdate, db: Session = Depends(get_db),
                    current: Principal = Depends(get_current_user)):
    return work_log_service.update(db, current, log_id, payload)


@router.delete("/{log_id}")
def delete_work_log(log_id: int, db: Session = Depends(get_db), current: Principal = Depends(get_current_user)):
    work_log_service.delete(db, current, log_id)
    return {"message": "Work log deleted", "id": log_id}
