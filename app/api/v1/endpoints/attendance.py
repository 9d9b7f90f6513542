from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_current_user
from app.database import get_db
from app.schema import schemas
from app.services.attendance_service import attendance_service

router = APIRouter()


@router.post("/", response_model=schemas.AttendanceResponse)
def mark_attendance(payload: schemas.AttendanceAction, db: Session = Depends(get_db),
                    current: Principal = Depends(get_current_user)):
    """Body: { "action": "sign_in" } hoặc { "action": "sign_out" }"""
    if payload.action == "sign_in":
        return attendance_service.sign_in(db, current)
    return attendance_service.sign_out(db, current)


@router.get("/", response_model=List[schemas.AttendanceResponse])
def read_attendance(
    user_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    all_users: bool = False,
    db: Session = Depends(get_db),
    current: Principal = Depends(get_current_user),
):
    """
    Lịch sử chấm công.
    - /attendance/?start_date=2025-03-01&end_date=2025-03-31
    - /attendance/?user_id=5
    - /attendance/?all_users=true (Super Admin / Admin / HR)
    """
    return attendance_service.list_records(db, current, user_id, start_date, end_date, all_users)
