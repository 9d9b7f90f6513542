from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_current_user
from app.database import get_db
from app.schema import schemas
from app.services.employee_rating_service import employee_rating_service

router = APIRouter()


@router.get("/", response_model=List[schemas.EmployeeRatingResponse])
def read_employee_ratings(employee_id: Optional[int] = None, period: Optional[str] = None,
                          db: Session = Depends(get_db), current: Principal = Depends(get_current_user)):
    """/employee-ratings/?employee_id=5&period=2025-Q1"""
    return employee_rating_service.list_ratings(db, current, employee_id, period)


@router.post("/", response_model=schemas.EmployeeRatingResponse, status_code=201)
def submit_employee_rating(payload: schemas.EmployeeRatingCreate, db: Session = Depends(get_db),
                           current: Principal = Depends(get_current_user)):
    return employee_rating_service.submit(db, current, payload)
