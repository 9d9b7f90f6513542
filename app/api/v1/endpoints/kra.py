from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_current_user, require_roles
from app.core import permissions as perms
from app.database import get_db
from app.schema import schemas
from app.services.kra_service import kra_service

router = APIRouter()

kra_admin = require_roles(*perms.KRA_MANAGE_ROLES)


# ===== Định nghĩa KRA =====
@router.get("/definitions", response_model=List[schemas.KRADefinitionResponse])
def read_definitions(role: Optional[str] = None, include_inactive: bool = False, db: Session = Depends(get_db),
                     current: Principal = Depends(get_current_user)):
    return kra_service.list_definitions(db, role, include_inactive)


@router.post("/definitions", response_model=schemas.KRADefinitionResponse, status_code=201)
def create_definition(payload: schemas.KRADefinitionCreate, db: Session = Depends(get_db),
                      current: Principal = Depends(kra_admin)):
    return kra_service.create_definition(db, current, payload)


@router.put("/definitions/{kra_id}", response_model=schemas.KRADefinitionResponse)
def update_definition(kra_id: int, payload: schemas.KRADefinitionCreate, db: Session = Depends(get_db),
                      current: Principal = Depends(kra_admin)):
    return kra_service.update_definition(db, current, kra_id, payload)


@router.delete("/definitions/{kra_id}")
def delete_definition(kra_id: int, db: Session = Depends(get_db), current: Principal = Depends(kra_admin)):
    kra_service.deactivate_definition(db, current, kra_id)
    return {"message": "KRA definition deactivated", "id": kra_id}


# ===== Đánh giá =====
@router.get("/submissions", response_model=List[schemas.KRASubmissionResponse])
def read_submissions(
    user_id: Optional[int] = None,
    period_type: Optional[str] = None,
    period_key: Optional[str] = None,
    db: Session = Depends(get_db),
    current: Principal = Depends(get_current_user),
):
    return kra_service.list_submissions(db, current, user_id, period_type, period_key)


@router.post("/submissions", response_model=schemas.KRASubmitResult)
def submit_ratings(payload: schemas.KRASubmissionCreate, db: Session = Depends(get_db),
                   current: Principal = Depends(get_current_user)):
    """
    Body:
    {
        "user_id": 42, "period_type": "monthly", "period_key": "2025-03",
        "submissions": [ { "kra_id": 1, "rating": 4, "comments": "..." } ]
    }
    """
    return kra_service.submit_kra_ratings(db, current, payload)


@router.get("/scores", response_model=List[schemas.KRAScoreResponse])
def read_scores(user_id: Optional[int] = None, period_type: Optional[str] = None, db: Session = Depends(get_db),
                current: Principal = Depends(get_current_user)):
    return kra_service.list_scores(db, current, user_id, period_type)
