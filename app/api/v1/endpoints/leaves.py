from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_current_user
from app.database import get_db
from app.schema import schemas
from app.services.leave_service import leave_service
from app.utils.email_utils import send_leave_decision_email

router = APIRouter()


@router.get("/", response_model=List[schemas.LeaveResponse])
def read_leaves(
    user_id: Optional[int] = None,   # mặc định: đơn của chính mình
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current: Principal = Depends(get_current_user),
):
    return leave_service.list_for(db, current, user_id, status)


@router.post("/", response_model=schemas.LeaveResponse, status_code=201)
def apply_leave(payload: schemas.LeaveCreate, db: Session = Depends(get_db),
                current: Principal = Depends(get_current_user)):
    return leave_service.apply(db, current, payload)


# phải khai báo trước /{leave_id}
@router.get("/pending", response_model=List[schemas.LeaveResponse])
def read_pending_leaves(db: Session = Depends(get_db), current: Principal = Depends(get_current_user)):
    return leave_service.list_pending(db, current)


@router.get("/{leave_id}", response_model=schemas.LeaveResponse)
def read_leave(leave_id: int, db: Session = Depends(get_db), current: Principal = Depends(get_current_user)):
    return leave_service.get(db, current, leave_id)


@router.post("/{leave_id}/approve", response_model=schemas.LeaveResponse)
def decide_leave(
    leave_id: int,
    payload: schemas.LeaveDecision,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current: Principal = Depends(get_current_user),
):
    """
    Duyệt / từ chối đơn nghỉ.
    Body: { "status": "approved" } hoặc { "status": "rejected" }
    """
    leave = leave_service.decide(db, current, leave_id, payload.status)
    requester = leave.user
    if requester is not None:
        background_tasks.add_task(
            send_leave_decision_email,
            requester.email, requester.name, leave.leave_type, leave.start_date, leave.end_date, payload.status,
        )
    return leave


@router.get("/{leave_id}/comments", response_model=List[schemas.LeaveCommentResponse])
def read_leave_comments(leave_id: int, db: Session = Depends(get_db),
                        current: Principal = Depends(get_current_user)):
    return leave_service.list_comments(db, current, leave_id)


@router.post("/{leave_id}/comments", response_model=schemas.LeaveCommentResponse, status_code=201)
def add_leave_comment(leave_id: int, payload: schemas.LeaveCommentCreate, db: Session = Depends(get_db),
                      current: Principal = Depends(get_current_user)):
    return leave_service.add_comment(db, current, leave_id, payload.comment)
