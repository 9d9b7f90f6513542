from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_current_user
from app.database import get_db
from app.schema import schemas
from app.services.task_service import task_service

router = APIRouter()

# ===== Task CRUD =====
@router.get("/", response_model=List[schemas.TaskResponse])
def read_tasks(
    status: Optional[str] = None,
    assigned_to: Optional[int] = None,
    created_by: Optional[int] = None,
    db: Session = Depends(get_db),
    current: Principal = Depends(get_current_user),
):
    return task_service.list_tasks(db, current, status, assigned_to, created_by)


@router.post("/", response_model=schemas.TaskResponse, status_code=201)
def create_task(payload: schemas.TaskCreate, db: Session = Depends(get_db),
                current: Principal = Depends(get_current_user)):
    return task_service.create(db, current, payload)


@router.get("/{task_id}", response_model=schemas.TaskDetailResponse)
def read_task(task_id: int, db: Session = Depends(get_db), current: Principal = Depends(get_current_user)):
    return task_service.get(db, current, task_id)


@router.put("/{task_id}", response_model=schemas.TaskResponse)
def update_task(task_id: int, payload: schemas.TaskUpdate, db: Session = Depends(get_db),
                current: Principal = Depends(get_current_user)):
    return task_service.update(db, current, task_id, payload)


@router.delete("/{task_id}")
def delete_task(task_id: int, db: Session = Depends(get_db), current: Principal = Depends(get_current_user)):
    task_service.delete(db, current, task_id)
    return {"message": "Task deleted", "id": task_id}


# ===== Workflow đổi trạng thái =====
@router.post("/{task_id}/status", response_model=schemas.StatusChangeResult)
@router.post("/{task_id}/status-requests", response_model=schemas.StatusChangeResult)
def change_task_status(task_id: int, payload: schemas.StatusChangeCreate, db: Session = Depends(get_db),
                       current: Principal = Depends(get_current_user)):
    """
    Người có quyền sửa task: đổi ngay (applied = true).
    Người được giao: tạo yêu cầu chờ duyệt (applied = false, request = ...).
    """
    result = task_service.request_status_change(db, current, task_id, payload.requested_status, payload.reason)
    request = result["request"]
    return schemas.StatusChangeResult(
        applied=result["applied"],
        task_status=result["task_status"],
        request=schemas.StatusRequestResponse.model_validate(request) if request is not None else None,
    )


@router.get("/{task_id}/status-requests", response_model=List[schemas.StatusRequestResponse])
def read_status_requests(task_id: int, db: Session = Depends(get_db),
                         current: Principal = Depends(get_current_user)):
    return task_service.list_status_requests(db, current, task_id)


@router.post("/{task_id}/status-requests/{request_id}/resolve", response_model=schemas.StatusRequestResponse)
def resolve_status_request(task_id: int, request_id: int, payload: schemas.StatusRequestResolve,
                           db: Session = Depends(get_db), current: Principal = Depends(get_current_user)):
    """Body: { "action": "approve" | "reject" | "reassign", "comment": "...", "reassigned_to": 12 }"""
    return task_service.resolve_status_request(
        db, current, task_id, request_id, payload.action, payload.comment, payload.reassigned_to,
    )


# ===== Subtask =====
@router.post("/{task_id}/subtasks", response_model=schemas.SubtaskResponse, status_code=201)
def add_subtask(task_id: int, payload: schemas.SubtaskCreate, db: Session = Depends(get_db),
                current: Principal = Depends(get_current_user)):
    return task_service.add_subtask(db, current, task_id, payload)


@router.put("/{task_id}/subtasks/{subtask_id}", response_model=schemas.TaskResponse)
def update_subtask(task_id: int, subtask_id: int, payload: schemas.SubtaskUpdate, db: Session = Depends(get_db),
                   current: Principal = Depends(get_current_user)):
    return task_service.update_subtask(db, current, task_id, subtask_id, payload)


# ===== Comment / Rating =====
@router.get("/{task_id}/comments", response_model=List[schemas.TaskCommentResponse])
def read_task_comments(task_id: int, db: Session = Depends(get_db),
                       current: Principal = Depends(get_current_user)):
    return task_service.list_comments(db, current, task_id)


@router.post("/{task_id}/comments", response_model=schemas.TaskCommentResponse, status_code=201)
def add_task_comment(task_id: int, payload: schemas.TaskCommentCreate, db: Session = Depends(get_db),
                     current: Principal = Depends(get_current_user)):
    return task_service.add_comment(db, current, task_id, payload.comment)


@router.post("/{task_id}/ratings", response_model=schemas.TaskRatingResponse)
def rate_task(task_id: int, payload: schemas.TaskRatingCreate, db: Session = Depends(get_db),
              current: Principal = Depends(get_current_user)):
    return task_service.rate(db, current, task_id, payload)


# ===== Report =====
@router.get("/{task_id}/reports", response_model=List[schemas.TaskReportResponse])
def read_task_reports(task_id: int, db: Session = Depends(get_db),
                      current: Principal = Depends(get_current_user)):
    return task_service.list_reports(db, current, task_id)


@router.post("/{task_id}/reports", response_model=schemas.TaskReportResponse, status_code=201)
def submit_task_report(task_id: int, payload: schemas.TaskReportCreate, db: Session = Depends(get_db),
                       current: Principal = Depends(get_current_user)):
    """Body: { "report_text": "...", "working_links": ["https://..."], "completion_files": ["..."] }"""
    return task_service.submit_report(db, current, task_id, payload)
