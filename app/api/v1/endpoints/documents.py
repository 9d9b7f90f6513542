from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_current_user
from app.database import get_db
from app.schema import schemas
from app.services.document_service import document_service

router = APIRouter()


@router.get("/", response_model=List[schemas.EmployeeDocumentResponse])
def read_documents(employee_id: Optional[int] = None, db: Session = Depends(get_db),
                   current: Principal = Depends(get_current_user)):
    return document_service.list_documents(db, current, employee_id)


@router.post("/", response_model=schemas.EmployeeDocumentResponse, status_code=201)
async def upload_document(
    employee_id: int = Form(...),
    document_type: str = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current: Principal = Depends(get_current_user),
):
    data = await file.read()
    return document_service.upload(db, current, employee_id, document_type, file.filename,
                                   file.content_type, data)


@router.get("/{document_id}/download")
def download_document(document_id: int, db: Session = Depends(get_db),
                      current: Principal = Depends(get_current_user)):
    document, data = document_service.download(db, current, document_id)
    return Response(
        content=data,
        media_type=document.content_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{document.file_name}"'},
    )


@router.delete("/{document_id}")
def delete_document(document_id: int, db: Session = Depends(get_db),
                    current: Principal = Depends(get_current_user)):
    document_service.delete(db, current, document_id)
    return {"message": "Document deleted", "id": document_id}
