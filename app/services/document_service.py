# app/services/document_service.py
import logging
import os
import re
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from app.api.deps import Principal
from app.core import permissions as perms
from app.core.config import settings
from app.core.errors import Forbidden, NotFound, ValidationError
from app.models.models import EmployeeDocument, User
from app.services import guards
from app.services.activity_log_service import activity_log_service

logger = logging.getLogger("documents")

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024
_KEY_RE = re.compile(r"^[0-9a-f]{32}$")


class BlobStore:
    """Nơi lưu nội dung file. put() trả về key, DB chỉ lưu key."""

    def put(self, data: bytes) -> str:
        raise NotImplementedError

    def get(self, key: str) -> bytes:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class LocalBlobStore(BlobStore):

    def __init__(self, root: str):
        self.root = str(root)

    def _path(self, key: str) -> str:
        if not _KEY_RE.match(key or ""):
            raise ValidationError("Invalid storage key")
        return os.path.join(self.root, key)

    def put(self, data: bytes) -> str:
        os.makedirs(self.root, exist_ok=True)
        key = uuid.uuid4().hex
        with open(self._path(key), "wb") as f:
            f.write(data)
        return key

    def get(self, key: str) -> bytes:
        path = self._path(key)
        if not os.path.exists(path):
            raise NotFound("Document content not found")
        with open(path, "rb") as f:
            return f.read()

    def delete(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)


class DocumentService:

    def __init__(self, store: Optional[BlobStore] = None):
        self.store = store or LocalBlobStore(settings.UPLOAD_DIR)

    def _get_or_404(self, db: Session, document_id: int) -> EmployeeDocument:
        document = db.query(EmployeeDocument).filter(EmployeeDocument.id == document_id).first()
        if not document:
            raise NotFound("Document not found")
        return document

    def upload(self, db: Session, actor: Principal, employee_id: int, document_type: str,
               file_name: str, content_type: Optional[str], data: bytes) -> EmployeeDocument:
        if not perms.has_permission(actor.role, perms.DOCUMENT_MANAGE_ROLES):
            raise Forbidden("You are not allowed to upload documents")
        if not document_type or not document_type.strip():
            raise ValidationError("document_type is required")
        if not data:
            raise ValidationError("File is empty")
        if len(data) > MAX_DOCUMENT_BYTES:
            raise ValidationError("File is too large", {"max_bytes": MAX_DOCUMENT_BYTES})
        if not db.query(User.id).filter(User.id == employee_id).first():
            raise NotFound("Employee not found")

        key = self.store.put(data)
        try:
            document = EmployeeDocument(
                employee_id=employee_id,
                document_type=document_type.strip(),
                file_name=os.path.basename(file_name or "document"),
                content_type=content_type,
                storage_key=key,
                uploaded_by=actor.id,
            )
            db.add(document)
            db.commit()
            db.refresh(document)
        except Exception:
            db.rollback()
            # không để file mồ côi khi ghi DB lỗi
            self.store.delete(key)
            raise

        logger.info(f"[DOC] #{document.id} uploaded for employee={employee_id} by user={actor.id}")
        activity_log_service.record(actor.id, "upload", "employee_documents",
                                    f"Document #{document.id} for employee {employee_id}")
        return document

    def list_documents(self, db: Session, actor: Principal, employee_id: Optional[int] = None) -> List[EmployeeDocument]:
        query = db.query(EmployeeDocument)
        if employee_id:
            if not guards.can_view_documents_of(db, actor, employee_id):
                raise Forbidden("You cannot view documents of this employee")
            query = query.filter(EmployeeDocument.employee_id == employee_id)
        elif perms.has_permission(actor.role, perms.DOCUMENT_MANAGE_ROLES):
            pass
        elif perms.has_permission(actor.role, perms.MANAGER_ROLES):
            visible_ids = [actor.id] + guards.direct_report_ids(db, actor)
            query = query.filter(EmployeeDocument.employee_id.in_(visible_ids))
        else:
            query = query.filter(EmployeeDocument.employee_id == actor.id)
        return query.order_by(EmployeeDocument.created_at.desc(), EmployeeDocument.id.desc()).all()

    def download(self, db: Session, actor: Principal, document_id: int):
        document = self._get_or_404(db, document_id)
        # kiểm tra quyền trước khi đọc nội dung
        if not guards.can_view_documents_of(db, actor, document.employee_id):
            raise Forbidden("You cannot download this document")
        return document, self.store.get(document.storage_key)

    def delete(self, db: Session, actor: Principal, document_id: int) -> None:
        if not perms.has_permission(actor.role, perms.DOCUMENT_MANAGE_ROLES):
            raise Forbidden("You are not allowed to delete documents")
        document = self._get_or_404(db, document_id)
        key = document.storage_key
        try:
            db.delete(document)
            db.commit()
        except Exception:
            db.rollback()
            raise

        self.store.delete(key)
        activity_log_service.record(actor.id, "delete", "employee_documents", f"Document #{document_id}")

document_service = DocumentService()
