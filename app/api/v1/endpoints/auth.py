from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_current_user
from app.core.security import create_access_token
from app.database import get_db
from app.schema import schemas
from app.services.activity_log_service import activity_log_service
from app.services.employee_service import employee_service

router = APIRouter()

# Login
@router.post("/login", response_model=schemas.LoginResponse)
def login(user_in: schemas.UserLogin, db: Session = Depends(get_db)):
    user = employee_service.authenticate(db, user_in.email, user_in.password)
    token = create_access_token(user.id, user.email, user.role)
    activity_log_service.record(user.id, "login", "auth", "User logged in")
    return {
        "token": token,
        "user": {"id": user.id, "role": user.role, "name": user.name, "email": user.email},
    }

# Thông tin người đang đăng nhập
@router.get("/me", response_model=schemas.PrincipalResponse)
def me(current: Principal = Depends(get_current_user)):
    return {"id": current.id, "role": current.role, "name": current.name, "email": current.email}
