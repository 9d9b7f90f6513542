# app/core/config.py
from typing import List
from pydantic_settings import BaseSettings
from datetime import time, datetime

class Settings(BaseSettings):
    PROJECT_NAME: str = "In-house Management API"
    DATABASE_URL: str = "sqlite:///./inhouse_management.db"

    # Auth
    JWT_SECRET: str = "change_me_in_env"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Email (để trống thì bỏ qua gửi mail)
    SMTP_SERVER: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_EMAIL: str = ""
    SMTP_PASSWORD: str = ""

    WORK_START_TIME: str = "09:00:00"
    UPLOAD_DIR: str = "./uploads"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    def get_work_start_time(self) -> time:
        # "09:00:00" -> time(9, 0, 0)
        try:
            return datetime.strptime(self.WORK_START_TIME, "%H:%M:%S").time()
        except ValueError:
            return time(9, 0, 0)

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
