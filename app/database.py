from sqlalchemy import create_engine # engine kết nối tới db
from sqlalchemy.orm import declarative_base, sessionmaker
from app.core.config import settings

# sqlite cần tắt check_same_thread vì FastAPI chạy sync endpoint trên threadpool
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)

# commit thủ công, tắt autoflush
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base() # base class cho các model ORM

# lấy DB session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
