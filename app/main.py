import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import database
from app.api.v1 import api as v1_api
from app.core.config import settings
from app.core.errors import register_exception_handlers

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("app")


# --- LIFESPAN (KHỞI ĐỘNG/TẮT) ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: tạo bảng nếu chưa có
    logger.info("System starting...")
    database.Base.metadata.create_all(bind=database.engine)

    yield

    logger.info("System shutting down...")


# --- KHỞI TẠO APP ---
app = FastAPI(
    title=settings.PROJECT_NAME,
    lifespan=lifespan
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# --- ĐĂNG KÝ ROUTER ---
app.include_router(
    v1_api.api_router,
    prefix="/api/v1"
)
