from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_current_user, require_roles
from app.core import permissions as perms
from app.database import get_db
from app.schema import schemas
from app.services.metrics_service import metrics_service

# 2 router: /kpi và /kri
kpi_router = APIRouter()
kri_router = APIRouter()

metric_viewer = require_roles(*perms.METRIC_VIEW_ROLES)
metric_admin = require_roles(*perms.METRIC_MANAGE_ROLES)
metric_calculator = require_roles(*perms.METRIC_CALCULATE_ROLES)


# ===== KPI =====
@kpi_router.get("/definitions", response_model=List[schemas.KPIDefinitionResponse])
def read_kpi_definitions(include_inactive: bool = False, db: Session = Depends(get_db),
                         current: Principal = Depends(metric_viewer)):
    return metrics_service.list_kpi_definitions(db, include_inactive)


@kpi_router.post("/definitions", response_model=schemas.KPIDefinitionResponse, status_code=201)
def create_kpi_definition(payload: schemas.KPIDefinitionCreate, db: Session = Depends(get_db),
                          current: Principal = Depends(metric_admin)):
    return metrics_service.create_kpi_definition(db, current, payload)


@kpi_router.post("/calculate", response_model=List[schemas.KPIMetricResponse])
def calculate_kpis(payload: schemas.MetricCalculateRequest, db: Session = Depends(get_db),
                   current: Principal = Depends(metric_calculator)):
    """
    Body: { "definition_id": 1, "user_id": 42, "period_type": "weekly",
            "period_start": "2025-03-01", "period_end": "2025-03-31" }
    Bỏ trống period_start/period_end -> kỳ hiện tại.
    """
    return metrics_service.calculate_kpis(db, current, payload)


@kpi_router.get("/metrics", response_model=List[schemas.KPIMetricResponse])
def read_kpi_metrics(
    definition_id: Optional[int] = None,
    user_id: Optional[int] = None,
    department: Optional[str] = None,
    period_type: Optional[str] = None,
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
    db: Session = Depends(get_db),
    current: Principal = Depends(get_current_user),
):
    return metrics_service.list_kpi_metrics(db, current, definition_id, user_id, department,
                                            period_type, period_start, period_end)


# ===== KRI =====
@kri_router.get("/definitions", response_model=List[schemas.KRIDefinitionResponse])
def read_kri_definitions(include_inactive: bool = False, db: Session = Depends(get_db),
                         current: Principal = Depends(metric_viewer)):
    return metrics_service.list_kri_definitions(db, include_inactive)


@kri_router.post("/definitions", response_model=schemas.KRIDefinitionResponse, status_code=201)
def create_kri_definition(payload: schemas.KRIDefinitionCreate, db: Session = Depends(get_db),
                          current: Principal = Depends(metric_admin)):
    return metrics_service.create_kri_definition(db, current, payload)


@kri_router.post("/calculate", response_model=List[schemas.KRIMetricResponse])
def calculate_kris(payload: schemas.MetricCalculateRequest, db: Session = Depends(get_db),
                   current: Principal = Depends(metric_calculator)):
    return metrics_service.calculate_kris(db, current, payload)


@kri_router.get("/metrics", response_model=List[schemas.KRIMetricResponse])
def read_kri_metrics(
    definition_id: Optional[int] = None,
    user_id: Optional[int] = None,
    department: Optional[str] = None,
    period_type: Optional[str] = None,
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
    db: Session = Depends(get_db),
    current: Principal = Depends(get_current_user),
):
    return metrics_service.list_kri_metrics(db, current, definition_id, user_id, department,
                                            period_type, period_start, period_end)
