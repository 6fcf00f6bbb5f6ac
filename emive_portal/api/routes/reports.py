from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from emive_portal.api.dependencies.auth import require_engineering, require_maintenance_manager
from emive_portal.api.dependencies.database import require_database
from emive_portal.schemas.reports import EngineeringReport, MaintenanceReport
from emive_portal.services import reports as report_service

router = APIRouter(prefix="/api/reports", tags=["Reports"])


@router.get("/engineering", response_model=EngineeringReport)
async def engineering_report(
    periodo: str = Query(default="30"),
    data_inicio: Optional[date] = Query(default=None),
    data_fim: Optional[date] = Query(default=None),
    _: None = Depends(require_database),
    __: dict = Depends(require_engineering),
):
    start, end = report_service.resolve_period(periodo, data_inicio=data_inicio, data_fim=data_fim)
    return await report_service.build_engineering_report(start, end)


@router.get("/maintenance", response_model=MaintenanceReport)
async def maintenance_report(
    periodo: str = Query(default="30"),
    data_inicio: Optional[date] = Query(default=None),
    data_fim: Optional[date] = Query(default=None),
    _: None = Depends(require_database),
    __: dict = Depends(require_maintenance_manager),
):
    start, end = report_service.resolve_period(periodo, data_inicio=data_inicio, data_fim=data_fim)
    return await report_service.build_maintenance_report(start, end)
