from __future__ import annotations

from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse

from emive_portal.api.dependencies.auth import get_current_user, require_maintenance_manager
from emive_portal.api.dependencies.database import require_database
from emive_portal.repositories import maintenance as maintenance_repo
from emive_portal.schemas.maintenance import (
    ExecutionRequest,
    ExecutionResponse,
    ScheduleCreate,
    ScheduleResponse,
    ScheduleToggle,
    ScheduleUpdate,
    TicketCreate,
    TicketList,
    TicketReportUpdate,
    TicketReschedule,
    TicketResponse,
    TicketStatusUpdate,
)
from emive_portal.services import audit as audit_service
from emive_portal.services import maintenance as maintenance_service
from emive_portal.services import preventive as preventive_service

router = APIRouter(prefix="/api/maintenance", tags=["Maintenance"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _bad_request(exc: ValueError) -> NoReturn:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


async def _get_ticket_or_404(ticket_id: int) -> dict:
    ticket = await maintenance_repo.get_ticket(ticket_id)
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    return ticket


async def _get_schedule_or_404(schedule_id: int) -> dict:
    schedule = await maintenance_repo.get_schedule(schedule_id)
    if not schedule:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Preventive schedule not found")
    return schedule


async def _filtered_tickets(**filters) -> list[dict]:
    tickets = await maintenance_repo.list_tickets()
    return maintenance_service.filter_tickets(tickets, **filters)


@router.get("/tickets", response_model=TicketList)
async def list_tickets(
    search: Optional[str] = Query(default=None),
    tipo: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    praca: Optional[str] = Query(default=None),
    data_inicio: Optional[str] = Query(default=None),
    data_fim: Optional[str] = Query(default=None),
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    tickets = await maintenance_repo.list_tickets()
    items = maintenance_service.filter_tickets(
        tickets,
        search=search,
        tipo=tipo,
        status=status_filter,
        praca=praca,
        data_inicio=data_inicio,
        data_fim=data_fim,
    )
    return {"items": items, "metrics": maintenance_service.preventive_metrics(tickets)}


@router.get("/tickets/export")
async def export_tickets(
    request: Request,
    search: Optional[str] = Query(default=None),
    tipo: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    praca: Optional[str] = Query(default=None),
    data_inicio: Optional[str] = Query(default=None),
    data_fim: Optional[str] = Query(default=None),
    _: None = Depends(require_database),
    current_user: dict = Depends(get_current_user),
):
    tickets = await _filtered_tickets(
        search=search,
        tipo=tipo,
        status=status_filter,
        praca=praca,
        data_inicio=data_inicio,
        data_fim=data_fim,
    )
    content = maintenance_service.build_tickets_workbook(tickets)
    filename = maintenance_service.export_filename()
    await audit_service.log_action(
        action="maintenance.export",
        user_id=current_user["id"],
        entity_type="maintenance_ticket",
        metadata={"filename": filename, "record_count": len(tickets)},
        request=request,
    )
    return StreamingResponse(
        iter([content]),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/tickets/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    ticket_id: int,
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    return await _get_ticket_or_404(ticket_id)


@router.post("/tickets", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    payload: TicketCreate,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_maintenance_manager),
):
    try:
        return await maintenance_service.create_ticket(payload.model_dump(), current_user)
    except ValueError as exc:
        _bad_request(exc)


@router.patch("/tickets/{ticket_id}/report", response_model=TicketResponse)
async def update_ticket_report(
    ticket_id: int,
    payload: TicketReportUpdate,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_maintenance_manager),
):
    ticket = await _get_ticket_or_404(ticket_id)
    return await maintenance_service.update_report(
        ticket, payload.model_dump(exclude_unset=True), current_user
    )


@router.post("/tickets/{ticket_id}/status", response_model=TicketResponse)
async def change_ticket_status(
    ticket_id: int,
    payload: TicketStatusUpdate,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_maintenance_manager),
):
    ticket = await _get_ticket_or_404(ticket_id)
    try:
        return await maintenance_service.change_status(ticket, payload.status, current_user)
    except ValueError as exc:
        _bad_request(exc)


@router.post("/tickets/{ticket_id}/reschedule", response_model=TicketResponse)
async def reschedule_ticket(
    ticket_id: int,
    payload: TicketReschedule,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_maintenance_manager),
):
    ticket = await _get_ticket_or_404(ticket_id)
    return await maintenance_service.reschedule(ticket, payload.data_agendada, current_user)


def _with_due_flag(schedule: dict) -> dict:
    enriched = dict(schedule)
    enriched["due_soon"] = bool(schedule.get("ativo")) and preventive_service.is_due_soon(
        schedule.get("proxima_execucao")
    )
    return enriched


@router.get("/schedules", response_model=list[ScheduleResponse])
async def list_schedules(
    search: Optional[str] = Query(default=None),
    praca: Optional[str] = Query(default=None),
    _: None = Depends(require_database),
    __: dict = Depends(get_current_user),
):
    schedules = await maintenance_repo.list_schedules()
    filtered = preventive_service.filter_schedules(schedules, search=search, praca=praca)
    return [_with_due_flag(schedule) for schedule in filtered]


@router.post("/schedules", response_model=ScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    payload: ScheduleCreate,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_maintenance_manager),
):
    try:
        created = await preventive_service.create_schedule(payload.model_dump(exclude_none=True), current_user)
    except ValueError as exc:
        _bad_request(exc)
    return _with_due_flag(created)


@router.patch("/schedules/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    schedule_id: int,
    payload: ScheduleUpdate,
    _: None = Depends(require_database),
    __: dict = Depends(require_maintenance_manager),
):
    schedule = await _get_schedule_or_404(schedule_id)
    try:
        updated = await preventive_service.update_schedule(schedule, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        _bad_request(exc)
    return _with_due_flag(updated)


@router.post("/schedules/{schedule_id}/toggle", response_model=ScheduleResponse)
async def toggle_schedule(
    schedule_id: int,
    payload: ScheduleToggle,
    _: None = Depends(require_database),
    __: dict = Depends(require_maintenance_manager),
):
    schedule = await _get_schedule_or_404(schedule_id)
    return _with_due_flag(await preventive_service.toggle_active(schedule, payload.ativo))


@router.delete("/schedules/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(
    schedule_id: int,
    _: None = Depends(require_database),
    __: dict = Depends(require_maintenance_manager),
):
    await _get_schedule_or_404(schedule_id)
    await maintenance_repo.delete_schedule(schedule_id)
    return None


@router.post("/schedules/{schedule_id}/execute", response_model=ExecutionResponse)
async def register_schedule_execution(
    schedule_id: int,
    payload: ExecutionRequest,
    _: None = Depends(require_database),
    current_user: dict = Depends(require_maintenance_manager),
):
    schedule = await _get_schedule_or_404(schedule_id)
    result = await preventive_service.register_execution(
        schedule,
        current_user,
        execution_date=payload.execution_date,
        concluded=payload.concluded,
    )
    return {"schedule": _with_due_flag(result["schedule"]), "ticket": result["ticket"]}
