from __future__ import annotations

import math
from datetime import date, datetime, time
from typing import Any, Iterable, Mapping

from dateutil.relativedelta import relativedelta

from emive_portal.core.config import get_settings
from emive_portal.core.logging import log_error, log_info
from emive_portal.repositories import customers as customer_repo
from emive_portal.repositories import maintenance as maintenance_repo
from emive_portal.repositories import users as user_repo
from emive_portal.services import maintenance as maintenance_service
from emive_portal.services import notifications as notification_service

PREVENTIVE_DESCRIPTION = "Manutenção Preventiva"
REQUIRED_SCHEDULE_FIELDS = ("customer_id", "frequencia", "proxima_execucao")

FREQUENCY_STEPS: dict[str, relativedelta] = {
    "SEMANAL": relativedelta(weeks=1),
    "QUINZENAL": relativedelta(weeks=2),
    "MENSAL": relativedelta(months=1),
    "BIMESTRAL": relativedelta(months=2),
    "TRIMESTRAL": relativedelta(months=3),
    "QUADRIMESTRAL": relativedelta(months=4),
    "SEMESTRAL": relativedelta(months=6),
    "ANUAL": relativedelta(months=12),
}

FREQUENCY_LABELS: dict[str, str] = {
    "SEMANAL": "Semanal",
    "QUINZENAL": "Quinzenal",
    "MENSAL": "Mensal",
    "BIMESTRAL": "Bimestral",
    "TRIMESTRAL": "Trimestral",
    "QUADRIMESTRAL": "Quadrimestral",
    "SEMESTRAL": "Semestral",
    "ANUAL": "Anual",
}


class PreventiveScheduleError(ValueError):
    pass


def next_occurrence(current: date, frequencia: str) -> date:
    """Next execution date; month steps clamp to the end of shorter months."""

    step = FREQUENCY_STEPS.get(frequencia)
    if step is None:
        raise PreventiveScheduleError(f"Unknown frequency {frequencia}")
    return current + step


def hours_until(target: date, *, now: datetime | None = None) -> int:
    delta = datetime.combine(target, time.min) - (now or datetime.now())
    return math.trunc(delta.total_seconds() / 3600)


def is_due_soon(target: date | None, *, now: datetime | None = None, notice_hours: int | None = None) -> bool:
    if target is None:
        return False
    window = notice_hours if notice_hours is not None else get_settings().preventive_notice_hours
    remaining = hours_until(target, now=now)
    return 0 < remaining <= window


def filter_schedules(
    schedules: Iterable[Mapping[str, Any]],
    *,
    search: str | None = None,
    praca: str | None = None,
) -> list[dict[str, Any]]:
    needle = (search or "").strip().lower()
    result = []
    for schedule in schedules:
        if needle and not any(
            needle in str(schedule.get(column) or "").lower() for column in ("razao_social", "contrato")
        ):
            continue
        if praca and praca != "all" and schedule.get("praca") != praca:
            continue
        result.append(dict(schedule))
    return result


async def _resolve_links(data: dict[str, Any]) -> dict[str, Any]:
    resolved = dict(data)
    if "customer_id" in resolved:
        customer = await customer_repo.get_customer_by_id(int(resolved["customer_id"]))
        if not customer:
            raise PreventiveScheduleError("Customer not found")
        resolved["contrato"] = customer["contrato"]
        resolved["razao_social"] = customer["razao_social"]
        resolved["praca"] = customer.get("praca")
    if "supervisor_responsavel_id" in resolved:
        supervisor_id = resolved["supervisor_responsavel_id"]
        supervisor = await user_repo.get_user_by_id(int(supervisor_id)) if supervisor_id else None
        resolved["supervisor_responsavel_nome"] = supervisor.get("nome") if supervisor else None
        if not supervisor:
            resolved["supervisor_responsavel_id"] = None
    if "frequencia" in resolved and resolved["frequencia"] not in FREQUENCY_STEPS:
        raise PreventiveScheduleError(f"Unknown frequency {resolved['frequencia']}")
    return resolved


async def create_schedule(data: Mapping[str, Any], user: Mapping[str, Any]) -> dict[str, Any]:
    for field in REQUIRED_SCHEDULE_FIELDS:
        if not data.get(field):
            raise PreventiveScheduleError(f"{field} is required")
    resolved = await _resolve_links(dict(data))
    schedule = await maintenance_repo.create_schedule(
        **resolved,
        descricao=PREVENTIVE_DESCRIPTION,
        ativo=True,
        notificacao_enviada=False,
        created_by=user.get("id"),
        created_by_name=user.get("nome"),
    )
    log_info("Preventive schedule created", schedule_id=schedule["id"], user_id=user.get("id"))
    return schedule


async def update_schedule(schedule: Mapping[str, Any], data: Mapping[str, Any]) -> dict[str, Any]:
    for field in REQUIRED_SCHEDULE_FIELDS:
        if field in data and not data[field]:
            raise PreventiveScheduleError(f"{field} is required")
    resolved = await _resolve_links(dict(data))
    if "proxima_execucao" in resolved and resolved["proxima_execucao"] != schedule.get("proxima_execucao"):
        resolved["notificacao_enviada"] = False
        resolved["notificacao_enviada_at"] = None
    return await maintenance_repo.update_schedule(schedule["id"], **resolved)


async def toggle_active(schedule: Mapping[str, Any], ativo: bool) -> dict[str, Any]:
    return await maintenance_repo.update_schedule(schedule["id"], ativo=ativo)


async def register_execution(
    schedule: Mapping[str, Any],
    user: Mapping[str, Any],
    *,
    execution_date: date | None = None,
    concluded: bool = False,
) -> dict[str, Any]:
    """Record a preventive visit and roll the schedule forward.

    The next date is computed from the execution date, not from the previous
    planned date, and a PREVENTIVO ticket is opened for the visit.
    """

    executed_on = execution_date or schedule.get("proxima_execucao") or date.today()
    user_name = user.get("nome")
    scheduled_at = datetime.combine(executed_on, time(hour=8))
    ticket_fields: dict[str, Any] = {
        "customer_id": schedule.get("customer_id"),
        "contrato": schedule["contrato"],
        "razao_social": schedule["razao_social"],
        "praca": schedule.get("praca"),
        "tipo": "PREVENTIVO",
        "status": "CONCLUIDO" if concluded else "AGENDADO",
        "descricao": schedule.get("descricao") or PREVENTIVE_DESCRIPTION,
        "equipamentos": schedule.get("equipamentos"),
        "tecnico_responsavel": schedule.get("tecnico_responsavel"),
        "data_agendada": scheduled_at,
        "agenda_id": schedule["id"],
        "created_by": user.get("id"),
        "created_by_name": user_name,
        "historico": [
            maintenance_service.history_entry("Chamado preventivo gerado automaticamente", user_name)
        ],
    }
    if concluded:
        ticket_fields["data_conclusao"] = scheduled_at
    ticket = await maintenance_repo.create_ticket(
        **{key: value for key, value in ticket_fields.items() if value is not None}
    )
    updated = await maintenance_repo.update_schedule(
        schedule["id"],
        ultima_execucao=executed_on,
        proxima_execucao=next_occurrence(executed_on, schedule["frequencia"]),
        notificacao_enviada=False,
        notificacao_enviada_at=None,
    )
    log_info(
        "Preventive execution registered",
        schedule_id=schedule["id"],
        ticket_id=ticket["id"],
        next_date=str(updated.get("proxima_execucao")),
    )
    return {"schedule": updated, "ticket": ticket}


async def notify_due_schedules(*, now: datetime | None = None) -> int:
    """Notify supervisors about active schedules entering the notice window."""

    notified = 0
    for schedule in await maintenance_repo.list_unnotified_active_schedules():
        if not is_due_soon(schedule.get("proxima_execucao"), now=now):
            continue
        try:
            await notification_service.notify_preventive_due(schedule)
        except Exception as exc:  # pragma: no cover
            log_error("Preventive notification failed", schedule_id=schedule["id"], error=str(exc))
            continue
        await maintenance_repo.update_schedule(
            schedule["id"],
            notificacao_enviada=True,
            notificacao_enviada_at=datetime.utcnow(),
        )
        notified += 1
    if notified:
        log_info("Preventive due notifications sent", count=notified)
    return notified
