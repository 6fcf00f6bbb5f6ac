from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Optional

from emive_portal.core.database import db

_TICKET_DATETIME_FIELDS = (
    "data_agendada",
    "data_previsao_conclusao",
    "data_inicio",
    "data_conclusao",
    "created_at",
    "updated_at",
)


def _coerce_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return None


def _coerce_date(value: Any) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _normalise_ticket(row: dict[str, Any]) -> dict[str, Any]:
    ticket = dict(row)
    ticket["id"] = int(ticket["id"])
    for field in ("customer_id", "agenda_id", "created_by"):
        if ticket.get(field) is not None:
            ticket[field] = int(ticket[field])
    ticket["is_auditoria"] = bool(int(ticket.get("is_auditoria") or 0))
    for field in _TICKET_DATETIME_FIELDS:
        if field in ticket:
            ticket[field] = _coerce_datetime(ticket[field])
    historico = ticket.get("historico")
    if isinstance(historico, (str, bytes)):
        try:
            historico = json.loads(historico)
        except ValueError:
            historico = []
    ticket["historico"] = list(historico or [])
    return ticket


def _normalise_schedule(row: dict[str, Any]) -> dict[str, Any]:
    schedule = dict(row)
    schedule["id"] = int(schedule["id"])
    for field in ("customer_id", "supervisor_responsavel_id", "created_by"):
        if schedule.get(field) is not None:
            schedule[field] = int(schedule[field])
    for flag in ("ativo", "notificacao_enviada"):
        schedule[flag] = bool(int(schedule.get(flag) or 0))
    for field in ("proxima_execucao", "ultima_execucao"):
        schedule[field] = _coerce_date(schedule.get(field))
    for field in ("notificacao_enviada_at", "created_at", "updated_at"):
        if field in schedule:
            schedule[field] = _coerce_datetime(schedule[field])
    return schedule


def _prepare(data: dict[str, Any]) -> dict[str, Any]:
    prepared = dict(data)
    if "historico" in prepared:
        prepared["historico"] = json.dumps(prepared["historico"] or [], default=str)
    for flag in ("is_auditoria", "ativo", "notificacao_enviada"):
        if prepared.get(flag) is not None:
            prepared[flag] = 1 if prepared[flag] else 0
    return prepared


async def _insert(table: str, data: dict[str, Any]) -> int:
    prepared = _prepare(data)
    columns = ", ".join(prepared.keys())
    placeholders = ", ".join(["%s"] * len(prepared))
    return await db.execute_returning_lastrowid(
        f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
        tuple(prepared.values()),
    )


async def _update(table: str, record_id: int, updates: dict[str, Any]) -> None:
    prepared = _prepare(updates)
    if not prepared:
        return
    assignments = ", ".join(f"{column} = %s" for column in prepared)
    await db.execute(
        f"UPDATE {table} SET {assignments}, updated_at = %s WHERE id = %s",
        (*prepared.values(), datetime.utcnow(), record_id),
    )


async def get_ticket(ticket_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM manutencao_chamados WHERE id = %s", (ticket_id,))
    return _normalise_ticket(row) if row else None


async def list_tickets() -> list[dict[str, Any]]:
    rows = await db.fetch_all(
        "SELECT * FROM manutencao_chamados ORDER BY data_agendada DESC, id DESC"
    )
    return [_normalise_ticket(row) for row in rows]


async def list_tickets_between(start: datetime, end: datetime) -> list[dict[str, Any]]:
    rows = await db.fetch_all(
        "SELECT * FROM manutencao_chamados WHERE data_agendada >= %s AND data_agendada <= %s",
        (start, end),
    )
    return [_normalise_ticket(row) for row in rows]


async def create_ticket(**data: Any) -> dict[str, Any]:
    data.setdefault("created_at", datetime.utcnow())
    data.setdefault("updated_at", datetime.utcnow())
    ticket_id = await _insert("manutencao_chamados", data)
    created = await get_ticket(ticket_id)
    if not created:
        raise RuntimeError("Failed to create maintenance ticket")
    return created


async def update_ticket(ticket_id: int, **updates: Any) -> dict[str, Any]:
    await _update("manutencao_chamados", ticket_id, updates)
    updated = await get_ticket(ticket_id)
    if not updated:
        raise ValueError("Maintenance ticket not found after update")
    return updated


async def get_schedule(schedule_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one(
        "SELECT * FROM manutencao_agendas_preventivas WHERE id = %s", (schedule_id,)
    )
    return _normalise_schedule(row) if row else None


async def list_schedules(*, active_only: bool = False) -> list[dict[str, Any]]:
    where = "WHERE ativo = 1" if active_only else ""
    rows = await db.fetch_all(
        f"SELECT * FROM manutencao_agendas_preventivas {where} ORDER BY proxima_execucao, id"
    )
    return [_normalise_schedule(row) for row in rows]


async def list_unnotified_active_schedules() -> list[dict[str, Any]]:
    rows = await db.fetch_all(
        """
        SELECT * FROM manutencao_agendas_preventivas
        WHERE ativo = 1 AND notificacao_enviada = 0
        ORDER BY proxima_execucao, id
        """
    )
    return [_normalise_schedule(row) for row in rows]


async def create_schedule(**data: Any) -> dict[str, Any]:
    data.setdefault("created_at", datetime.utcnow())
    data.setdefault("updated_at", datetime.utcnow())
    schedule_id = await _insert("manutencao_agendas_preventivas", data)
    created = await get_schedule(schedule_id)
    if not created:
        raise RuntimeError("Failed to create preventive schedule")
    return created


async def update_schedule(schedule_id: int, **updates: Any) -> dict[str, Any]:
    await _update("manutencao_agendas_preventivas", schedule_id, updates)
    updated = await get_schedule(schedule_id)
    if not updated:
        raise ValueError("Preventive schedule not found after update")
    return updated


async def delete_schedule(schedule_id: int) -> None:
    await db.execute("DELETE FROM manutencao_agendas_preventivas WHERE id = %s", (schedule_id,))
