"""Engineering throughput and maintenance ticket reports over a period."""
from __future__ import annotations

import calendar
import math
from collections import Counter
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Mapping, Sequence

from emive_portal.repositories import maintenance as maintenance_repo
from emive_portal.repositories import projects as project_repo
from emive_portal.repositories import users as user_repo

DEFAULT_PERIOD_DAYS = 30
DESIGNER_ROLE = "projetos"


def resolve_period(
    periodo: str | None,
    *,
    data_inicio: date | None = None,
    data_fim: date | None = None,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """Turn a period selector into an inclusive ``(start, end)`` range.

    ``periodo`` is a number of days back from now, ``mes_atual`` or ``custom``.
    A custom period without both dates falls back to the last 30 days.
    """

    current = now or datetime.utcnow()
    if periodo == "custom" and data_inicio and data_fim:
        return datetime.combine(data_inicio, time.min), datetime.combine(data_fim, time(23, 59, 59))
    if periodo == "mes_atual":
        last_day = calendar.monthrange(current.year, current.month)[1]
        start = datetime(current.year, current.month, 1)
        end = datetime.combine(date(current.year, current.month, last_day), time.max)
        return start, end
    try:
        days = int(periodo) if periodo else DEFAULT_PERIOD_DAYS
    except ValueError:
        days = DEFAULT_PERIOD_DAYS
    if days <= 0:
        days = DEFAULT_PERIOD_DAYS
    return current - timedelta(days=days), current


def _in_range(value: Any, start: datetime, end: datetime) -> bool:
    if value is None:
        return False
    if isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return False
    return start <= value <= end


def _whole_days(later: datetime, earlier: datetime) -> int:
    return math.trunc((later - earlier).total_seconds() / 86400)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def engineering_figures(
    projects: Sequence[Mapping[str, Any]], start: datetime, end: datetime
) -> dict[str, Any]:
    received = [p for p in projects if _in_range(p.get("engineering_received_at"), start, end)]
    opened = [p for p in projects if _in_range(p.get("created_at"), start, end)]
    completed = [p for p in projects if _in_range(p.get("engineering_completed_at"), start, end)]
    durations = [
        _whole_days(p["engineering_completed_at"], p["engineering_received_at"])
        for p in completed
        if isinstance(p.get("engineering_received_at"), datetime)
        and isinstance(p.get("engineering_completed_at"), datetime)
    ]
    return {
        "recebidos": len(received),
        "abertos": len(opened),
        "concluidos": len(completed),
        "tempo_medio_dias": _round_half_up(sum(durations) / len(durations)) if durations else None,
    }


def engineering_report(
    projects: Sequence[Mapping[str, Any]],
    designers: Iterable[Mapping[str, Any]],
    start: datetime,
    end: datetime,
) -> dict[str, Any]:
    figures = engineering_figures(projects, start, end)
    return {
        "inicio": start,
        "fim": end,
        "totais": figures,
        "projetistas": [
            {"id": designer["id"], "nome": designer.get("nome"), **figures} for designer in designers
        ],
    }


def maintenance_report(
    tickets: Iterable[Mapping[str, Any]], start: datetime, end: datetime
) -> dict[str, Any]:
    in_period = [ticket for ticket in tickets if _in_range(ticket.get("data_agendada"), start, end)]
    return {
        "inicio": start,
        "fim": end,
        "total": len(in_period),
        "por_status": dict(Counter(str(ticket.get("status")) for ticket in in_period)),
        "por_tipo": dict(Counter(str(ticket.get("tipo")) for ticket in in_period)),
        "por_praca": dict(Counter(str(ticket.get("praca") or "Sem praça") for ticket in in_period)),
    }


async def build_engineering_report(start: datetime, end: datetime) -> dict[str, Any]:
    projects = await project_repo.list_projects(exclude_drafts=True)
    designers = await user_repo.list_users(role=DESIGNER_ROLE)
    return engineering_report(projects, designers, start, end)


async def build_maintenance_report(start: datetime, end: datetime) -> dict[str, Any]:
    tickets = await maintenance_repo.list_tickets_between(start, end)
    return maintenance_report(tickets, start, end)
