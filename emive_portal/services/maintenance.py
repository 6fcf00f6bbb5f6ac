"""Corrective, elective and preventive maintenance tickets."""
from __future__ import annotations

from datetime import date, datetime
from io import BytesIO
from typing import Any, Iterable, Mapping

from openpyxl import Workbook
from openpyxl.styles import Font

from emive_portal.core.logging import log_info
from emive_portal.repositories import customers as customer_repo
from emive_portal.repositories import maintenance as maintenance_repo

TICKET_TYPES = ("PREVENTIVO", "ELETIVO", "CORRETIVO")

TIPO_LABELS: dict[str, str] = {
    "PREVENTIVO": "Preventivo",
    "ELETIVO": "Eletivo",
    "CORRETIVO": "Corretivo",
}

STATUS_LABELS: dict[str, str] = {
    "AGENDADO": "Agendado",
    "EM_ANDAMENTO": "Em Andamento",
    "CONCLUIDO": "Concluído",
    "CANCELADO": "Cancelado",
    "REAGENDADO": "Reagendado",
}

REPORT_FIELDS = ("laudo_texto", "tecnico_executor", "cliente_acompanhante", "observacoes_conclusao")

EXPORT_HEADERS = (
    "Cliente",
    "Contrato",
    "Tipo",
    "Status",
    "Técnico Responsável",
    "Data Agendada",
    "Data Conclusão",
    "Equipamentos",
    "Descrição",
)


class MaintenanceError(ValueError):
    """Raised for invalid ticket input."""


def history_entry(action: str, user_name: str | None, *, when: datetime | None = None) -> dict[str, str]:
    return {
        "data": (when or datetime.utcnow()).isoformat(),
        "acao": action,
        "usuario": user_name or "Sistema",
    }


def _with_history(ticket: Mapping[str, Any], action: str, user_name: str | None) -> list[dict[str, Any]]:
    return [*ticket.get("historico", []), history_entry(action, user_name)]


def format_date(value: Any) -> str:
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    if value:
        try:
            return date.fromisoformat(str(value)[:10]).strftime("%d/%m/%Y")
        except ValueError:
            return str(value)
    return "-"


async def create_ticket(data: Mapping[str, Any], user: Mapping[str, Any]) -> dict[str, Any]:
    tipo = data.get("tipo")
    if tipo not in TICKET_TYPES:
        raise MaintenanceError("Ticket type is required")
    if not data.get("data_agendada"):
        raise MaintenanceError("Scheduled date is required")

    fields = {key: value for key, value in data.items() if value is not None}
    customer_id = fields.get("customer_id")
    if customer_id is not None:
        customer = await customer_repo.get_customer_by_id(int(customer_id))
        if not customer:
            raise MaintenanceError("Customer not found")
        fields.setdefault("contrato", customer["contrato"])
        fields.setdefault("razao_social", customer["razao_social"])
        if customer.get("praca"):
            fields.setdefault("praca", customer["praca"])
    if not fields.get("contrato") or not fields.get("razao_social"):
        raise MaintenanceError("Customer contract and name are required")

    user_name = user.get("nome")
    ticket = await maintenance_repo.create_ticket(
        **fields,
        status=fields.get("status") or "AGENDADO",
        created_by=user.get("id"),
        created_by_name=user_name,
        historico=[history_entry("Chamado criado", user_name)],
    )
    log_info("Maintenance ticket created", ticket_id=ticket["id"], tipo=tipo, user_id=user.get("id"))
    return ticket


async def update_report(
    ticket: Mapping[str, Any], fields: Mapping[str, Any], user: Mapping[str, Any]
) -> dict[str, Any]:
    updates = {key: fields[key] or None for key in REPORT_FIELDS if key in fields}
    updates["historico"] = _with_history(ticket, "Laudo e informações atualizados", user.get("nome"))
    return await maintenance_repo.update_ticket(ticket["id"], **updates)


async def change_status(
    ticket: Mapping[str, Any], status: str, user: Mapping[str, Any]
) -> dict[str, Any]:
    if status not in STATUS_LABELS:
        raise MaintenanceError(f"Unknown ticket status {status}")
    updates: dict[str, Any] = {"status": status}
    now = datetime.utcnow()
    if status == "EM_ANDAMENTO" and not ticket.get("data_inicio"):
        updates["data_inicio"] = now
    if status == "CONCLUIDO":
        updates["data_conclusao"] = now
    updates["historico"] = _with_history(
        ticket, f"Status alterado para {STATUS_LABELS[status]}", user.get("nome")
    )
    return await maintenance_repo.update_ticket(ticket["id"], **updates)


async def reschedule(
    ticket: Mapping[str, Any], new_date: datetime, user: Mapping[str, Any]
) -> dict[str, Any]:
    return await maintenance_repo.update_ticket(
        ticket["id"],
        status="REAGENDADO",
        data_agendada=new_date,
        historico=_with_history(ticket, f"Reagendado para {format_date(new_date)}", user.get("nome")),
    )


def _iso(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value or "")


def filter_tickets(
    tickets: Iterable[Mapping[str, Any]],
    *,
    search: str | None = None,
    tipo: str | None = None,
    status: str | None = None,
    praca: str | None = None,
    data_inicio: str | None = None,
    data_fim: str | None = None,
) -> list[dict[str, Any]]:
    """Apply the ticket list filters.

    Date bounds are inclusive and compared as ISO strings, so ``data_fim`` of
    ``2024-03-31`` keeps tickets scheduled at any time on that day.
    """

    needle = (search or "").strip().lower()
    end_bound = f"{data_fim}T23:59:59" if data_fim and len(data_fim) == 10 else data_fim
    result = []
    for ticket in tickets:
        if needle and not any(
            needle in str(ticket.get(column) or "").lower()
            for column in ("razao_social", "contrato", "tecnico_responsavel")
        ):
            continue
        if tipo and tipo != "all" and ticket.get("tipo") != tipo:
            continue
        if status and status != "all" and ticket.get("status") != status:
            continue
        if praca and praca != "all" and ticket.get("praca") != praca:
            continue
        scheduled = _iso(ticket.get("data_agendada"))
        if data_inicio and scheduled < data_inicio:
            continue
        if end_bound and scheduled > end_bound:
            continue
        result.append(dict(ticket))
    return result


def preventive_metrics(tickets: Iterable[Mapping[str, Any]]) -> dict[str, int]:
    preventive = [ticket for ticket in tickets if ticket.get("tipo") == "PREVENTIVO"]
    return {
        "agendados": sum(1 for ticket in preventive if ticket.get("status") == "AGENDADO"),
        "em_andamento": sum(1 for ticket in preventive if ticket.get("status") == "EM_ANDAMENTO"),
        "concluidos": sum(1 for ticket in preventive if ticket.get("status") == "CONCLUIDO"),
        "total": len(preventive),
    }


def export_filename(prefix: str = "chamados", *, today: date | None = None) -> str:
    return f"{prefix}_{(today or date.today()).isoformat()}.xlsx"


def build_tickets_workbook(tickets: Iterable[Mapping[str, Any]]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Chamados"
    sheet.append(list(EXPORT_HEADERS))
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for ticket in tickets:
        sheet.append(
            [
                ticket.get("razao_social"),
                ticket.get("contrato"),
                TIPO_LABELS.get(str(ticket.get("tipo")), ticket.get("tipo")),
                STATUS_LABELS.get(str(ticket.get("status")), ticket.get("status")),
                ticket.get("tecnico_responsavel") or "-",
                format_date(ticket.get("data_agendada")),
                format_date(ticket.get("data_conclusao")),
                ticket.get("equipamentos") or "-",
                ticket.get("descricao") or "-",
            ]
        )
    output = BytesIO()
    workbook.save(output)
    return output.getvalue()
