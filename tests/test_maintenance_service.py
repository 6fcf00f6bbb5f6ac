from datetime import date, datetime
from io import BytesIO

import pytest
from openpyxl import load_workbook

from emive_portal.repositories import customers as customer_repo
from emive_portal.repositories import maintenance as maintenance_repo
from emive_portal.services import maintenance as maintenance_service


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _ticket(**overrides):
    base = {
        "id": 1,
        "contrato": "C-1",
        "razao_social": "Residencial Sol",
        "tipo": "CORRETIVO",
        "status": "AGENDADO",
        "praca": "BH",
        "tecnico_responsavel": "Carlos",
        "data_agendada": datetime(2024, 3, 15, 9, 30),
        "historico": [],
    }
    base.update(overrides)
    return base


def test_filter_tickets_by_search_type_and_status():
    tickets = [
        _ticket(id=1),
        _ticket(id=2, tipo="PREVENTIVO", razao_social="Torre Lua"),
        _ticket(id=3, status="CONCLUIDO", tecnico_responsavel="Marcos"),
    ]

    assert [t["id"] for t in maintenance_service.filter_tickets(tickets, search="lua")] == [2]
    assert [t["id"] for t in maintenance_service.filter_tickets(tickets, search="marcos")] == [3]
    assert [t["id"] for t in maintenance_service.filter_tickets(tickets, tipo="PREVENTIVO")] == [2]
    assert [t["id"] for t in maintenance_service.filter_tickets(tickets, status="CONCLUIDO")] == [3]
    assert len(maintenance_service.filter_tickets(tickets, tipo="all", status="all")) == 3


def test_filter_tickets_end_date_includes_whole_day():
    tickets = [
        _ticket(id=1, data_agendada=datetime(2024, 3, 31, 18, 0)),
        _ticket(id=2, data_agendada=datetime(2024, 4, 1, 8, 0)),
        _ticket(id=3, data_agendada=datetime(2024, 2, 28, 8, 0)),
    ]

    filtered = maintenance_service.filter_tickets(
        tickets, data_inicio="2024-03-01", data_fim="2024-03-31"
    )

    assert [t["id"] for t in filtered] == [1]


def test_preventive_metrics_only_count_preventive_tickets():
    tickets = [
        _ticket(tipo="PREVENTIVO", status="AGENDADO"),
        _ticket(tipo="PREVENTIVO", status="EM_ANDAMENTO"),
        _ticket(tipo="PREVENTIVO", status="CONCLUIDO"),
        _ticket(tipo="PREVENTIVO", status="CONCLUIDO"),
        _ticket(tipo="CORRETIVO", status="CONCLUIDO"),
    ]

    assert maintenance_service.preventive_metrics(tickets) == {
        "agendados": 1,
        "em_andamento": 1,
        "concluidos": 2,
        "total": 4,
    }


def test_format_date_variants():
    assert maintenance_service.format_date(datetime(2024, 3, 5, 10, 0)) == "05/03/2024"
    assert maintenance_service.format_date("2024-03-05T10:00:00") == "05/03/2024"
    assert maintenance_service.format_date(None) == "-"


def test_tickets_workbook_uses_labels():
    content = maintenance_service.build_tickets_workbook(
        [_ticket(status="EM_ANDAMENTO", equipamentos=None)]
    )

    sheet = load_workbook(BytesIO(content)).active
    rows = list(sheet.iter_rows(values_only=True))
    assert rows[0][0] == "Cliente"
    assert rows[1][2] == "Corretivo"
    assert rows[1][3] == "Em Andamento"
    assert rows[1][5] == "15/03/2024"
    assert rows[1][7] == "-"


def test_export_filename():
    assert maintenance_service.export_filename(today=date(2024, 5, 2)) == "chamados_2024-05-02.xlsx"


@pytest.mark.anyio
async def test_create_ticket_copies_customer_fields(monkeypatch):
    captured = {}

    async def fake_get_customer(customer_id):
        return {"id": customer_id, "contrato": "C-9", "razao_social": "Edifício Norte", "praca": "VIX"}

    async def fake_create_ticket(**fields):
        captured.update(fields)
        return {"id": 30, **fields}

    monkeypatch.setattr(customer_repo, "get_customer_by_id", fake_get_customer)
    monkeypatch.setattr(maintenance_repo, "create_ticket", fake_create_ticket)

    ticket = await maintenance_service.create_ticket(
        {"tipo": "ELETIVO", "customer_id": 9, "data_agendada": datetime(2024, 5, 1, 9, 0)},
        {"id": 2, "nome": "Bruna"},
    )

    assert ticket["id"] == 30
    assert captured["contrato"] == "C-9"
    assert captured["praca"] == "VIX"
    assert captured["status"] == "AGENDADO"
    assert captured["historico"][0]["acao"] == "Chamado criado"
    assert captured["historico"][0]["usuario"] == "Bruna"


@pytest.mark.anyio
async def test_create_ticket_requires_type():
    with pytest.raises(maintenance_service.MaintenanceError):
        await maintenance_service.create_ticket({"data_agendada": datetime(2024, 5, 1)}, {"id": 1})


@pytest.mark.anyio
async def test_change_status_sets_timestamps_and_history(monkeypatch):
    captured = {}

    async def fake_update_ticket(ticket_id, **fields):
        captured.update(fields)
        return {"id": ticket_id, **fields}

    monkeypatch.setattr(maintenance_repo, "update_ticket", fake_update_ticket)

    await maintenance_service.change_status(_ticket(), "EM_ANDAMENTO", {"nome": "Carlos"})
    assert isinstance(captured["data_inicio"], datetime)
    assert captured["historico"][-1]["acao"] == "Status alterado para Em Andamento"

    captured.clear()
    await maintenance_service.change_status(_ticket(), "CONCLUIDO", {"nome": "Carlos"})
    assert isinstance(captured["data_conclusao"], datetime)


@pytest.mark.anyio
async def test_change_status_rejects_unknown_status():
    with pytest.raises(maintenance_service.MaintenanceError):
        await maintenance_service.change_status(_ticket(), "PAUSADO", {"nome": "Carlos"})


@pytest.mark.anyio
async def test_reschedule_marks_ticket_rescheduled(monkeypatch):
    captured = {}

    async def fake_update_ticket(ticket_id, **fields):
        captured.update(fields)
        return {"id": ticket_id, **fields}

    monkeypatch.setattr(maintenance_repo, "update_ticket", fake_update_ticket)

    await maintenance_service.reschedule(_ticket(), datetime(2024, 4, 2, 14, 0), {"nome": "Ana"})

    assert captured["status"] == "REAGENDADO"
    assert captured["historico"][-1]["acao"] == "Reagendado para 02/04/2024"
