from datetime import date

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from emive_portal.api.dependencies import auth as auth_dependencies
from emive_portal.api.dependencies import database as database_dependencies
from emive_portal.api.routes import maintenance
from emive_portal.repositories import maintenance as maintenance_repo

SCHEDULE = {
    "id": 5,
    "customer_id": 1,
    "contrato": "C-1",
    "razao_social": "Residencial Sol",
    "descricao": "Manutenção Preventiva",
    "frequencia": "MENSAL",
    "proxima_execucao": date(2024, 6, 1),
    "ativo": True,
    "notificacao_enviada": False,
}


@pytest.fixture
def client(monkeypatch):
    app = FastAPI()
    app.include_router(maintenance.router)
    app.dependency_overrides[database_dependencies.require_database] = lambda: None
    app.dependency_overrides[auth_dependencies.get_current_user] = lambda: {
        "id": 1,
        "nome": "Admin",
        "role": "admin",
    }

    writes: list[dict] = []

    async def fake_get_schedule(schedule_id):
        return dict(SCHEDULE) if schedule_id == SCHEDULE["id"] else None

    async def fake_update_schedule(schedule_id, **fields):
        writes.append(fields)
        return {**SCHEDULE, **fields}

    monkeypatch.setattr(maintenance_repo, "get_schedule", fake_get_schedule)
    monkeypatch.setattr(maintenance_repo, "update_schedule", fake_update_schedule)

    with TestClient(app) as test_client:
        test_client.writes = writes
        yield test_client


@pytest.mark.parametrize("field", ["customer_id", "frequencia", "proxima_execucao"])
def test_schedule_update_rejects_null_required_field(client, field):
    response = client.patch("/api/maintenance/schedules/5", json={field: None})

    assert response.status_code == 400
    assert field in response.json()["detail"]
    assert client.writes == []


def test_schedule_update_of_optional_field_is_written(client):
    response = client.patch("/api/maintenance/schedules/5", json={"equipamentos": "Câmeras"})

    assert response.status_code == 200
    assert client.writes == [{"equipamentos": "Câmeras"}]


def test_schedule_update_for_unknown_schedule_is_404(client):
    response = client.patch("/api/maintenance/schedules/99", json={"equipamentos": "x"})

    assert response.status_code == 404
